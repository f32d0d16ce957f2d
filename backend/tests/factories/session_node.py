"""Factory Boy definition for :class:`beacon_auth.models.session_node.SessionNode`."""

from __future__ import annotations

from datetime import timedelta
from uuid import uuid4

import factory
from beacon_auth.models.base import utcnow
from beacon_auth.models.session_node import SessionNode

from tests.factories import BaseFactory
from tests.factories.principal import PrincipalFactory


class SessionNodeFactory(BaseFactory):
    """
    Build persisted session nodes (active, unexpired by default).

    Pass ``principal_id=`` to attach several nodes to one owner.
    """

    class Meta:
        model = SessionNode

    id = None
    principal_id = factory.LazyFunction(lambda: PrincipalFactory().id)
    jti = factory.LazyFunction(lambda: uuid4().hex)
    device_id = "device-1"
    revoked = False
    successor_jti = None
    expires_at = factory.LazyFunction(lambda: utcnow() + timedelta(days=30))
