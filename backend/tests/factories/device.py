"""Factory Boy definition for :class:`beacon_auth.models.device.Device`."""

from __future__ import annotations

import factory
from beacon_auth.models.base import utcnow
from beacon_auth.models.device import Device

from tests.factories import BaseFactory
from tests.factories.principal import PrincipalFactory


class DeviceFactory(BaseFactory):
    class Meta:
        model = Device

    id = None
    principal = factory.SubFactory(PrincipalFactory)
    device_id = factory.Sequence(lambda n: f"device-{n}")
    platform = factory.Iterator(["ios", "android", "web"])
    user_agent = factory.Faker("user_agent")
    last_seen_at = factory.LazyFunction(utcnow)
