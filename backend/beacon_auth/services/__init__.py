"""Service layer public API.

This package exposes the essential building blocks for the service layer so that
callers can import from :mod:`beacon_auth.services` without knowing internal
structure.

Re-exports
----------
- Base primitives (from ``beacon_auth.services._shared``)
    * :class:`BaseService`
    * :class:`AuthSettings`

- Auth facade (from ``beacon_auth.services.auth``)
    * :class:`AuthService`, :class:`RotationProtocol`
    * DTOs: :class:`LoginIn`, :class:`LoginOut`, :class:`SecondFactorIn`,
      :class:`SessionOut`, :class:`DeviceOut`

- Building blocks
    * :class:`CredentialService` with :class:`RegisterIn`,
      :class:`PasswordChangeIn`, :class:`PrincipalOut`, :class:`EnrollmentOut`
    * :class:`ChallengeService`
    * :class:`TokenService` with :class:`TokenPairOut`
"""

from __future__ import annotations

from beacon_auth.services._shared.base import BaseService
from beacon_auth.services._shared.settings import AuthSettings
from beacon_auth.services.auth.dto import DeviceOut, LoginIn, LoginOut, SecondFactorIn, SessionOut
from beacon_auth.services.auth.rotation import RotationProtocol
from beacon_auth.services.auth.service import AuthService
from beacon_auth.services.challenges.service import ChallengeService
from beacon_auth.services.credentials.dto import (
    EnrollmentOut,
    PasswordChangeIn,
    PrincipalOut,
    RegisterIn,
)
from beacon_auth.services.credentials.service import CredentialService
from beacon_auth.services.tokens.dto import TokenPairOut
from beacon_auth.services.tokens.service import TokenService

__all__ = [
    "BaseService",
    "AuthSettings",
    "AuthService",
    "RotationProtocol",
    "LoginIn",
    "LoginOut",
    "SecondFactorIn",
    "SessionOut",
    "DeviceOut",
    "CredentialService",
    "RegisterIn",
    "PasswordChangeIn",
    "PrincipalOut",
    "EnrollmentOut",
    "ChallengeService",
    "TokenService",
    "TokenPairOut",
]
