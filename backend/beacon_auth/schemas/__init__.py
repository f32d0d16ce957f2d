"""Convenience exports for application schemas."""

from __future__ import annotations

from .auth import (
    MAX_USER_AGENT_LENGTH,
    ChangePasswordSchema,
    CodeSchema,
    DeviceSchema,
    EnrollmentSchema,
    LoginSchema,
    PrincipalSchema,
    RefreshSchema,
    RegisterSchema,
    SecondFactorSchema,
    SessionSchema,
    TokenPairSchema,
)

__all__ = [
    "MAX_USER_AGENT_LENGTH",
    "ChangePasswordSchema",
    "CodeSchema",
    "DeviceSchema",
    "EnrollmentSchema",
    "LoginSchema",
    "PrincipalSchema",
    "RefreshSchema",
    "RegisterSchema",
    "SecondFactorSchema",
    "SessionSchema",
    "TokenPairSchema",
]
