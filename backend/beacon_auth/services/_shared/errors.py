"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and should never import or depend
on Flask, HTTP, or SQLAlchemy directly. They serve as stable contracts between
repositories, registry adapters and application services.

The translation to HTTP responses (RFC 7807) is handled by
``beacon_auth/core/errors.py`` via ``BaseService.translate_exceptions()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.exc import IntegrityError


def violates(exc: IntegrityError, constraint_name: str) -> bool:
    """
    Check whether an IntegrityError originates from a specific constraint.

    PostgreSQL reports the constraint name; SQLite reports the columns, so
    callers may pass either.

    Parameters
    ----------
    exc : IntegrityError
        The exception raised by SQLAlchemy during flush/commit.
    constraint_name : str
        Constraint name or column fragment to match (e.g., 'uq_principals_email').

    Returns
    -------
    bool
        True if the IntegrityError matches the given constraint.
    """
    message = str(exc.orig).lower() if exc.orig else ""
    return constraint_name.lower() in message

# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - They can be safely raised from repositories, adapters or domain logic.
    - The API layer or BaseService will later translate them to APIError.
    """

    pass


class ValidationError(ServiceError):
    """
    Raised when input is malformed or out of policy (bad email, short
    password, age under the minimum).

    :param message: Human-readable explanation.
    :param field: Offending input field, when known.
    """

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found (or is not visible to the caller).

    :param entity: Entity name (e.g., "Session").
    :type entity: str
    :param key: Identifier or search key.
    :type key: str | int
    """

    entity: str
    key: str | int

    def __str__(self) -> str:
        return f"{self.entity} not found: {self.key}"


@dataclass(slots=True)
class ConflictError(ServiceError):
    """
    Raised when a unique constraint or business rule conflict occurs.

    :param entity: Entity name (e.g., "Principal").
    :type entity: str
    :param detail: Short human-readable explanation.
    :type detail: str
    """

    entity: str
    detail: str

    def __str__(self) -> str:
        return f"Conflict on {self.entity}: {self.detail}"


class AlreadyExistsError(ConflictError):
    """Raised when registering a case-folded email that is already taken."""

    def __init__(self, entity: str = "Principal", detail: str = "email already registered") -> None:
        super().__init__(entity=entity, detail=detail)


# --------------------------------------------------------------------------- #
# Authentication failures
# --------------------------------------------------------------------------- #


class AuthenticationError(ServiceError):
    """
    Base for every failure that must reach a client as a generic 401.

    ``reason`` is the fine-grained kind kept for audit logs only; it is never
    rendered into a response.
    """

    reason = "unauthorized"

    def __init__(self, message: str | None = None, *, reason: str | None = None) -> None:
        super().__init__(message or self.__class__.__name__)
        if reason is not None:
            self.reason = reason


class InvalidCredentialsError(AuthenticationError):
    """Unknown email or wrong password (indistinguishable on purpose)."""

    reason = "invalid_credentials"


class InvalidRefreshTokenError(AuthenticationError):
    """Expired, forged, unknown or logged-out refresh token."""

    reason = "refresh_invalid"


class TokenReuseDetectedError(AuthenticationError):
    """
    Replay of a refresh token that was already rotated.

    :param jti: Identifier of the replayed node.
    :param revoked: Number of nodes revoked by the cascade.
    """

    reason = "token_reuse_detected"

    def __init__(self, jti: str, revoked: int = 0) -> None:
        super().__init__(f"Refresh token reuse detected for {jti}")
        self.jti = jti
        self.revoked = revoked


class InvalidSecondFactorError(AuthenticationError):
    """Bad or expired challenge, or bad one-time code."""

    reason = "second_factor_rejected"


class ExpiredOrInvalidChallengeError(InvalidSecondFactorError):
    pass


class InvalidCodeError(InvalidSecondFactorError):
    pass


class InvalidAccessTokenError(AuthenticationError):
    """Access token missing, malformed, expired or of the wrong type."""

    reason = "access_invalid"


# --------------------------------------------------------------------------- #
# Internal signals
# --------------------------------------------------------------------------- #


class AlreadyRotatedError(ServiceError):
    """
    Raised by a session registry when ``mark_rotated`` loses the race.

    Never leaves the rotation protocol.
    """

    def __init__(self, jti: str) -> None:
        super().__init__(f"Session node {jti} already rotated")
        self.jti = jti


@dataclass(slots=True)
class TokenDecodeError(ServiceError):
    """
    Raised by token providers when a token cannot be decoded.

    :param detail: Provider-specific reason (never shown to clients).
    :param claims: Partially decoded claims, if any.
    """

    detail: str = "token could not be decoded"
    claims: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.detail
