"""
DTOs for CredentialService.

Data Transfer Objects (DTOs) isolate the service layer from ORM models,
ensuring clear input/output contracts. No DTO ever carries the password hash
or the second-factor secret outward.
"""

from __future__ import annotations

from dataclasses import dataclass

# --------------------------------------------------------------------------- #
# Input DTOs
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class RegisterIn:
    """
    Input DTO for registration.

    :param email: Login email (case-folded before storage).
    :type email: str
    :param password: Raw password to be hashed by the model.
    :type password: str
    :param display_name: Public display name.
    :type display_name: str
    :param age: Declared age, checked against the minimum-age policy.
    :type age: int
    """

    email: str
    password: str
    display_name: str
    age: int


@dataclass(frozen=True, slots=True)
class PasswordChangeIn:
    """
    Input DTO for a password change.

    :param current_password: Password currently on record.
    :type current_password: str
    :param new_password: Replacement password.
    :type new_password: str
    """

    current_password: str
    new_password: str


# --------------------------------------------------------------------------- #
# Output DTOs
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class PrincipalOut:
    """
    Public-safe principal projection.

    :param id: Principal identifier.
    :type id: int
    :param email: Case-folded email.
    :type email: str
    :param display_name: Display name.
    :type display_name: str
    :param age: Declared age.
    :type age: int
    :param two_factor_enabled: Whether login requires a one-time code.
    :type two_factor_enabled: bool
    """

    id: int
    email: str
    display_name: str
    age: int
    two_factor_enabled: bool


@dataclass(frozen=True, slots=True)
class EnrollmentOut:
    """
    Second-factor enrollment material, shown once to the principal.

    :param secret: Base32 TOTP secret.
    :type secret: str
    :param provisioning_uri: ``otpauth://`` URI for authenticator apps.
    :type provisioning_uri: str
    """

    secret: str
    provisioning_uri: str
