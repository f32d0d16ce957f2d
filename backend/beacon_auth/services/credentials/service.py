"""
CredentialService
=================

Owns the ``Principal`` credentials:
- Registration (email uniqueness, password length, minimum age)
- Password verification and change
- Second-factor (TOTP) enrollment

It never touches tokens or sessions.
"""

from __future__ import annotations

import logging

import pyotp
from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from beacon_auth.models.principal import Principal
from beacon_auth.repositories.principal import PrincipalRepository
from beacon_auth.services._shared.base import BaseService, Clock
from beacon_auth.services._shared.errors import (
    AlreadyExistsError,
    ConflictError,
    InvalidCodeError,
    InvalidCredentialsError,
    NotFoundError,
    ValidationError,
    violates,
)
from beacon_auth.services._shared.settings import AuthSettings
from beacon_auth.services.credentials.dto import (
    EnrollmentOut,
    PasswordChangeIn,
    PrincipalOut,
    RegisterIn,
)

log = logging.getLogger(__name__)

# Checked against when the email is unknown so both failure paths hash once.
_TIMING_EQUALIZER_HASH = generate_password_hash("beacon-timing-equalizer")


def to_principal_out(principal: Principal) -> PrincipalOut:
    return PrincipalOut(
        id=principal.id,
        email=principal.email,
        display_name=principal.display_name,
        age=principal.age,
        two_factor_enabled=bool(principal.two_factor_enabled),
    )


class CredentialService(BaseService):
    """
    Application service for principal credentials.

    Responsibilities
    ----------------
    - Register principals ensuring case-folded email uniqueness.
    - Verify email/password pairs without leaking which half was wrong.
    - Change passwords.
    - Enroll and confirm a TOTP second factor.
    """

    def __init__(self, *, settings: AuthSettings | None = None, clock: Clock | None = None) -> None:
        super().__init__(clock=clock)
        self.settings = settings or AuthSettings()

    # --------------------------------------------------------------------- #
    # Registration
    # --------------------------------------------------------------------- #

    def register(self, dto: RegisterIn) -> PrincipalOut:
        """
        Register a new principal.

        :param dto: Registration input DTO.
        :type dto: RegisterIn
        :returns: Public-safe principal DTO.
        :rtype: PrincipalOut
        :raises ValidationError: On malformed or out-of-policy input.
        :raises AlreadyExistsError: If the case-folded email is taken.
        """
        self._check_password_policy(dto.password)
        if dto.age < self.settings.minimum_age:
            raise ValidationError(
                f"Must be at least {self.settings.minimum_age} years old", field="age"
            )

        with self.rw_uow() as uow:
            repo: PrincipalRepository = uow.principals

            if repo.exists_by_email(dto.email):
                raise AlreadyExistsError()

            try:
                principal = Principal(
                    email=dto.email,  # model case-folds and validates
                    password=dto.password,  # model hashes via setter
                    display_name=dto.display_name,
                    age=dto.age,
                )
            except ValueError as exc:
                raise ValidationError(str(exc)) from exc

            try:
                repo.add(principal)
            except IntegrityError as exc:
                if violates(exc, "uq_principals_email") or violates(exc, "principals.email"):
                    raise AlreadyExistsError() from exc
                raise  # unknown integrity error -> bubble up

            log.info(
                "Principal registered",
                extra={"event": "principal_registered", "principal_id": principal.id},
            )
            return to_principal_out(principal)

    # --------------------------------------------------------------------- #
    # Verification
    # --------------------------------------------------------------------- #

    def verify(self, email: str, password: str) -> PrincipalOut:
        """
        Verify an email/password pair.

        Unknown email and wrong password fail identically, and both paths
        perform one password-hash comparison.

        :raises InvalidCredentialsError: When the pair does not match.
        """
        with self.ro_uow() as uow:
            principal = uow.principals.get_by_email(email)
            if principal is None:
                check_password_hash(_TIMING_EQUALIZER_HASH, password)
                raise InvalidCredentialsError()
            if not principal.verify_password(password):
                raise InvalidCredentialsError()
            return to_principal_out(principal)

    def get(self, principal_id: int) -> PrincipalOut:
        """
        :raises NotFoundError: If the principal does not exist.
        """
        with self.ro_uow() as uow:
            principal = uow.principals.get(principal_id)
            if principal is None:
                raise NotFoundError("Principal", principal_id)
            return to_principal_out(principal)

    # --------------------------------------------------------------------- #
    # Password lifecycle
    # --------------------------------------------------------------------- #

    def change_password(self, principal_id: int, dto: PasswordChangeIn) -> None:
        """
        Replace the password after checking the current one.

        Session invalidation is the caller's job.

        :raises InvalidCredentialsError: If ``current_password`` is wrong.
        :raises ValidationError: If the new password is out of policy.
        """
        self._check_password_policy(dto.new_password)
        with self.rw_uow() as uow:
            repo: PrincipalRepository = uow.principals
            principal = repo.get(principal_id)
            if principal is None:
                raise NotFoundError("Principal", principal_id)
            if not principal.verify_password(dto.current_password):
                raise InvalidCredentialsError()
            repo.update_password(principal_id, dto.new_password)

    def _check_password_policy(self, password: str) -> None:
        if not isinstance(password, str) or len(password) < self.settings.password_min_length:
            raise ValidationError(
                f"Password must be at least {self.settings.password_min_length} characters",
                field="password",
            )

    # --------------------------------------------------------------------- #
    # Second factor
    # --------------------------------------------------------------------- #

    def begin_enrollment(self, principal_id: int) -> EnrollmentOut:
        """
        Generate and store a fresh TOTP secret (not yet enabled).

        :raises ConflictError: If a second factor is already enabled.
        """
        with self.rw_uow() as uow:
            repo: PrincipalRepository = uow.principals
            principal = repo.get(principal_id)
            if principal is None:
                raise NotFoundError("Principal", principal_id)
            if principal.two_factor_enabled:
                raise ConflictError("Principal", "second factor already enabled")

            secret = pyotp.random_base32()
            repo.set_second_factor(principal_id, secret=secret, enabled=False)
            uri = pyotp.TOTP(secret).provisioning_uri(
                name=principal.email, issuer_name=self.settings.totp_issuer
            )
            return EnrollmentOut(secret=secret, provisioning_uri=uri)

    def confirm_enrollment(self, principal_id: int, code: str) -> PrincipalOut:
        """
        Enable the second factor once the principal proves possession of it.

        :raises InvalidCodeError: If no enrollment is pending or the code is wrong.
        """
        with self.rw_uow() as uow:
            repo: PrincipalRepository = uow.principals
            principal = repo.get(principal_id)
            if principal is None:
                raise NotFoundError("Principal", principal_id)
            if not principal.totp_secret or not self.check_code(principal.totp_secret, code):
                raise InvalidCodeError(reason="second_factor_rejected")

            repo.set_second_factor(principal_id, secret=principal.totp_secret, enabled=True)
            log.info(
                "Second factor enabled",
                extra={"event": "second_factor_enabled", "principal_id": principal_id},
            )
            return to_principal_out(principal)

    def check_code(self, secret: str, code: str) -> bool:
        """Check a one-time code, accepting adjacent time steps."""
        return bool(
            pyotp.TOTP(secret).verify(
                str(code).strip(),
                for_time=self.now_utc(),
                valid_window=self.settings.totp_valid_window,
            )
        )
