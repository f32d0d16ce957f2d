# beacon_auth/services/auth/service.py
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from beacon_auth.models.base import as_utc
from beacon_auth.services._shared.base import BaseService, Clock
from beacon_auth.services._shared.errors import (
    AuthenticationError,
    InvalidRefreshTokenError,
    NotFoundError,
)
from beacon_auth.services._shared.ports import SessionRegistry, TokenProvider
from beacon_auth.services._shared.settings import AuthSettings
from beacon_auth.services.auth.dto import (
    DeviceOut,
    LoginIn,
    LoginOut,
    SecondFactorIn,
    SessionOut,
)
from beacon_auth.services.auth.rotation import RotationProtocol
from beacon_auth.services.challenges.service import ChallengeService
from beacon_auth.services.credentials.dto import (
    EnrollmentOut,
    PasswordChangeIn,
    PrincipalOut,
    RegisterIn,
)
from beacon_auth.services.credentials.service import CredentialService
from beacon_auth.services.tokens.dto import TokenPairOut
from beacon_auth.services.tokens.service import TokenService, new_jti

log = logging.getLogger(__name__)


class AuthService(BaseService):
    """
    Credential and session lifecycle facade.

    Composes credential checks, second-factor challenges, token issuing and
    refresh rotation over one :class:`SessionRegistry`. Every authentication
    failure is logged with its fine-grained ``reason`` before it propagates;
    callers are expected to show all of them as the same generic 401.
    """

    def __init__(
        self,
        *,
        token_provider: TokenProvider,
        registry: SessionRegistry,
        settings: AuthSettings | None = None,
        clock: Clock | None = None,
        jti_factory: Callable[[], str] = new_jti,
    ) -> None:
        """
        Initialize the service with its dependencies.

        :param token_provider: Adapter for signing/decoding tokens.
        :param registry: Session node store (SQL, Redis or in-memory).
        :param settings: Lifetimes and credential policy.
        :param clock: Shared source of "now" for every collaborator.
        :param jti_factory: Generator of unique session node ids.
        """
        super().__init__(clock=clock)
        self.settings = settings or AuthSettings()
        self.registry = registry
        self.credentials = CredentialService(settings=self.settings, clock=self._clock)
        self.challenges = ChallengeService(
            token_provider=token_provider,
            credentials=self.credentials,
            settings=self.settings,
            clock=self._clock,
        )
        self.tokens = TokenService(
            token_provider=token_provider,
            registry=registry,
            settings=self.settings,
            clock=self._clock,
            jti_factory=jti_factory,
        )
        self.rotation = RotationProtocol(tokens=self.tokens, registry=registry)

    # ------------------------------------------------------------------ #
    # Registration / login
    # ------------------------------------------------------------------ #

    def register(self, dto: RegisterIn) -> PrincipalOut:
        return self.credentials.register(dto)

    def login(self, dto: LoginIn) -> LoginOut:
        """
        Verify credentials, record the device, then either issue a pair or
        pause for a second factor.

        :raises InvalidCredentialsError: Unknown email or wrong password.
        """
        with self._audited("login"):
            principal = self.credentials.verify(dto.email, dto.password)

        with self.rw_uow() as uow:
            uow.devices.touch(
                principal_id=principal.id,
                device_id=dto.device_id,
                platform=dto.platform,
                user_agent=dto.user_agent,
                seen_at=self.now_utc(),
            )

        if principal.two_factor_enabled:
            log.info(
                "Second factor required",
                extra={"event": "challenge_issued", "principal_id": principal.id},
            )
            return LoginOut(challenge_token=self.challenges.issue(principal.id))

        pair = self.tokens.issue_pair(principal.id, dto.device_id)
        log.info(
            "Principal logged in",
            extra={
                "event": "login",
                "principal_id": principal.id,
                "device_id": dto.device_id,
                "jti": pair.session_id,
            },
        )
        return LoginOut(tokens=pair)

    def verify_second_factor(self, dto: SecondFactorIn) -> TokenPairOut:
        """
        Complete a paused login.

        The challenge is not consumed: a wrong code leaves it usable until it
        expires.

        :raises InvalidSecondFactorError: Bad/expired challenge or wrong code.
        """
        with self._audited("verify_second_factor"):
            principal = self.challenges.verify_and_consume(dto.challenge_token, dto.code)

        pair = self.tokens.issue_pair(principal.id, dto.device_id)
        log.info(
            "Second factor verified",
            extra={
                "event": "login",
                "principal_id": principal.id,
                "device_id": dto.device_id,
                "jti": pair.session_id,
            },
        )
        return pair

    # ------------------------------------------------------------------ #
    # Tokens
    # ------------------------------------------------------------------ #

    def rotate(self, refresh_token: str) -> TokenPairOut:
        """
        :raises InvalidRefreshTokenError: Invalid, unknown or logged-out token.
        :raises TokenReuseDetectedError: Replay of an already rotated token.
        """
        with self._audited("rotate"):
            return self.rotation.rotate(refresh_token)

    def verify_access_token(self, access_token: str) -> int:
        """Stateless request-path check. :returns: Principal id."""
        return self.tokens.verify_access_token(access_token)

    def logout(self, refresh_token: str) -> None:
        """
        Revoke the node behind ``refresh_token`` (no successor).

        Idempotent: malformed, expired or unknown tokens succeed silently.
        """
        try:
            claims = self.tokens.decode_refresh_token(refresh_token)
        except InvalidRefreshTokenError:
            log.info("Logout with unusable token ignored", extra={"event": "logout"})
            return
        revoked = self.registry.mark_revoked(claims.jti)
        log.info(
            "Session logged out",
            extra={
                "event": "logout",
                "principal_id": claims.principal_id,
                "jti": claims.jti,
                "count": int(revoked),
            },
        )

    def logout_all(self, principal_id: int) -> int:
        """Revoke every active session of a principal. :returns: Count revoked."""
        count = self.registry.revoke_all(principal_id)
        log.info(
            "All sessions revoked",
            extra={"event": "logout_all", "principal_id": principal_id, "count": count},
        )
        return count

    # ------------------------------------------------------------------ #
    # Account
    # ------------------------------------------------------------------ #

    def me(self, principal_id: int) -> PrincipalOut:
        return self.credentials.get(principal_id)

    def change_password(self, principal_id: int, dto: PasswordChangeIn) -> int:
        """
        Change the password, then sign out everywhere.

        :returns: Number of sessions revoked.
        """
        with self._audited("change_password", principal_id=principal_id):
            self.credentials.change_password(principal_id, dto)
        return self.logout_all(principal_id)

    def begin_second_factor_enrollment(self, principal_id: int) -> EnrollmentOut:
        return self.credentials.begin_enrollment(principal_id)

    def confirm_second_factor(self, principal_id: int, code: str) -> PrincipalOut:
        with self._audited("confirm_second_factor", principal_id=principal_id):
            return self.credentials.confirm_enrollment(principal_id, code)

    # ------------------------------------------------------------------ #
    # Sessions & devices
    # ------------------------------------------------------------------ #

    def list_sessions(self, principal_id: int) -> list[SessionOut]:
        """Active, unexpired sessions, newest first, joined with device info."""
        nodes = self.registry.list_active(principal_id, self.now_utc())
        with self.ro_uow() as uow:
            devices = {d.device_id: d for d in uow.devices.list_for_principal(principal_id)}
            return [
                SessionOut(
                    session_id=node.jti,
                    device_id=node.device_id,
                    platform=devices[node.device_id].platform if node.device_id in devices else None,
                    last_seen_at=(
                        as_utc(devices[node.device_id].last_seen_at)
                        if node.device_id in devices
                        else None
                    ),
                    created_at=node.created_at,
                    expires_at=node.expires_at,
                )
                for node in nodes
            ]

    def revoke_session(self, principal_id: int, session_id: str) -> None:
        """
        Revoke one of the principal's own sessions.

        :raises NotFoundError: Unknown id or a session owned by someone else.
        """
        node = self.registry.find(session_id)
        if node is None or node.principal_id != principal_id:
            raise NotFoundError("Session", session_id)
        self.registry.mark_revoked(session_id)
        log.info(
            "Session revoked",
            extra={"event": "session_revoked", "principal_id": principal_id, "jti": session_id},
        )

    def list_devices(self, principal_id: int) -> list[DeviceOut]:
        with self.ro_uow() as uow:
            return [
                DeviceOut(
                    device_id=d.device_id,
                    platform=d.platform,
                    user_agent=d.user_agent,
                    last_seen_at=as_utc(d.last_seen_at),
                )
                for d in uow.devices.list_for_principal(principal_id)
            ]

    def remove_device(self, principal_id: int, device_id: str) -> int:
        """
        Delete a device row and revoke every session bound to it.

        :returns: Number of sessions revoked.
        :raises NotFoundError: If the principal has no such device.
        """
        with self.rw_uow() as uow:
            device = uow.devices.get_for_principal(principal_id, device_id)
            if device is None:
                raise NotFoundError("Device", device_id)
            uow.devices.delete(device)

        count = self.registry.revoke_device(principal_id, device_id)
        log.info(
            "Device removed",
            extra={
                "event": "device_removed",
                "principal_id": principal_id,
                "device_id": device_id,
                "count": count,
            },
        )
        return count

    # ------------------------------------------------------------------ #
    # Maintenance
    # ------------------------------------------------------------------ #

    def sweep_expired(self, now: datetime | None = None) -> int:
        """Delete session nodes past their expiry. :returns: Rows deleted."""
        count = self.registry.delete_expired(now or self.now_utc())
        log.info("Expired sessions swept", extra={"event": "session_sweep", "count": count})
        return count

    # ------------------------------------------------------------------ #
    # Audit
    # ------------------------------------------------------------------ #

    def _audited(self, endpoint: str, **extra: Any) -> _AuthAudit:
        return _AuthAudit(endpoint, extra)


class _AuthAudit:
    """Context manager logging authentication failures with their reason, then re-raising."""

    def __init__(self, endpoint: str, extra: dict[str, Any]) -> None:
        self.endpoint = endpoint
        self.extra = extra

    def __enter__(self) -> _AuthAudit:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if isinstance(exc, AuthenticationError):
            log.warning(
                "Authentication failed",
                extra={
                    "event": "auth_failure",
                    "endpoint": self.endpoint,
                    "reason": exc.reason,
                    "jti": getattr(exc, "jti", None),
                    **self.extra,
                },
            )
        return False
