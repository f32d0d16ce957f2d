"""
TokenService
============

Mints the two token tiers:

- access tokens: stateless, short-lived, verified by signature/expiry/type
  only, never looked up in the session registry;
- refresh tokens: long-lived, each backed by exactly one session node that is
  persisted *before* the token string exists.
"""

from __future__ import annotations

from collections.abc import Callable
from uuid import uuid4

from beacon_auth.services._shared.base import BaseService, Clock
from beacon_auth.services._shared.errors import (
    InvalidAccessTokenError,
    InvalidRefreshTokenError,
    TokenDecodeError,
)
from beacon_auth.services._shared.ports import (
    ACCESS,
    REFRESH,
    SessionNodeView,
    SessionRegistry,
    TokenProvider,
)
from beacon_auth.services._shared.settings import AuthSettings
from beacon_auth.services.tokens.dto import RefreshClaims, TokenPairOut


def new_jti() -> str:
    return uuid4().hex


class TokenService(BaseService):
    """Issue and verify access/refresh tokens."""

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
        :param token_provider: Adapter for signing/decoding tokens.
        :param registry: Session node store.
        :param settings: Token lifetimes.
        :param clock: Source of "now" for node expiry.
        :param jti_factory: Generator of unique session node ids.
        """
        super().__init__(clock=clock)
        self.tokens = token_provider
        self.registry = registry
        self.settings = settings or AuthSettings()
        self._new_jti = jti_factory

    # ------------------------------------------------------------------ #
    # Issuing
    # ------------------------------------------------------------------ #

    def issue_access_token(self, principal_id: int) -> str:
        return self.tokens.create_access_token(
            identity=principal_id, expires_delta=self.settings.access_ttl
        )

    def issue_refresh_token(self, principal_id: int, device_id: str) -> tuple[str, SessionNodeView]:
        """
        Persist a new active node, then sign the refresh token that names it.

        :returns: ``(refresh_token, node)``.
        """
        node = self.registry.create(
            principal_id=principal_id,
            device_id=device_id,
            jti=self._new_jti(),
            expires_at=self.now_utc() + self.settings.refresh_ttl,
        )
        token = self.tokens.create_refresh_token(
            identity=principal_id,
            jti=node.jti,
            device_id=device_id,
            expires_delta=self.settings.refresh_ttl,
        )
        return token, node

    def issue_pair(self, principal_id: int, device_id: str) -> TokenPairOut:
        """The only way a caller obtains a usable token pair."""
        refresh, node = self.issue_refresh_token(principal_id, device_id)
        access = self.issue_access_token(principal_id)
        return TokenPairOut(access_token=access, refresh_token=refresh, session_id=node.jti)

    # ------------------------------------------------------------------ #
    # Verification
    # ------------------------------------------------------------------ #

    def verify_access_token(self, token: str) -> int:
        """
        Stateless check of signature, expiry and ``type == "access"``.

        :returns: Principal id.
        :raises InvalidAccessTokenError: On any failure.
        """
        try:
            claims = self.tokens.decode(token)
        except TokenDecodeError as exc:
            raise InvalidAccessTokenError() from exc
        if claims.get("type") != ACCESS:
            raise InvalidAccessTokenError(reason="access_wrong_type")
        try:
            return int(claims["sub"])
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidAccessTokenError() from exc

    def decode_refresh_token(self, token: str) -> RefreshClaims:
        """
        Verify signature, expiry and ``type == "refresh"``.

        :raises InvalidRefreshTokenError: On any failure.
        """
        try:
            claims = self.tokens.decode(token)
        except TokenDecodeError as exc:
            raise InvalidRefreshTokenError(reason="refresh_invalid") from exc
        if claims.get("type") != REFRESH or not claims.get("jti"):
            raise InvalidRefreshTokenError(reason="refresh_invalid")
        try:
            return RefreshClaims(
                principal_id=int(claims["sub"]),
                device_id=str(claims.get("did") or "unknown"),
                jti=str(claims["jti"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidRefreshTokenError(reason="refresh_invalid") from exc
