"""
Refresh-token rotation with reuse detection.

A presented refresh token resolves to one of:

``valid-active``
    Node exists and is not revoked: rotate it.
``valid-but-rotated``
    Node is revoked *and* has a successor: the token was already exchanged, so
    this is a replay. The chain from this node forward is revoked.
``revoked-terminal``
    Node is revoked without a successor (logout): plain failure, no cascade.
``unknown``
    Signature is fine but no node exists (swept, discarded or forged jti).
``signature-invalid``
    Bad signature, wrong type or expired.

Only the first yields a new pair; every other state raises an
:class:`AuthenticationError` subclass whose ``reason`` is logged for audit.
"""

from __future__ import annotations

import logging

from beacon_auth.services._shared.errors import (
    AlreadyRotatedError,
    InvalidRefreshTokenError,
    TokenReuseDetectedError,
)
from beacon_auth.services._shared.ports import SessionNodeView, SessionRegistry
from beacon_auth.services.tokens.dto import RefreshClaims, TokenPairOut
from beacon_auth.services.tokens.service import TokenService

log = logging.getLogger(__name__)


class RotationProtocol:
    """
    Exchange a refresh token for a new pair exactly once.

    :param tokens: Token issuer (also used to verify the presented token).
    :param registry: Session node store; must be the one ``tokens`` writes to.
    """

    def __init__(self, *, tokens: TokenService, registry: SessionRegistry) -> None:
        self.tokens = tokens
        self.registry = registry

    def rotate(self, refresh_token: str) -> TokenPairOut:
        """
        Rotate ``refresh_token``.

        :returns: The new pair; deliver it to exactly one requester.
        :raises InvalidRefreshTokenError: Invalid, unknown, expired or logged-out token.
        :raises TokenReuseDetectedError: Replay of an already rotated token
            (including the loser of a concurrent rotation).
        """
        claims = self.tokens.decode_refresh_token(refresh_token)
        node = self.registry.find(claims.jti)

        while True:
            node = self._require_active(node, claims)

            refresh, child = self.tokens.issue_refresh_token(node.principal_id, node.device_id)
            try:
                self.registry.mark_rotated(node.jti, child.jti)
            except AlreadyRotatedError:
                # A concurrent rotation won. Never leave two children under one
                # parent: drop ours and judge the parent again.
                self.registry.discard(child.jti)
                log.warning(
                    "Concurrent rotation lost",
                    extra={
                        "event": "rotation_race_lost",
                        "principal_id": node.principal_id,
                        "jti": node.jti,
                    },
                )
                node = self.registry.find(node.jti)
                continue

            access = self.tokens.issue_access_token(node.principal_id)
            log.info(
                "Refresh token rotated",
                extra={"event": "token_rotated", "principal_id": node.principal_id, "jti": child.jti},
            )
            return TokenPairOut(access_token=access, refresh_token=refresh, session_id=child.jti)

    def _require_active(
        self, node: SessionNodeView | None, claims: RefreshClaims
    ) -> SessionNodeView:
        """Return ``node`` if it is ``valid-active``; raise for every other state."""
        if node is None:
            raise InvalidRefreshTokenError(reason="refresh_unknown")

        if node.principal_id != claims.principal_id:
            raise InvalidRefreshTokenError(reason="refresh_invalid")

        if node.was_rotated:
            revoked = self.registry.revoke_chain(node.jti)
            log.warning(
                "Refresh token reuse detected; chain revoked",
                extra={
                    "event": "session_chain_revoked",
                    "principal_id": node.principal_id,
                    "jti": node.jti,
                    "reason": TokenReuseDetectedError.reason,
                    "count": revoked,
                },
            )
            raise TokenReuseDetectedError(node.jti, revoked)

        if node.revoked:
            raise InvalidRefreshTokenError(reason="refresh_revoked")

        if node.is_expired(self.tokens.now_utc()):
            raise InvalidRefreshTokenError(reason="refresh_expired")

        return node
