from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

from beacon_auth.services._shared.errors import TokenDecodeError

ACCESS = "access"
REFRESH = "refresh"
CHALLENGE = "challenge"


class TokenProvider(Protocol):
    """
    Port for issuing and decoding compact signed tokens.

    Wire shape: ``{"sub", "type", "exp"}`` for every token, plus ``"jti"`` and
    ``"did"`` (device id) on refresh tokens. ``decode`` verifies signature and
    expiry and raises :class:`TokenDecodeError` on any failure.
    """

    def create_access_token(self, *, identity: int, expires_delta: timedelta) -> str: ...

    def create_refresh_token(
        self,
        *,
        identity: int,
        jti: str,
        device_id: str,
        expires_delta: timedelta,
    ) -> str: ...

    def create_challenge_token(self, *, identity: int, expires_delta: timedelta) -> str: ...

    def decode(self, token: str) -> dict[str, Any]: ...


class StubTokenProvider(TokenProvider):
    """
    Deterministic token provider used in unit tests.

    Tokens look like ``"refresh.7.rt-1.3"``; they carry nothing and are looked
    up in an in-process table. Expiry is checked against the injected clock.
    """

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        self._seq = 0
        self._issued: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def _mk(
        self,
        *,
        identity: int,
        ttype: str,
        exp_delta: timedelta,
        extra: dict[str, Any] | None = None,
    ) -> str:
        with self._lock:
            self._seq += 1
            seq = self._seq
        jti = (extra or {}).get("jti", "-")
        token = f"{ttype}.{identity}.{jti}.{seq}"
        payload: dict[str, Any] = {
            "sub": str(identity),
            "type": ttype,
            "exp": int((self._clock() + exp_delta).timestamp()),
        }
        if extra:
            payload.update(extra)
        with self._lock:
            self._issued[token] = payload
        return token

    def create_access_token(self, *, identity: int, expires_delta: timedelta) -> str:
        return self._mk(identity=identity, ttype=ACCESS, exp_delta=expires_delta)

    def create_refresh_token(
        self,
        *,
        identity: int,
        jti: str,
        device_id: str,
        expires_delta: timedelta,
    ) -> str:
        return self._mk(
            identity=identity,
            ttype=REFRESH,
            exp_delta=expires_delta,
            extra={"jti": jti, "did": device_id},
        )

    def create_challenge_token(self, *, identity: int, expires_delta: timedelta) -> str:
        return self._mk(identity=identity, ttype=CHALLENGE, exp_delta=expires_delta)

    def decode(self, token: str) -> dict[str, Any]:
        with self._lock:
            payload = self._issued.get(token)
        if payload is None:
            raise TokenDecodeError("unknown token")
        if int(payload["exp"]) <= int(self._clock().timestamp()):
            raise TokenDecodeError("token expired", claims=dict(payload))
        return dict(payload)

    def forge(self, token: str, **claims: Any) -> str:
        """Register ``token`` with arbitrary claims (signature-valid but crafted)."""
        payload = {"exp": int((self._clock() + timedelta(days=1)).timestamp())}
        payload.update(claims)
        with self._lock:
            self._issued[token] = payload
        return token
