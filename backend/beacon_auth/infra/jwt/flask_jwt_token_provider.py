# beacon_auth/infra/jwt/flask_jwt_token_provider.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, cast

from flask_jwt_extended import create_access_token as _create_access
from flask_jwt_extended import create_refresh_token as _create_refresh
from flask_jwt_extended import decode_token as _decode
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt import PyJWTError

from beacon_auth.services._shared.errors import TokenDecodeError
from beacon_auth.services._shared.ports import CHALLENGE, TokenProvider


@dataclass(slots=True)
class JWTTokenProvider(TokenProvider):
    """
    Adapter for Flask-JWT-Extended.

    Signing key, algorithm and default lifetimes come from the Flask config
    (``JWT_SECRET_KEY``, ``JWT_ALGORITHM``).

    .. note::
       Requires an active Flask app context with proper JWT settings.
    """

    def create_access_token(self, *, identity: int, expires_delta: timedelta) -> str:
        return cast(
            str,
            _create_access(identity=str(identity), expires_delta=expires_delta, fresh=False),
        )

    def create_refresh_token(
        self,
        *,
        identity: int,
        jti: str,
        device_id: str,
        expires_delta: timedelta,
    ) -> str:
        # The jti comes from the caller so the token and its session node agree.
        token = cast(
            str,
            _create_refresh(
                identity=str(identity),
                additional_claims={"jti": jti, "did": device_id},
                expires_delta=expires_delta,
            ),
        )

        # Ensure the library did not silently replace our jti.
        actual = cast(dict[str, Any], _decode(token))["jti"]
        if actual != jti:
            raise RuntimeError("Refresh token jti mismatch after creation.")

        return token

    def create_challenge_token(self, *, identity: int, expires_delta: timedelta) -> str:
        # Overriding the reserved "type" claim keeps challenges out of every
        # check that expects "access" or "refresh".
        return cast(
            str,
            _create_access(
                identity=str(identity),
                additional_claims={"type": CHALLENGE},
                expires_delta=expires_delta,
                fresh=False,
            ),
        )

    def decode(self, token: str) -> dict[str, Any]:
        """
        Verify signature and expiry and return the claims.

        :raises TokenDecodeError: On any PyJWT / Flask-JWT-Extended failure.
        """
        try:
            return cast(dict[str, Any], _decode(token))
        except (PyJWTError, JWTExtendedException) as exc:
            raise TokenDecodeError(exc.__class__.__name__) from exc
