"""JWTTokenProvider against the real flask-jwt-extended configuration."""

from __future__ import annotations

from datetime import timedelta

import jwt
import pytest
from beacon_auth.infra.jwt.flask_jwt_token_provider import JWTTokenProvider
from beacon_auth.services._shared.errors import TokenDecodeError
from freezegun import freeze_time


@pytest.fixture()
def provider(app):
    return JWTTokenProvider()


def test_access_token_claims(provider):
    token = provider.create_access_token(identity=42, expires_delta=timedelta(minutes=15))
    claims = provider.decode(token)
    assert claims["sub"] == "42"
    assert claims["type"] == "access"
    assert "did" not in claims


def test_refresh_token_carries_session_jti_and_device(provider):
    token = provider.create_refresh_token(
        identity=7, jti="node-123", device_id="phone", expires_delta=timedelta(days=30)
    )
    claims = provider.decode(token)
    assert claims["type"] == "refresh"
    assert claims["jti"] == "node-123"
    assert claims["did"] == "phone"
    assert claims["sub"] == "7"


def test_challenge_token_has_its_own_type(provider):
    token = provider.create_challenge_token(identity=3, expires_delta=timedelta(minutes=5))
    claims = provider.decode(token)
    assert claims["type"] == "challenge"
    assert claims["sub"] == "3"


def test_expired_token_raises_decode_error(provider):
    with freeze_time("2026-01-01 12:00:00"):
        token = provider.create_access_token(identity=1, expires_delta=timedelta(minutes=1))
    with freeze_time("2026-01-01 12:05:00"), pytest.raises(TokenDecodeError):
        provider.decode(token)


def test_foreign_signature_raises_decode_error(provider, app):
    forged = jwt.encode(
        {"sub": "1", "type": "refresh", "jti": "x", "exp": 4_102_444_800},
        "not-the-server-secret-but-long-enough-0123456789",
        algorithm=app.config["JWT_ALGORITHM"],
    )
    with pytest.raises(TokenDecodeError):
        provider.decode(forged)


@pytest.mark.parametrize("garbage", ["", "not.a.jwt", "abc"])
def test_garbage_raises_decode_error(provider, garbage):
    with pytest.raises(TokenDecodeError):
        provider.decode(garbage)
