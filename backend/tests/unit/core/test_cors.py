"""CORS origin parsing and preflight behaviour."""

from __future__ import annotations

import pytest
from beacon_auth.core.cors import parse_origins


@pytest.mark.parametrize(
    "raw,expected",
    [
        (None, []),
        ("", []),
        ("*", ["*"]),
        ("https://a.example, https://b.example ,", ["https://a.example", "https://b.example"]),
    ],
)
def test_parse_origins(raw, expected) -> None:
    assert parse_origins(raw) == expected


def test_preflight_allows_authorization_header(app, client) -> None:
    origins = parse_origins(app.config.get("CORS_ORIGINS"))
    origin = origins[0] if origins and origins != ["*"] else "https://app.example"

    resp = client.options(
        "/api/v1/auth/refresh",
        headers={
            "Origin": origin,
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Authorization",
        },
    )

    assert resp.status_code == 200
    assert resp.headers["Access-Control-Allow-Origin"] in (origin, "*")
    assert "authorization" in resp.headers["Access-Control-Allow-Headers"].lower()
