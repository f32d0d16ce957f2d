"""CORS policy for browser clients of the auth API."""

from __future__ import annotations

from flask import Flask
from flask_cors import CORS

ALLOWED_METHODS = ["GET", "POST", "DELETE", "OPTIONS"]
ALLOWED_HEADERS = ["Authorization", "Content-Type", "X-Request-ID", "X-Correlation-ID"]


def parse_origins(raw: str | None) -> list[str]:
    """Split ``CORS_ORIGINS``; an empty result or ``["*"]`` means any origin."""
    return [o.strip() for o in (raw or "").split(",") if o.strip()]


def init_app(app: Flask) -> None:
    """
    Apply CORS to ``/api/*`` from ``CORS_ORIGINS`` and ``CORS_MAX_AGE``.

    Tokens travel in the ``Authorization`` header and JSON bodies, never in
    cookies, so credentials are only enabled for an explicit origin list.
    """
    origins = parse_origins(app.config.get("CORS_ORIGINS"))
    wildcard = not origins or origins == ["*"]

    CORS(
        app,
        resources={r"/api/*": {"origins": "*" if wildcard else origins}},
        methods=ALLOWED_METHODS,
        allow_headers=ALLOWED_HEADERS,
        expose_headers=["X-Request-ID"],
        supports_credentials=not wildcard,
        max_age=app.config.get("CORS_MAX_AGE", 600),
    )
