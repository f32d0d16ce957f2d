"""Version 1 of the HTTP API: a health probe and the auth/session routes."""

from __future__ import annotations

from flask import Blueprint

from .auth import bp as auth_bp
from .health import bp as health_bp

API_VERSION = "v1"

#: ``(blueprint, prefix relative to /api/v1)``
REGISTRY: list[tuple[Blueprint, str]] = [
    (health_bp, ""),
    (auth_bp, "/auth"),
]
