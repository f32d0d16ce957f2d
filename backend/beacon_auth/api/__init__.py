"""HTTP surface: versioned blueprints mounted under ``API_BASE_PREFIX``."""

from __future__ import annotations

from flask import Flask


def _join(*segments: str) -> str:
    return "/" + "/".join(s.strip("/") for s in segments if s.strip("/"))


def init_app(app: Flask) -> None:
    """Mount every v1 blueprint, e.g. ``/api/v1/health`` and ``/api/v1/auth/*``."""

    from beacon_auth.api.v1 import API_VERSION, REGISTRY

    base = _join(app.config.get("API_BASE_PREFIX", "/api"), API_VERSION)
    for bp, rel_prefix in REGISTRY:
        app.register_blueprint(bp, url_prefix=_join(base, rel_prefix))


__all__ = ["init_app"]
