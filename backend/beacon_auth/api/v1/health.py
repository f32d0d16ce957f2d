"""Liveness probe covering the database and the session registry backend."""

from __future__ import annotations

from flask import Blueprint, current_app
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from beacon_auth.api.deps import json_response, timing
from beacon_auth.core.extensions import db, get_redis

bp = Blueprint("health", __name__)


def _database_ok() -> bool:
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        current_app.logger.exception("healthcheck.db_error")
        return False
    return True


def _registry_ok(backend: str) -> bool:
    if backend != "redis":
        return True
    try:
        return bool(get_redis().ping())
    except (RedisError, RuntimeError):
        current_app.logger.exception("healthcheck.redis_error")
        return False


@bp.get("/health")
@timing
def healthcheck():
    """
    Report database reachability and which session registry is active.

    ``status`` is ``"degraded"`` (HTTP 503) when either dependency fails.
    """
    backend = current_app.config.get("SESSION_REGISTRY_BACKEND", "sql")
    db_ok = _database_ok()
    registry_ok = _registry_ok(backend)
    payload = {
        "status": "ok" if db_ok and registry_ok else "degraded",
        "db": "ok" if db_ok else "fail",
        "registry": backend if registry_ok else f"{backend}:fail",
        "version": current_app.config.get("APP_VERSION", "dev"),
    }
    return json_response(payload, status=200 if payload["status"] == "ok" else 503)
