"""Global Flask extension instances and initialization helpers."""

from __future__ import annotations

from datetime import timedelta

import redis  # type: ignore[import-untyped]
from flask import Flask
from flask_jwt_extended import JWTManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from sqlalchemy import MetaData

# Global naming convention for all constraints
convention = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)

# Global singletons (import-safe)
db: SQLAlchemy = SQLAlchemy(session_options={"autoflush": False}, metadata=metadata)
migrate = Migrate(render_as_batch=True)
jwt = JWTManager()
redis_client: redis.Redis | None = None


def _configure_jwt(app: Flask) -> None:
    """Derive ``flask-jwt-extended`` settings from the session engine settings."""
    app.config.setdefault(
        "JWT_ACCESS_TOKEN_EXPIRES",
        timedelta(minutes=int(app.config.get("ACCESS_TOKEN_TTL_MINUTES", 15))),
    )
    app.config.setdefault(
        "JWT_REFRESH_TOKEN_EXPIRES",
        timedelta(days=int(app.config.get("REFRESH_TOKEN_TTL_DAYS", 30))),
    )
    app.config.setdefault("JWT_TOKEN_LOCATION", ["headers"])


def init_app(app: Flask) -> None:
    """Initialize SQLAlchemy, migrations, JWT and, for the Redis session
    registry, the Redis client.

    Parameters
    ----------
    app: flask.Flask
        Application used to bind extension instances. Importing
        :mod:`beacon_auth.models` here registers the principal, device and
        session-node tables with the metadata Alembic reads.
    """
    db.init_app(app)

    # Ensure models are imported so Alembic sees metadata
    from beacon_auth import models as _models  # noqa: F401

    migrate.init_app(app, db)
    _configure_jwt(app)
    jwt.init_app(app)

    global redis_client
    redis_url = app.config.get("REDIS_URL")
    backend = str(app.config.get("SESSION_REGISTRY_BACKEND", "sql")).strip().lower()
    if backend != "redis" or not redis_url:
        redis_client = None
        app.extensions.pop("redis_client", None)
        return

    # Session hashes are read back as str
    redis_client = redis.Redis.from_url(redis_url, decode_responses=True)
    try:
        redis_client.ping()
    except RedisError as exc:
        raise RuntimeError(f"Failed to connect to Redis at {redis_url!r}") from exc
    app.extensions["redis_client"] = redis_client


def get_redis() -> redis.Redis:
    """Return the initialized Redis client."""
    if redis_client is None:
        raise RuntimeError("Redis client is not initialized. Set REDIS_URL first.")
    return redis_client
