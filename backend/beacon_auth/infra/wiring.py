"""Composition root: pick adapters from config and build the auth service."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, cast

from flask import Flask, current_app

from beacon_auth.core.extensions import get_redis
from beacon_auth.infra.jwt.flask_jwt_token_provider import JWTTokenProvider
from beacon_auth.infra.redis.redis_session_registry import RedisSessionRegistry
from beacon_auth.infra.sql.sql_session_registry import SQLSessionRegistry
from beacon_auth.services._shared.ports import InMemorySessionRegistry, SessionRegistry
from beacon_auth.services._shared.settings import AuthSettings
from beacon_auth.services.auth.service import AuthService

EXTENSION_KEY = "auth_service"
REGISTRY_BACKENDS = ("sql", "redis", "memory")


def build_session_registry(config: Mapping[str, Any]) -> SessionRegistry:
    """
    Instantiate the session registry named by ``SESSION_REGISTRY_BACKEND``.

    :raises RuntimeError: For an unknown backend name.
    """
    backend = str(config.get("SESSION_REGISTRY_BACKEND", "sql")).strip().lower()
    max_hops = AuthSettings.from_mapping(config).max_chain_hops
    if backend == "sql":
        return SQLSessionRegistry(max_hops=max_hops)
    if backend == "redis":
        return RedisSessionRegistry(get_redis(), max_hops=max_hops)
    if backend == "memory":
        return InMemorySessionRegistry(max_hops=max_hops)
    raise RuntimeError(
        f"Unknown SESSION_REGISTRY_BACKEND {backend!r}; expected one of {REGISTRY_BACKENDS}"
    )


def build_auth_service(app: Flask) -> AuthService:
    return AuthService(
        token_provider=JWTTokenProvider(),
        registry=build_session_registry(app.config),
        settings=AuthSettings.from_mapping(app.config),
    )


def get_auth_service(app: Flask | None = None) -> AuthService:
    """Return the app-wide :class:`AuthService`, building it on first use."""
    target = app if app is not None else current_app
    service = target.extensions.get(EXTENSION_KEY)
    if service is None:
        service = build_auth_service(target)
        target.extensions[EXTENSION_KEY] = service
    return cast(AuthService, service)
