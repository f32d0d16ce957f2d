"""Application factory wiring Flask extensions and blueprints."""

from __future__ import annotations

from flask import Flask

from beacon_auth.core.config import BaseConfig, get_config
from beacon_auth.core.logger import configure_logging
from beacon_auth.core.logger import init_app as init_logging

PLACEHOLDER_SECRET_PREFIX = "CHANGE_ME"


def check_session_engine_config(app: Flask) -> None:
    """
    Refuse to start with a session engine that cannot be trusted.

    :raises RuntimeError: Unknown ``SESSION_REGISTRY_BACKEND``, or the
        placeholder ``JWT_SECRET_KEY`` outside debug/testing.
    """
    from beacon_auth.infra.wiring import REGISTRY_BACKENDS

    backend = str(app.config.get("SESSION_REGISTRY_BACKEND", "sql")).strip().lower()
    if backend not in REGISTRY_BACKENDS:
        raise RuntimeError(
            f"Unknown SESSION_REGISTRY_BACKEND {backend!r}; expected one of {REGISTRY_BACKENDS}"
        )
    secret = str(app.config.get("JWT_SECRET_KEY") or "")
    if not (app.debug or app.testing) and (not secret or secret.startswith(PLACEHOLDER_SECRET_PREFIX)):
        raise RuntimeError("JWT_SECRET_KEY must be set to a real secret outside development")


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
) -> Flask:
    """
    Build the auth service application.

    Order matters: config and its sanity check first, then logging, then the
    proxy fix so device records see the real client address, then
    extensions, request-id hooks, CORS, blueprints, error handlers and the
    ``flask sessions`` CLI.
    """

    app = Flask(__name__, instance_relative_config=instance_relative_config)

    app.config.from_object(get_config() if config is None else config)
    if instance_relative_config and instance_config_filename:
        app.config.from_pyfile(instance_config_filename, silent=True)
    check_session_engine_config(app)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    from beacon_auth.core import cors, errors, extensions, proxy

    proxy.init_app(app)
    extensions.init_app(app)
    init_logging(app)
    cors.init_app(app)

    from beacon_auth.api import init_app as init_api

    init_api(app)
    errors.init_app(app)

    from beacon_auth import cli as app_cli

    app_cli.init_app(app)

    return app
