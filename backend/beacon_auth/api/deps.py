"""Shared API helpers for request parsing and cross-cutting concerns."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar, cast

from flask import Response, current_app, g, jsonify, request
from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt import PyJWTError

from beacon_auth.core.errors import Unauthorized
from beacon_auth.infra.wiring import get_auth_service
from beacon_auth.services._shared.errors import ServiceError
from beacon_auth.services._shared.ports.token_provider import ACCESS

F = TypeVar("F", bound=Callable[..., Any])


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]


def service_errors(func: F) -> F:
    """Translate service-layer exceptions into API errors."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        try:
            return func(*args, **kwargs)
        except ServiceError as exc:
            raise get_auth_service().translate_exceptions(exc) from exc

    return wrapper  # type: ignore[return-value]


def require_auth(func: F) -> F:
    """
    Ensure the request carries a valid *access* token.

    ``verify_jwt_in_request`` checks signature and expiry and already refuses
    refresh tokens; challenge tokens carry ``type == "challenge"`` and are
    refused here. The principal id is stored in ``g.principal_id``.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        try:
            verify_jwt_in_request(optional=False)
        except (JWTExtendedException, PyJWTError) as exc:
            raise Unauthorized() from exc
        if get_jwt().get("type") != ACCESS:
            raise Unauthorized()
        try:
            g.principal_id = int(get_jwt_identity())
        except (TypeError, ValueError) as exc:
            raise Unauthorized() from exc
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def current_principal_id() -> int:
    """Return the principal authenticated by :func:`require_auth`."""

    return cast(int, g.principal_id)
