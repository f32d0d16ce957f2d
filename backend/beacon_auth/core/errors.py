"""
RFC 7807 error responses for the auth API.

Every error leaves the service as ``application/problem+json`` with a stable
``code`` and the request's correlation id. Authentication failures of any kind
(bad password, replayed refresh token, expired challenge, wrong token type)
are rendered identically; the distinguishing ``reason`` only reaches the logs.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from flask import Flask, Response, jsonify, request
from marshmallow import ValidationError as MarshmallowValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from werkzeug.exceptions import HTTPException

from beacon_auth.core.logger import ensure_request_id

log = logging.getLogger(__name__)

#: The only message any authentication failure ever shows to a client.
REAUTHENTICATE_MESSAGE = "Unauthorized, please log in again"


def status_code_name(status: int) -> str:
    """``401 -> "unauthorized"``; unknown statuses map to ``"error"``."""
    try:
        return HTTPStatus(status).name.lower()
    except ValueError:
        return "error"


def problem(status: int, code: str, detail: str, details: dict[str, Any] | None = None) -> Response:
    """
    Build a problem+json response.

    :param status: HTTP status code.
    :param code: Stable machine-readable code.
    :param detail: Client-safe summary.
    :param details: Optional structured, client-safe context.
    """
    body: dict[str, Any] = {
        "type": "about:blank",
        "title": HTTPStatus(status).phrase,
        "status": status,
        "detail": detail,
        "instance": request.path,
        "code": code,
        "request_id": ensure_request_id(),
    }
    if details:
        body["details"] = details
    resp = jsonify(body)
    resp.status_code = status
    resp.mimetype = "application/problem+json"
    if status == HTTPStatus.UNAUTHORIZED:
        resp.headers["WWW-Authenticate"] = 'Bearer error="invalid_token"'
    return resp


class APIError(Exception):
    """
    An error the API layer knows how to render.

    :param message: Client-facing summary.
    :param status_code: HTTP status (default 400).
    :param code: Machine-readable identifier.
    :param details: Optional structured payload.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        code: str = "bad_request",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = int(status_code)
        self.code = code
        self.details = details or {}

    def to_response(self) -> Response:
        return problem(self.status_code, self.code, self.message, self.details or None)


class BadRequest(APIError):
    """400 for input outside the credential policy."""

    def __init__(self, message: str = "Bad request", details: dict[str, Any] | None = None) -> None:
        super().__init__(message, HTTPStatus.BAD_REQUEST, "validation_error", details)


class NotFound(APIError):
    """404, also used for sessions and devices owned by someone else."""

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message, HTTPStatus.NOT_FOUND, "not_found")


class Conflict(APIError):
    """409, e.g. an email that is already registered."""

    def __init__(self, message: str = "Conflict") -> None:
        super().__init__(message, HTTPStatus.CONFLICT, "conflict")


class Unauthorized(APIError):
    """401 carrying :data:`REAUTHENTICATE_MESSAGE` and nothing else."""

    def __init__(self) -> None:
        super().__init__(REAUTHENTICATE_MESSAGE, HTTPStatus.UNAUTHORIZED, "unauthorized")


def init_app(app: Flask) -> None:
    """Register the problem+json handlers. 5xx are logged with traceback, 4xx as warnings."""

    @app.errorhandler(APIError)
    def handle_api_error(err: APIError):
        level = log.error if err.status_code >= 500 else log.warning
        level("APIError: code=%s status=%s", err.code, err.status_code)
        return err.to_response()

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
        if status == HTTPStatus.NOT_FOUND:
            detail = f"Route '{request.path}' not found"
        else:
            detail = (err.description or HTTPStatus(status).phrase).strip()
        log.warning("HTTPException: status=%s path=%s", status, request.path)
        return problem(status, status_code_name(status), detail)

    @app.errorhandler(MarshmallowValidationError)
    def handle_validation_error(err: MarshmallowValidationError):
        log.warning("ValidationError: path=%s", request.path)
        return problem(
            HTTPStatus.UNPROCESSABLE_ENTITY,
            "validation_error",
            "Validation failed",
            {"errors": err.messages},
        )

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        # Raw DB messages never reach the client
        log.error("IntegrityError", exc_info=True)
        return problem(HTTPStatus.CONFLICT, "conflict", "Resource conflict")

    @app.errorhandler(OperationalError)
    def handle_operational_error(err: OperationalError):
        log.error("OperationalError", exc_info=True)
        return problem(
            HTTPStatus.SERVICE_UNAVAILABLE, "service_unavailable", "Service temporarily unavailable"
        )

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        log.error("Unhandled exception", exc_info=True)
        return problem(HTTPStatus.INTERNAL_SERVER_ERROR, "internal_server_error", "Unexpected error")
