"""Authentication and session endpoints using the service layer."""

from __future__ import annotations

from flask import Blueprint, request

from beacon_auth.api.deps import (
    current_principal_id,
    json_response,
    require_auth,
    service_errors,
    timing,
)
from beacon_auth.infra.wiring import get_auth_service
from beacon_auth.schemas import (
    MAX_USER_AGENT_LENGTH,
    ChangePasswordSchema,
    CodeSchema,
    DeviceSchema,
    EnrollmentSchema,
    LoginSchema,
    PrincipalSchema,
    RefreshSchema,
    RegisterSchema,
    SecondFactorSchema,
    SessionSchema,
    TokenPairSchema,
)
from beacon_auth.services.auth.dto import LoginIn, SecondFactorIn
from beacon_auth.services.credentials.dto import PasswordChangeIn, RegisterIn

bp = Blueprint("auth", __name__)

register_schema = RegisterSchema()
login_schema = LoginSchema()
second_factor_schema = SecondFactorSchema()
refresh_schema = RefreshSchema()
change_password_schema = ChangePasswordSchema()
code_schema = CodeSchema()
token_schema = TokenPairSchema()
principal_schema = PrincipalSchema()
session_schema = SessionSchema(many=True)
device_schema = DeviceSchema(many=True)
enrollment_schema = EnrollmentSchema()


def _body() -> dict:
    return request.get_json(silent=True) or {}


# --------------------------------------------------------------------------- #
# Public
# --------------------------------------------------------------------------- #


@bp.post("/register")
@timing
@service_errors
def register():
    """Register a new principal and return its public representation."""

    data = register_schema.load(_body())
    principal = get_auth_service().register(RegisterIn(**data))
    return json_response({"data": principal_schema.dump(principal)}, status=201)


@bp.post("/login")
@timing
@service_errors
def login():
    """Authenticate credentials; answer with a token pair or a 2FA challenge."""

    data = login_schema.load(_body())
    if data.get("user_agent") is None:
        data["user_agent"] = request.headers.get("User-Agent", "")[:MAX_USER_AGENT_LENGTH]
    result = get_auth_service().login(LoginIn(**data))
    if result.requires_second_factor:
        body = {"require2FA": True, "tempToken": result.challenge_token}
        return json_response({"data": body})
    return json_response({"data": token_schema.dump(result.tokens)})


@bp.post("/verify-2fa")
@timing
@service_errors
def verify_second_factor():
    """Complete a login paused for a one-time code."""

    data = second_factor_schema.load(_body())
    pair = get_auth_service().verify_second_factor(SecondFactorIn(**data))
    return json_response({"data": token_schema.dump(pair)})


@bp.post("/refresh")
@timing
@service_errors
def refresh():
    """Rotate a refresh token into a new pair."""

    data = refresh_schema.load(_body())
    pair = get_auth_service().rotate(data["refresh_token"])
    return json_response({"data": token_schema.dump(pair)})


@bp.post("/logout")
@timing
@service_errors
def logout():
    """Revoke the presented refresh token; always succeeds."""

    token = _body().get("refreshToken")
    if isinstance(token, str) and token:
        get_auth_service().logout(token)
    return json_response({"data": {"loggedOut": True}})


# --------------------------------------------------------------------------- #
# Authenticated
# --------------------------------------------------------------------------- #


@bp.post("/logout-all")
@require_auth
@timing
@service_errors
def logout_all():
    """Sign out everywhere."""

    revoked = get_auth_service().logout_all(current_principal_id())
    return json_response({"data": {"revoked": revoked}})


@bp.get("/me")
@require_auth
@timing
@service_errors
def me():
    """Return the authenticated principal."""

    principal = get_auth_service().me(current_principal_id())
    return json_response({"data": principal_schema.dump(principal)})


@bp.post("/change-password")
@require_auth
@timing
@service_errors
def change_password():
    """Change the password and revoke every session."""

    data = change_password_schema.load(_body())
    revoked = get_auth_service().change_password(current_principal_id(), PasswordChangeIn(**data))
    return json_response({"data": {"revoked": revoked}})


@bp.get("/sessions")
@require_auth
@timing
@service_errors
def list_sessions():
    sessions = get_auth_service().list_sessions(current_principal_id())
    return json_response({"data": session_schema.dump(sessions)})


@bp.delete("/sessions/<string:session_id>")
@require_auth
@timing
@service_errors
def revoke_session(session_id: str):
    get_auth_service().revoke_session(current_principal_id(), session_id)
    return json_response({"data": {"revoked": True}})


@bp.get("/devices")
@require_auth
@timing
@service_errors
def list_devices():
    devices = get_auth_service().list_devices(current_principal_id())
    return json_response({"data": device_schema.dump(devices)})


@bp.delete("/devices/<string:device_id>")
@require_auth
@timing
@service_errors
def remove_device(device_id: str):
    """Forget a device and revoke its sessions."""

    revoked = get_auth_service().remove_device(current_principal_id(), device_id)
    return json_response({"data": {"revoked": revoked}})


@bp.post("/2fa/enroll")
@require_auth
@timing
@service_errors
def enroll_second_factor():
    """Start TOTP enrollment; returns the secret and provisioning URI once."""

    enrollment = get_auth_service().begin_second_factor_enrollment(current_principal_id())
    return json_response({"data": enrollment_schema.dump(enrollment)})


@bp.post("/2fa/confirm")
@require_auth
@timing
@service_errors
def confirm_second_factor():
    """Enable the second factor after a valid code."""

    data = code_schema.load(_body())
    principal = get_auth_service().confirm_second_factor(current_principal_id(), data["code"])
    return json_response({"data": principal_schema.dump(principal)})
