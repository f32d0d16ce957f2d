"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from marshmallow import Schema, fields, validate

# Matches the width of ``devices.user_agent``.
MAX_USER_AGENT_LENGTH = 512

# Length policy (minimum password length, minimum age) is enforced by the
# service layer from configuration; schemas only reject malformed shapes.


class RegisterSchema(Schema):
    """Input payload for account registration."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(required=True, validate=validate.Length(max=128))
    display_name = fields.String(
        required=True, data_key="displayName", validate=validate.Length(min=1, max=100)
    )
    age = fields.Integer(required=True, strict=True)


class LoginSchema(Schema):
    """Input payload for authenticating a principal."""

    email = fields.String(required=True, validate=validate.Length(min=1, max=254))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))
    device_id = fields.String(
        data_key="deviceId", load_default="unknown", validate=validate.Length(min=1, max=128)
    )
    platform = fields.String(load_default="unknown", validate=validate.Length(max=32))
    user_agent = fields.String(
        data_key="userAgent",
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=MAX_USER_AGENT_LENGTH),
    )


class SecondFactorSchema(Schema):
    """Input payload completing a login paused for a one-time code."""

    challenge_token = fields.String(required=True, data_key="tempToken")
    code = fields.String(required=True, validate=validate.Length(min=6, max=10))
    device_id = fields.String(
        data_key="deviceId", load_default="unknown", validate=validate.Length(min=1, max=128)
    )


class RefreshSchema(Schema):
    """Input payload carrying a refresh token."""

    refresh_token = fields.String(required=True, data_key="refreshToken")


class ChangePasswordSchema(Schema):
    """Input payload for a password change."""

    current_password = fields.String(required=True, data_key="currentPassword")
    new_password = fields.String(
        required=True, data_key="newPassword", validate=validate.Length(max=128)
    )


class CodeSchema(Schema):
    """Input payload carrying a one-time code."""

    code = fields.String(required=True, validate=validate.Length(min=6, max=10))


class TokenPairSchema(Schema):
    """Response payload containing an access/refresh pair."""

    access_token = fields.String(data_key="accessToken")
    refresh_token = fields.String(data_key="refreshToken")
    session_id = fields.String(data_key="sessionId")
    token_type = fields.Constant("Bearer", data_key="tokenType", dump_only=True)


class PrincipalSchema(Schema):
    """Response payload exposing the sanitized principal."""

    id = fields.Integer()
    email = fields.String()
    display_name = fields.String(data_key="displayName")
    age = fields.Integer()
    two_factor_enabled = fields.Boolean(data_key="twoFactorEnabled")


class SessionSchema(Schema):
    """Response payload for one active session."""

    session_id = fields.String(data_key="id")
    device_id = fields.String(data_key="deviceId")
    platform = fields.String(allow_none=True)
    last_seen_at = fields.DateTime(data_key="lastSeenAt", allow_none=True)
    created_at = fields.DateTime(data_key="createdAt")
    expires_at = fields.DateTime(data_key="expiresAt")


class DeviceSchema(Schema):
    """Response payload for one device."""

    device_id = fields.String(data_key="deviceId")
    platform = fields.String()
    user_agent = fields.String(data_key="userAgent")
    last_seen_at = fields.DateTime(data_key="lastSeenAt")


class EnrollmentSchema(Schema):
    """Response payload with second-factor enrollment material."""

    secret = fields.String()
    provisioning_uri = fields.String(data_key="otpauthUrl")
