# beacon_auth/services/tokens/dto.py
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class TokenPairOut:
    """
    Output DTO with access and refresh tokens.

    :param access_token: Encoded access token.
    :type access_token: str
    :param refresh_token: Encoded refresh token.
    :type refresh_token: str
    :param session_id: ``jti`` of the session node behind the refresh token.
    :type session_id: str
    """

    access_token: str
    refresh_token: str
    session_id: str


@dataclass(frozen=True, slots=True)
class RefreshClaims:
    """
    Verified claims of a refresh token.

    :param principal_id: Token subject.
    :type principal_id: int
    :param device_id: Device the token was issued to.
    :type device_id: str
    :param jti: Session node identifier.
    :type jti: str
    """

    principal_id: int
    device_id: str
    jti: str
