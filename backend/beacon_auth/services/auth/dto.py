# beacon_auth/services/auth/dto.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from beacon_auth.services.tokens.dto import TokenPairOut

UNKNOWN_DEVICE = "unknown"

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class LoginIn:
    """
    Input DTO for login.

    :param email: Principal email (case-folded on lookup).
    :type email: str
    :param password: Raw password (to be verified).
    :type password: str
    :param device_id: Client-chosen device identifier.
    :type device_id: str
    :param platform: Client platform label (``ios``, ``android``, ``web``...).
    :type platform: str
    :param user_agent: Client user agent string.
    :type user_agent: str
    """

    email: str
    password: str
    device_id: str = UNKNOWN_DEVICE
    platform: str = UNKNOWN_DEVICE
    user_agent: str = ""


@dataclass(frozen=True, slots=True)
class SecondFactorIn:
    """
    Input DTO completing a login paused for a one-time code.

    :param challenge_token: Token returned by :meth:`AuthService.login`.
    :type challenge_token: str
    :param code: One-time code from the authenticator.
    :type code: str
    :param device_id: Device the resulting session is bound to.
    :type device_id: str
    """

    challenge_token: str
    code: str
    device_id: str = UNKNOWN_DEVICE


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class LoginOut:
    """
    Either a token pair or a second-factor challenge, never both.

    :param tokens: Issued pair when no second factor is required.
    :type tokens: TokenPairOut | None
    :param challenge_token: Challenge to present with the one-time code.
    :type challenge_token: str | None
    """

    tokens: TokenPairOut | None = None
    challenge_token: str | None = None

    @property
    def requires_second_factor(self) -> bool:
        return self.challenge_token is not None


@dataclass(frozen=True, slots=True)
class SessionOut:
    """
    An active session as shown to its owner.

    :param session_id: ``jti`` of the session node.
    :type session_id: str
    :param device_id: Device identifier.
    :type device_id: str
    :param platform: Device platform, when the device row still exists.
    :type platform: str | None
    :param last_seen_at: Device last-seen time, when known.
    :type last_seen_at: datetime | None
    :param created_at: Node issuance time.
    :type created_at: datetime
    :param expires_at: Node expiry.
    :type expires_at: datetime
    """

    session_id: str
    device_id: str
    platform: str | None
    last_seen_at: datetime | None
    created_at: datetime
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class DeviceOut:
    """
    A device a principal signed in from.

    :param device_id: Client-chosen identifier.
    :type device_id: str
    :param platform: Platform label.
    :type platform: str
    :param user_agent: Last seen user agent.
    :type user_agent: str
    :param last_seen_at: Last login time from this device.
    :type last_seen_at: datetime
    """

    device_id: str
    platform: str
    user_agent: str
    last_seen_at: datetime
