# comments in English; reST docstrings strict
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Any


@dataclass(frozen=True, slots=True)
class AuthSettings:
    """
    Session engine policy, decoupled from Flask's config object.

    :param access_ttl: Access token lifetime.
    :type access_ttl: timedelta
    :param refresh_ttl: Refresh token and session node lifetime.
    :type refresh_ttl: timedelta
    :param challenge_ttl: Second-factor challenge lifetime.
    :type challenge_ttl: timedelta
    :param password_min_length: Minimum accepted password length.
    :type password_min_length: int
    :param minimum_age: Minimum accepted age on registration.
    :type minimum_age: int
    :param totp_valid_window: Adjacent TOTP steps accepted on each side.
    :type totp_valid_window: int
    :param totp_issuer: Issuer label for provisioning URIs.
    :type totp_issuer: str
    :param max_chain_hops: Upper bound when walking a rotation chain.
    :type max_chain_hops: int
    """

    access_ttl: timedelta = timedelta(minutes=15)
    refresh_ttl: timedelta = timedelta(days=30)
    challenge_ttl: timedelta = timedelta(minutes=5)
    password_min_length: int = 8
    minimum_age: int = 18
    totp_valid_window: int = 1
    totp_issuer: str = "Beacon"
    max_chain_hops: int = 1000

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> AuthSettings:
        """Build settings from a Flask-style config mapping, keeping defaults for missing keys."""
        defaults = cls()
        return cls(
            access_ttl=timedelta(
                minutes=int(config.get("ACCESS_TOKEN_TTL_MINUTES", defaults.access_ttl // timedelta(minutes=1)))
            ),
            refresh_ttl=timedelta(
                days=int(config.get("REFRESH_TOKEN_TTL_DAYS", defaults.refresh_ttl.days))
            ),
            challenge_ttl=timedelta(
                minutes=int(
                    config.get("CHALLENGE_TTL_MINUTES", defaults.challenge_ttl // timedelta(minutes=1))
                )
            ),
            password_min_length=int(config.get("PASSWORD_MIN_LENGTH", defaults.password_min_length)),
            minimum_age=int(config.get("MINIMUM_AGE", defaults.minimum_age)),
            totp_valid_window=int(config.get("TOTP_VALID_WINDOW", defaults.totp_valid_window)),
            totp_issuer=str(config.get("TOTP_ISSUER", defaults.totp_issuer)),
            max_chain_hops=int(config.get("SESSION_CHAIN_MAX_HOPS", defaults.max_chain_hops)),
        )
