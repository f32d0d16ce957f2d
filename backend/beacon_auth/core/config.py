"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'


# Load .env for local runs (no-op when the file is missing)
load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_int(name: str, default: int) -> int:
    """Parse an integer from an environment variable, falling back to ``default``."""
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return int(val)


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SECRET_KEY: str
        Flask secret. Defaults to a development placeholder and must be
        overridden in production.
    JWT_SECRET_KEY: str
        Server-held key used by ``flask-jwt-extended`` to sign every token
        (access, refresh and second-factor challenge).
    JWT_ALGORITHM: str
        Signing algorithm for compact tokens.
    ACCESS_TOKEN_TTL_MINUTES: int
        Lifetime of stateless access tokens.
    REFRESH_TOKEN_TTL_DAYS: int
        Lifetime of refresh tokens and their persisted session nodes.
    CHALLENGE_TTL_MINUTES: int
        Lifetime of the token bridging password and second-factor checks.
    PASSWORD_MIN_LENGTH: int
        Minimum accepted password length on registration and change.
    MINIMUM_AGE: int
        Minimum age accepted on registration.
    TOTP_VALID_WINDOW: int
        Adjacent time steps accepted by the one-time code checker.
    TOTP_ISSUER: str
        Issuer label placed in provisioning URIs.
    SESSION_CHAIN_MAX_HOPS: int
        Upper bound when walking a rotation chain.
    SESSION_REGISTRY_BACKEND: str
        ``"sql"`` (default), ``"redis"`` or ``"memory"``.
    REDIS_URL: str | None
        Connection URL used when the Redis registry is selected.
    SQLALCHEMY_DATABASE_URI: str
        Database connection string consumed by SQLAlchemy.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).
    CORS_ORIGINS: str
        Comma-separated list of allowed origins for CORS.

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"

    # Secrets / signing
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "CHANGE_ME_JWT_SECRET_AT_LEAST_32_BYTES")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

    # Session engine
    ACCESS_TOKEN_TTL_MINUTES = env_int("ACCESS_TOKEN_TTL_MINUTES", 15)
    REFRESH_TOKEN_TTL_DAYS = env_int("REFRESH_TOKEN_TTL_DAYS", 30)
    CHALLENGE_TTL_MINUTES = env_int("CHALLENGE_TTL_MINUTES", 5)
    PASSWORD_MIN_LENGTH = env_int("PASSWORD_MIN_LENGTH", 8)
    MINIMUM_AGE = env_int("MINIMUM_AGE", 18)
    TOTP_VALID_WINDOW = env_int("TOTP_VALID_WINDOW", 1)
    TOTP_ISSUER = os.getenv("TOTP_ISSUER", "Beacon")
    SESSION_CHAIN_MAX_HOPS = env_int("SESSION_CHAIN_MAX_HOPS", 1000)
    SESSION_REGISTRY_BACKEND = os.getenv("SESSION_REGISTRY_BACKEND", "sql")
    REDIS_URL = os.getenv("REDIS_URL")

    # DB
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging & CORS
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:19006")

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development."""

    DEBUG = env_bool("FLASK_DEBUG", True)
    CORS_MAX_AGE = 600  # 10 minutes


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Never connects to Redis; the SQL registry is always used.
    """

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    JWT_SECRET_KEY = "testing-secret-key-with-enough-entropy-0123456789"
    SESSION_REGISTRY_BACKEND = "sql"
    REDIS_URL = None
    PROPAGATE_EXCEPTIONS = True


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments."""

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False


CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)
