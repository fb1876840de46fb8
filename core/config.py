"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads happen here. No module should call os.getenv()
or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Some fields also accept legacy deployment
      names (JWT_ACCESS_SECRET, JWT_ACCESS_EXPIRY, JWT_REFRESH_EXPIRY_DAYS,
      BCRYPT_ROUNDS) through AliasChoices.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. Dev mode generates a signing key with a warning,
      production mode refuses to start without one.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. HS256 signing relies
  on key entropy -- a short key lets an attacker brute-force the key offline
  from a single captured access token.

  Token lifetimes are explicit timedelta / int values validated at startup.
  A typo such as JWT_ACCESS_EXPIRY=15 minutes fails loudly instead of
  silently producing tokens with an unexpected lifetime.

Layer rule: core/ is the kernel. This module may not import from api/, auth/
or reports/.
"""

import logging
import re
import secrets
from datetime import timedelta
from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("compliance.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'compliance.db'}"

# "15m", "1h", "30s", "7d" shorthand for durations.
_DURATION_RE = re.compile(r"^(\d+)\s*([smhd])$")
_DURATION_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


def parse_duration(value: object) -> object:
    """Translate a shorthand duration string into a timedelta.

    Anything that is not shorthand is returned unchanged so pydantic's own
    timedelta parsing (integer seconds, ISO 8601 "PT15M", "HH:MM:SS") still
    applies.
    """
    if isinstance(value, str):
        match = _DURATION_RE.match(value.strip().lower())
        if match:
            amount, unit = match.groups()
            return timedelta(**{_DURATION_UNITS[unit]: int(amount)})
    return value


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = Field(default="", validation_alias=AliasChoices("secret_key", "jwt_access_secret"))

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    access_token_expiry: timedelta = Field(
        default=timedelta(minutes=15),
        validation_alias=AliasChoices("access_token_expiry", "jwt_access_expiry"),
    )
    refresh_token_expiry_days: int = Field(
        default=7,
        ge=1,
        validation_alias=AliasChoices("refresh_token_expiry_days", "jwt_refresh_expiry_days"),
    )
    # Off by default: a refresh token stays valid until expiry or logout.
    refresh_token_rotation: bool = False

    # ------------------------------------------------------------------
    # Password hashing
    # ------------------------------------------------------------------

    password_hash_rounds: int = Field(
        default=10,
        ge=4,
        le=31,
        validation_alias=AliasChoices("password_hash_rounds", "bcrypt_rounds"),
    )

    # ------------------------------------------------------------------
    # Database
    # ------------------------------------------------------------------

    database_url: str = _DEFAULT_DB_URL
    db_pool_size: int = Field(default=20, ge=1)
    db_pool_timeout: float = Field(default=2.0, gt=0)

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    cors_origins: str = "http://localhost:5173"
    allowed_hosts: str = "*"
    login_rate_limit: str = "10/minute"
    register_rate_limit: str = "5/minute"

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    session_purge_interval_seconds: int = Field(default=6 * 60 * 60, ge=60)

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("access_token_expiry", mode="before")
    @classmethod
    def parse_access_token_expiry(cls, value: object) -> object:
        return parse_duration(value)

    @field_validator("access_token_expiry")
    @classmethod
    def require_positive_expiry(cls, value: timedelta) -> timedelta:
        if value <= timedelta(0):
            raise ValueError("ACCESS_TOKEN_EXPIRY must be a positive duration.")
        return value

    @field_validator("database_url")
    @classmethod
    def normalize_database_url(cls, value: str) -> str:
        """Rewrite Heroku/Railway style postgres:// URLs for SQLAlchemy 2.x."""
        if value.startswith("postgres://"):
            return "postgresql://" + value[len("postgres://") :]
        return value

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Access tokens will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "WARNING: Using auto-generated SECRET_KEY. " "Access tokens will not persist across restarts."
                )
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY (or JWT_ACCESS_SECRET) in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def refresh_token_lifetime(self) -> timedelta:
        return timedelta(days=self.refresh_token_expiry_days)

    @property
    def cors_origin_list(self) -> list[str]:
        return _split_csv(self.cors_origins)

    @property
    def allowed_host_list(self) -> list[str]:
        return _split_csv(self.allowed_hosts) or ["*"]


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    All modules should call get_settings() rather than constructing Settings()
    directly.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
