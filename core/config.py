"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for EduCenter happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. access_token_secret -> ACCESS_TOKEN_SECRET).

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. Dev mode generates missing secrets with a warning,
      production mode refuses to start without them.

Security notes:
  [M6] Signing secrets shorter than 32 chars are rejected outright.

  [M7] In production mode (DEBUG not set or false), a missing signing secret or
       OTP salt is a hard startup failure.

  [M8] The access and refresh secrets must differ. A refresh token verified
       with the access secret (or the reverse) must always fail.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or directory/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("educenter.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'educenter.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file (with DEBUG=true).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    log_level: str = "INFO"
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev value or raises, so callers never see "".
    access_token_secret: str = ""
    refresh_token_secret: str = ""
    access_token_expire_seconds: int = 15 * 60
    refresh_token_expire_seconds: int = 7 * 24 * 60 * 60

    # ------------------------------------------------------------------
    # OTP
    # ------------------------------------------------------------------

    otp_salt: str = ""
    otp_step_seconds: int = 300
    otp_digits: int = 6
    # Number of adjacent time steps accepted on each side of the current one.
    otp_valid_window: int = 1

    # ------------------------------------------------------------------
    # Mail (empty smtp_host = log the message instead of sending)
    # ------------------------------------------------------------------

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    mail_from: str = ""
    mail_from_name: str = "EduCenter"

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    page_default_limit: int = 10
    page_max_limit: int = 100

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    rate_limit_enabled: bool = True
    login_rate_limit: str = "10/minute"
    register_rate_limit: str = "5/minute"
    verify_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    # admin and super-admin accounts are created by an admin, never self-registered.
    self_registration_roles: list[str] = ["user", "ceo"]

    # ------------------------------------------------------------------
    # HTTP middleware
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost", "testserver"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secrets(self) -> "Settings":
        """Enforce the signing-secret and OTP-salt policy [M6] [M7] [M8].

        Dev mode (DEBUG=true): auto-generate any missing value with a warning.
            Tokens will not survive a restart and pending OTP codes change.

        Production mode: refuse to start if any of them is missing.
        """
        for name, min_len in (("access_token_secret", 32), ("refresh_token_secret", 32), ("otp_salt", 8)):
            value = getattr(self, name)
            if not value:
                if not self.debug:
                    raise ValueError(
                        f"{name.upper()} is required in production mode. "
                        "Set it in your environment or .env file. "
                        "To run in development mode, set DEBUG=true."
                    )
                value = secrets.token_hex(32)
                setattr(self, name, value)
                logger.warning("WARNING: Using auto-generated %s. It will not persist across restarts.", name.upper())
            if len(value) < min_len:
                raise ValueError(f"{name.upper()} must be at least {min_len} characters.")
        if self.access_token_secret == self.refresh_token_secret:
            raise ValueError("ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must differ.")
        if self.page_default_limit < 1 or self.page_max_limit < self.page_default_limit:
            raise ValueError("PAGE_DEFAULT_LIMIT must be >= 1 and <= PAGE_MAX_LIMIT.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
