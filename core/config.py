"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for QuizDesk happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Singleton via lru_cache: get_settings() instantiates Settings once and returns
the cached instance afterwards. Tests call get_settings.cache_clear() when
they need a different environment.

Security notes:
  SECRET_KEY signs JWTs, keys the OTP HMAC and the session cookie used by the
  Google redirect flow. Keys shorter than 32 chars are rejected. Outside
  DEBUG mode a missing key is a hard startup failure.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/ or quiz/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("quizdesk.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'quizdesk.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Field names map to upper-cased env vars (secret_key -> SECRET_KEY).
    Every field has a default so Settings() works in tests without a .env.
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
    # "" means not configured; the validator below fills or rejects it.
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    token_expire_seconds: int = 7 * 24 * 3600
    secure_cookies: bool = False
    otp_ttl_seconds: int = 600

    # ------------------------------------------------------------------
    # Google sign-in (empty string means disabled)
    # ------------------------------------------------------------------

    google_client_id: str = ""
    google_client_secret: str = ""

    # ------------------------------------------------------------------
    # Frontend / CORS
    # ------------------------------------------------------------------

    frontend_url: str = "http://localhost:3000"
    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    # Host headers accepted by TrustedHostMiddleware. Narrow this in production.
    allowed_hosts: list[str] = ["*"]

    # ------------------------------------------------------------------
    # Outbound mail (OTP delivery)
    # ------------------------------------------------------------------

    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    email_user: str = ""
    email_password: str = ""
    email_from: str = ""

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    otp_rate_limit: str = "5/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Generate a throwaway key in DEBUG mode, refuse to start otherwise."""
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Tokens will not survive a restart.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @property
    def mail_configured(self) -> bool:
        return bool(self.email_user and self.email_password)

    @property
    def google_enabled(self) -> bool:
        return bool(self.google_client_id)


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton."""
    return Settings()
