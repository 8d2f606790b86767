"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for ServiceHub happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. The
      lifespan in api/main.py calls it once and hands the object to the
      components that need it (TokenService, UserStore). Nothing reads
      settings at import time.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET). Type coercion and validation are built in.

Security notes:
  [M6] JWT_SECRET shorter than 32 chars is rejected outright. HMAC-SHA256 and
       JWT signing both rely on key entropy -- a short key weakens both.

  [M7] A missing JWT_SECRET is a hard startup failure in every mode. The
       service must never sign tokens with an undefined key.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("servicehub.config")

SEVEN_DAYS = 7 * 24 * 3600
ONE_HOUR = 3600
ONE_DAY = 24 * 3600


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Every field except jwt_secret has a default, so tests only need to set
    JWT_SECRET (or pass jwt_secret=... directly) to build a Settings object.
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
    database_url: str = "sqlite:///servicehub.db"
    # Base URL of the web frontend; reset and verification links point here.
    app_base_url: str = "http://localhost:3000"

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below raises, so callers never see "".
    jwt_secret: str = ""
    jwt_expire_seconds: int = Field(default=SEVEN_DAYS, gt=0)
    verification_token_ttl_seconds: int = Field(default=ONE_DAY, gt=0)

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    cors_allowed_origins: list[str] = [f"http://localhost:{port}" for port in range(3000, 3006)]
    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Fixed values
    # ------------------------------------------------------------------

    @property
    def reset_token_ttl_seconds(self) -> int:
        """Password reset tokens always live exactly one hour."""
        return ONE_HOUR

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_jwt_secret(self) -> "Settings":
        """Refuse to start without a usable signing secret [M6][M7]."""
        if not self.jwt_secret:
            raise ValueError(
                "JWT_SECRET is required. Set JWT_SECRET in your environment or .env file."
            )
        if len(self.jwt_secret) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters.")
        if self.debug:
            logger.warning("DEBUG is enabled -- do not run this configuration in production.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
