"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Forkline happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. The API
      lifespan also copies it onto app.state.settings so routes can read it
      without importing this module.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Used for the JWT_SECRET policy below.

Security notes:
  JWT_SECRET shorter than 32 chars is rejected outright. The identity
  provider signs access tokens with HS256; a short shared secret weakens
  verification.

  An empty JWT_SECRET disables bearer verification on POST /api/ensure-user.
  That is allowed (the endpoint then trusts its caller) but logged as a
  warning outside debug mode.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
auth/, or accounts/.
"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("forkline.config")

DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'forkline.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.

    Environment variable name mapping: field names are uppercased automatically.
    E.g. `auth_url` reads from AUTH_URL, `debug` reads from DEBUG.
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
    version: str = "0.1.0"

    # ------------------------------------------------------------------
    # Backing store
    # ------------------------------------------------------------------

    database_url: str = DEFAULT_DB_URL
    # Rows fetched by the diagnostic page. Small on purpose: it is a smoke test.
    diagnostic_row_limit: int = 1

    # ------------------------------------------------------------------
    # Identity provider (GoTrue-compatible REST API)
    # ------------------------------------------------------------------

    # e.g. https://<project>.supabase.co/auth/v1
    auth_url: str = ""
    auth_api_key: str = ""
    # Shared HS256 secret the provider signs access tokens with.
    # Empty string disables bearer verification on /api/ensure-user.
    jwt_secret: str = ""

    # ------------------------------------------------------------------
    # Login flow
    # ------------------------------------------------------------------

    # Where the login flow sends its provisioning call. Normally this server.
    api_base_url: str = "http://127.0.0.1:8000"
    home_path: str = "/"
    secure_cookies: bool = False

    # ------------------------------------------------------------------
    # HTTP surface
    # ------------------------------------------------------------------

    ensure_user_rate_limit: str = "30/minute"
    rate_limit_storage_uri: str = "memory://"
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_jwt_secret(self) -> "Settings":
        """Enforce the JWT_SECRET policy.

        Empty: bearer tokens are not verified. Warn unless DEBUG is on.
        Non-empty: must be at least 32 characters.
        """
        if not self.jwt_secret:
            if not self.debug:
                logger.warning(
                    "JWT_SECRET is not set. " "POST /api/ensure-user will accept requests without a verified bearer token."
                )
        elif len(self.jwt_secret) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    All modules should call get_settings() rather than constructing Settings() directly.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
