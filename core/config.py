"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for SessionGate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. session_cookie -> SESSION_COOKIE). Type coercion and validation are
      built in.

  @model_validator(mode="after"): Cross-field validation once all fields are
      resolved. Rejects a non-positive session lifetime and normalizes the
      URL fields so route code can join paths with a plain f-string.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("sessiongate.config")

# Mirrors auth.providers.SUPPORTED_PROVIDERS; core/ may not import auth/.
SUPPORTED_PROVIDERS = ("google", "github", "discord", "twitter", "linkedin")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
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
    database_url: str = "sqlite:///sessiongate.db"

    # Browser-facing UI origin (login/logout redirects) and the public base
    # URL of this API (OAuth redirect_uri construction).
    ui_url: str = "http://localhost:5173"
    api_base_url: str = "http://localhost:8000"

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    session_cookie: str = "session"
    # 30 days. Sessions renew once past half of this window.
    session_expiration_seconds: int = 30 * 24 * 60 * 60

    # Path prefixes gated by the session validation middleware.
    protected_paths: list[str] = ["/api/v1/auth/me", "/private"]
    unauthorized_redirect: str = "/"

    # ------------------------------------------------------------------
    # OAuth providers (empty string means provider is disabled)
    # ------------------------------------------------------------------

    google_client_id: str = ""
    google_client_secret: str = ""
    github_client_id: str = ""
    github_client_secret: str = ""
    discord_client_id: str = ""
    discord_client_secret: str = ""
    twitter_client_id: str = ""
    twitter_client_secret: str = ""
    linkedin_client_id: str = ""
    linkedin_client_secret: str = ""

    # Upper bound (seconds) on every outbound call to a provider.
    oauth_http_timeout: float = 10.0
    oauth_rate_limit: str = "20/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_urls_and_lifetime(self) -> "Settings":
        """Normalize base URLs and reject unusable session lifetimes.

        A lifetime under 2 seconds leaves no room for the half-life renewal
        window (integer halving would make it zero).
        """
        if self.session_expiration_seconds < 2:
            raise ValueError("SESSION_EXPIRATION_SECONDS must be at least 2.")
        self.ui_url = self.ui_url.rstrip("/")
        self.api_base_url = self.api_base_url.rstrip("/")
        if self.debug:
            logger.warning("DEBUG mode enabled -- do not run this configuration in production.")
        return self

    def provider_credentials(self, provider: str) -> tuple[str, str]:
        """Return (client_id, client_secret) for a provider; ("", "") when unset."""
        return (
            getattr(self, f"{provider}_client_id", ""),
            getattr(self, f"{provider}_client_secret", ""),
        )

    def enabled_providers(self) -> list[str]:
        """Provider names with both a client ID and a client secret configured."""
        return [p for p in SUPPORTED_PROVIDERS if all(self.provider_credentials(p))]


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
