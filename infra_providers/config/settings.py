"""Application settings loaded from environment variables via pydantic-settings.

Settings are read from two sources (in priority order):

  1. Environment variables -- e.g. ``CACHE_PROVIDER=redis``
  2. A ``.env`` file in the working directory (local development)

Field names map to upper-cased environment variables automatically, so
``cache_provider`` is read from ``CACHE_PROVIDER``.  Empty strings mean
"not configured": a Redis cache built with an empty ``redis_url`` reports
``is_configured() == False``.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """infra-providers settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # === Cache provider selection ===
    # "memory" or "redis"; anything else falls back to "memory" with a warning.
    cache_provider: str = "memory"
    cache_sweep_interval_seconds: float = Field(default=60.0, gt=0)

    # === Redis ===
    redis_url: str = ""
    redis_key_prefix: str = ""
    redis_scan_count: int = Field(default=100, ge=1)

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    def get_cache_provider_tag(self) -> str:
        """Return the normalised cache provider tag (trimmed, lower-cased)."""
        return self.cache_provider.strip().lower()
