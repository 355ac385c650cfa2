"""Utility modules for infra-providers.

- **errors** -- Exception hierarchy rooted at InfraProviderError; each
  failure kind has its own subclass so callers can handle it without broad
  ``except Exception`` blocks.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production, configured
  from ``LOG_LEVEL`` and ``APP_ENV``.
"""

from infra_providers.utils.errors import (
    CacheError,
    CapabilityNotSupportedError,
    ConfigurationError,
    InfraProviderError,
    ProviderUnavailableError,
)
from infra_providers.utils.logging import configure_logging, configure_logging_from_settings

__all__ = [
    "CacheError",
    "CapabilityNotSupportedError",
    "ConfigurationError",
    "InfraProviderError",
    "ProviderUnavailableError",
    "configure_logging",
    "configure_logging_from_settings",
]
