"""Configuration module -- exports Settings.

Registries build a fresh ``Settings()`` on every resolution, so a changed
``CACHE_PROVIDER`` is observed without restarting the process.  No
module-level instance is kept.
"""

from infra_providers.config.settings import Settings

__all__ = ["Settings"]
