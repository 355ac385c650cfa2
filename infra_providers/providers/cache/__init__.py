"""Cache providers and the cache-domain registry wiring.

``CACHE_PROVIDER`` selects the backend:

* ``memory`` (default) -- :class:`MemoryCacheProvider`, process-local.
* ``redis`` -- :class:`RedisCacheProvider`, shared through ``REDIS_URL``,
  namespaced by ``REDIS_KEY_PREFIX``.

Anything else falls back to ``memory`` with a warning.

Usage::

    registry = build_cache_registry()
    cache = registry.get()
    await cache.set("user:123", {"name": "Ada"}, ttl=3600)
    user = await cache.get("user:123")
"""

from __future__ import annotations

from collections.abc import Callable

from infra_providers.config.settings import Settings
from infra_providers.interfaces.cache_provider import ICacheProvider
from infra_providers.providers.cache.memory_cache import MemoryCacheProvider
from infra_providers.providers.cache.redis_cache import RedisCacheProvider
from infra_providers.providers.registry import ProviderBuilder, ProviderRegistry

CACHE_DOMAIN = "cache"
DEFAULT_CACHE_PROVIDER = "memory"


def _build_memory(settings: Settings) -> ICacheProvider:
    return MemoryCacheProvider(sweep_interval=settings.cache_sweep_interval_seconds)


def _build_redis(settings: Settings) -> ICacheProvider:
    return RedisCacheProvider(
        url=settings.redis_url,
        key_prefix=settings.redis_key_prefix,
        scan_count=settings.redis_scan_count,
    )


CACHE_PROVIDERS: dict[str, ProviderBuilder[ICacheProvider]] = {
    "memory": _build_memory,
    "redis": _build_redis,
}


def build_cache_registry(
    settings_factory: Callable[[], Settings] = Settings,
) -> ProviderRegistry[ICacheProvider]:
    """Return a new, empty registry for the cache domain."""
    return ProviderRegistry(
        domain=CACHE_DOMAIN,
        builders=CACHE_PROVIDERS,
        default_tag=DEFAULT_CACHE_PROVIDER,
        tag_reader=Settings.get_cache_provider_tag,
        settings_factory=settings_factory,
    )


def create_cache_provider(tag: str, settings: Settings | None = None) -> ICacheProvider:
    """Build a cache backend of *tag* directly, outside any registry.

    Raises :class:`~infra_providers.utils.errors.ConfigurationError` for an
    unknown tag.
    """
    return build_cache_registry().create(tag, settings)


__all__ = [
    "CACHE_PROVIDERS",
    "DEFAULT_CACHE_PROVIDER",
    "MemoryCacheProvider",
    "RedisCacheProvider",
    "build_cache_registry",
    "create_cache_provider",
]
