"""Public interface definitions for infrastructure providers.

Every infrastructure capability is accessed exclusively through the
abstract base classes defined in this package.  Concrete adapters live in
``infra_providers/providers/`` and are selected at runtime by a
:class:`~infra_providers.providers.registry.ProviderRegistry`.

CONCRETE PROVIDER MAP:
    Interface          ->  Concrete implementations
    ---------------------------------------------------------------
    ICacheProvider     ->  MemoryCacheProvider, RedisCacheProvider
"""

from infra_providers.interfaces.cache_provider import (
    TTL_MISSING,
    TTL_NO_EXPIRY,
    ICacheProvider,
)

__all__ = [
    "ICacheProvider",
    "TTL_MISSING",
    "TTL_NO_EXPIRY",
]
