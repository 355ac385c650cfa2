"""infra-providers: swappable infrastructure backends chosen from configuration."""

from infra_providers.interfaces.cache_provider import ICacheProvider
from infra_providers.providers import build_providers, close_providers
from infra_providers.providers.cache import build_cache_registry, create_cache_provider
from infra_providers.providers.registry import ProviderRegistry

__version__ = "0.1.0"

__all__ = [
    "ICacheProvider",
    "ProviderRegistry",
    "build_cache_registry",
    "build_providers",
    "close_providers",
    "create_cache_provider",
]
