"""Concrete provider adapters and the per-domain registries that select them.

:func:`build_providers` assembles one :class:`ProviderRegistry` per domain.
The application calls it once at start-up and keeps the result; each
registry then resolves its domain's backend lazily on first ``get()``.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from infra_providers.config.settings import Settings
from infra_providers.providers.cache import CACHE_DOMAIN, build_cache_registry
from infra_providers.providers.registry import ProviderRegistry, RegistryState


def build_providers(
    settings_factory: Callable[[], Settings] = Settings,
) -> dict[str, ProviderRegistry[Any]]:
    """Construct every provider registry for the application.

    Returns a dict keyed by domain name.  No backend is built until a
    registry's ``get()`` is first called.
    """
    return {
        CACHE_DOMAIN: build_cache_registry(settings_factory),
    }


async def close_providers(registries: dict[str, ProviderRegistry[Any]]) -> None:
    """Close every registry's active backend (process shutdown)."""
    for registry in registries.values():
        await registry.aclose()


__all__ = [
    "ProviderRegistry",
    "RegistryState",
    "build_providers",
    "close_providers",
]
