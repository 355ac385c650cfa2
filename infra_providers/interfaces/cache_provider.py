"""Abstract base class for cache service providers.

Defines the contract for key-value caching shared by every backend.  Call
sites depend on :class:`ICacheProvider` only; which backend is active is
decided by the provider registry from configuration.

``delete_pattern`` and ``ttl`` are optional capabilities.  A backend that
implements them overrides both the method and the matching ``supports_*``
flag; a backend that does not inherits the base implementation, which
raises :class:`CapabilityNotSupportedError` naming the provider.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from infra_providers.utils.errors import CapabilityNotSupportedError

_V = TypeVar("_V")

# ttl() sentinels, matching Redis TTL semantics.
TTL_NO_EXPIRY = -1
TTL_MISSING = -2


# Concrete implementations: MemoryCacheProvider, RedisCacheProvider
# Located in: infra_providers/providers/cache/
class ICacheProvider(ABC, Generic[_V]):
    """Contract for key-value cache services.

    All data operations are async so network-backed stores (e.g. Redis)
    never block the event loop.  ``None`` is the "not found" sentinel, so
    ``None`` itself cannot be cached meaningfully.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier for logging, e.g. ``"memory"`` or ``"redis"``."""

    @abstractmethod
    async def get(self, key: str) -> _V | None:
        """Retrieve the value stored under *key*.

        Parameters
        ----------
        key:
            The cache key to look up.

        Returns
        -------
        Any or None
            The cached value if present and not expired; ``None`` otherwise.

        Raises
        ------
        infra_providers.utils.errors.ProviderUnavailableError
            If a network-backed store cannot be reached.
        """

    @abstractmethod
    async def set(self, key: str, value: _V, ttl: int | None = None) -> None:
        """Store *value* under *key* with an optional time-to-live.

        Parameters
        ----------
        key:
            The cache key.
        value:
            The value to store.  In-process backends keep the reference;
            network backends JSON-encode every value, strings included.
        ttl:
            Time-to-live in seconds.  ``None`` (or ``0``) means the entry
            does not expire automatically.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the entry stored under *key*.

        This is a no-op if the key does not exist.
        """

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return ``True`` if *key* is present in the cache and not expired."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove every entry reachable by this provider.

        The reach differs per backend; see the concrete implementation.
        """

    @abstractmethod
    def is_configured(self) -> bool:
        """Return ``True`` if the backend has what it needs to operate.

        Implementations check configuration only and never touch the network.
        """

    @abstractmethod
    async def close(self) -> None:
        """Release background tasks and connections.

        Safe to call more than once.  After closing, the provider is inert:
        reads miss and writes are ignored.
        """

    # ------------------------------------------------------------------
    # Optional capabilities
    # ------------------------------------------------------------------

    def supports_delete_pattern(self) -> bool:
        """Return ``True`` if :meth:`delete_pattern` is implemented."""
        return False

    def supports_ttl(self) -> bool:
        """Return ``True`` if :meth:`ttl` is implemented."""
        return False

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching the glob *pattern*.

        ``*`` matches any run of characters (including none) and ``?``
        matches exactly one character; everything else matches literally.

        Returns
        -------
        int
            The number of keys removed.

        Raises
        ------
        CapabilityNotSupportedError
            If the backend does not implement pattern deletion.
        """
        raise CapabilityNotSupportedError(
            message="delete_pattern is not supported",
            provider_name=self.name,
        )

    async def ttl(self, key: str) -> int:
        """Return the remaining time-to-live of *key* in whole seconds.

        Returns :data:`TTL_NO_EXPIRY` (``-1``) for a key without expiry and
        :data:`TTL_MISSING` (``-2``) for a missing or expired key.

        Raises
        ------
        CapabilityNotSupportedError
            If the backend does not implement TTL inspection.
        """
        raise CapabilityNotSupportedError(
            message="ttl is not supported",
            provider_name=self.name,
        )
