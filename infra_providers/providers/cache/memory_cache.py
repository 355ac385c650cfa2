"""In-process TTL cache provider using cachetools.TLRUCache.

Each value is stored as a :class:`CacheEntry` in an unbounded
``TLRUCache`` whose time-to-use function reads the entry's own
``expires_at``, so every key carries its own TTL.  Expired entries are
removed two ways:

* **lazily**, when ``get``/``exists``/``ttl`` touches the store, and
* **actively**, by a background sweep task that calls
  ``TLRUCache.expire()`` every ``sweep_interval`` seconds so keys nobody
  reads again are still reclaimed.

The sweep is an explicit ``asyncio.Task`` owned by the provider.  It starts
on the first operation made inside a running event loop (the provider may be
constructed outside one) and is cancelled by :meth:`close`.  :meth:`sweep`
can also be called directly.

Fast, but not shared across processes.  For multi-worker deployments set
``CACHE_PROVIDER=redis``.
"""

from __future__ import annotations

import asyncio
import functools
import math
import re
import threading
import time
from typing import Any, Callable

import structlog
from cachetools import TLRUCache

from infra_providers.interfaces.cache_provider import (
    TTL_MISSING,
    TTL_NO_EXPIRY,
    ICacheProvider,
)
from infra_providers.models.cache import CacheEntry, CacheStats

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_SWEEP_INTERVAL = 60.0


@functools.lru_cache(maxsize=256)
def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile a key glob into an anchored regex.

    ``*`` becomes ``.*``, ``?`` becomes ``.``, and every other character is
    escaped so it matches literally (``[``, ``.``, ``+`` included).  Use the
    result with :meth:`re.Pattern.fullmatch`.
    """
    parts: list[str] = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.DOTALL)


def _entry_expiry(_key: str, entry: CacheEntry, _now: float) -> float:
    return entry.expires_at if entry.expires_at is not None else math.inf


class MemoryCacheProvider(ICacheProvider[Any]):
    """In-memory TTL cache backed by ``cachetools.TLRUCache``.

    Parameters
    ----------
    sweep_interval:
        Seconds between background sweeps of expired entries.
    clock:
        Monotonic time source in seconds, used as the cache timer.  Injected
        by tests to move time forward without sleeping.
    """

    def __init__(
        self,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if sweep_interval <= 0:
            raise ValueError("sweep_interval must be positive")
        self._sweep_interval = sweep_interval
        self._store: TLRUCache[str, CacheEntry] = TLRUCache(
            maxsize=math.inf, ttu=_entry_expiry, timer=clock
        )
        self._lock = threading.Lock()
        self._sweep_task: asyncio.Task[None] | None = None
        self._closed = False
        self._sweeps = 0
        self._evictions = 0

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return "memory"

    def is_configured(self) -> bool:
        """Always ``True``; this backend has no external dependency."""
        return True

    def supports_delete_pattern(self) -> bool:
        return True

    def supports_ttl(self) -> bool:
        return True

    async def get(self, key: str) -> Any | None:
        """Return the value for *key*, or ``None`` if missing/expired."""
        if self._closed:
            return None
        self._ensure_sweeper()
        entry = self._live_entry(key)
        if entry is None:
            logger.debug("cache_miss", key=key)
            return None
        logger.debug("cache_hit", key=key)
        return entry.value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value* under *key*, overwriting any previous entry."""
        if self._closed:
            return
        self._ensure_sweeper()
        with self._lock:
            self._expire_locked()
            expires_at = self._store.timer() + ttl if ttl else None
            self._store[key] = CacheEntry(value=value, expires_at=expires_at)
        logger.debug("cache_set", key=key, ttl=ttl)

    async def delete(self, key: str) -> None:
        """Remove *key* from the cache (no-op if absent)."""
        if self._closed:
            return
        with self._lock:
            self._store.pop(key, None)
        logger.debug("cache_delete", key=key)

    async def exists(self, key: str) -> bool:
        """Return ``True`` if *key* is present and not expired."""
        if self._closed:
            return False
        self._ensure_sweeper()
        return self._live_entry(key) is not None

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching the glob *pattern*; full O(n) scan."""
        if self._closed:
            return 0
        regex = glob_to_regex(pattern)
        with self._lock:
            self._expire_locked()
            matches = [key for key in list(self._store) if regex.fullmatch(key)]
            for key in matches:
                del self._store[key]
        logger.debug("cache_delete_pattern", pattern=pattern, deleted=len(matches))
        return len(matches)

    async def clear(self) -> None:
        """Drop every entry.  Only this process's store is affected."""
        if self._closed:
            return
        with self._lock:
            self._store.clear()
        logger.debug("cache_clear")

    async def ttl(self, key: str) -> int:
        """Return remaining whole seconds, ``-1`` for no expiry, ``-2`` if absent.

        An entry with less than one tick left rounds to ``-2`` rather than to
        zero, since it is about to disappear.
        """
        if self._closed:
            return TTL_MISSING
        entry = self._live_entry(key)
        if entry is None:
            return TTL_MISSING
        if entry.expires_at is None:
            return TTL_NO_EXPIRY
        remaining = math.ceil(entry.expires_at - self._store.timer())
        return remaining if remaining > 0 else TTL_MISSING

    async def close(self) -> None:
        """Cancel the sweep task and drop the store.  Idempotent."""
        if self._closed:
            return
        self._closed = True
        task, self._sweep_task = self._sweep_task, None
        if task is not None and not task.done():
            _cancel_task(task)
        with self._lock:
            self._store.clear()
        logger.info("memory_cache_closed")

    # ------------------------------------------------------------------
    # Sweep & accounting
    # ------------------------------------------------------------------

    def sweep(self) -> int:
        """Remove every expired entry in one locked pass; return how many."""
        with self._lock:
            evicted = self._expire_locked()
            self._sweeps += 1
        if evicted:
            logger.debug("cache_sweep", evicted=evicted)
        return evicted

    def get_stats(self) -> CacheStats:
        """Return store accounting.

        ``size`` and ``keys`` cover live entries only; ``evictions`` counts
        expired entries removed by an access or a sweep.
        """
        with self._lock:
            keys = [key for key in list(self._store) if key in self._store]
            return CacheStats(
                size=len(keys),
                keys=keys,
                sweeps=self._sweeps,
                evictions=self._evictions,
            )

    @property
    def sweep_running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _expire_locked(self) -> int:
        """Drop expired entries; caller holds ``_lock``."""
        expired = self._store.expire()
        self._evictions += len(expired)
        return len(expired)

    def _live_entry(self, key: str) -> CacheEntry | None:
        """Return the unexpired entry for *key*, evicting expired entries first."""
        with self._lock:
            self._expire_locked()
            return self._store.get(key)

    def _ensure_sweeper(self) -> None:
        """Start the sweep task on the running loop if it is not already running."""
        if self.sweep_running:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        with self._lock:
            if self._closed or self.sweep_running:
                return
            self._sweep_task = loop.create_task(
                self._sweep_loop(), name="memory-cache-sweep"
            )

    async def _sweep_loop(self) -> None:
        logger.debug("cache_sweep_started", interval=self._sweep_interval)
        while not self._closed:
            await asyncio.sleep(self._sweep_interval)
            self.sweep()


def _cancel_task(task: asyncio.Task[Any]) -> None:
    """Cancel *task* from any thread; a no-op once its loop has closed."""
    loop = task.get_loop()
    if loop.is_closed():
        return
    try:
        current = asyncio.get_running_loop()
    except RuntimeError:
        current = None
    if current is loop:
        task.cancel()
    else:
        loop.call_soon_threadsafe(task.cancel)
