"""Redis cache provider.

Delegates storage to a Redis server through ``redis.asyncio``.  Use this
backend when several processes must share one cache.

Connection is lazy: nothing touches the network until the first operation,
so a process can start while Redis is briefly unavailable.  If Redis is
still unreachable at that point, the operation raises
:class:`ProviderUnavailableError`; this layer never retries.

Every key is namespaced as ``<prefix>:<key>`` when a prefix is configured,
so several logical caches can share one physical database.  Values are
JSON-encoded on write and decoded on read; content that is not valid JSON
(e.g. written by another client) is returned as the raw string.
"""

from __future__ import annotations

import json
from typing import Any

import structlog
from redis import asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from infra_providers.interfaces.cache_provider import TTL_MISSING, ICacheProvider
from infra_providers.utils.errors import CacheError, ProviderUnavailableError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_SCAN_COUNT = 100

# Characters with special meaning in a Redis MATCH pattern.
_GLOB_SPECIALS = frozenset("*?[]\\")


def _escape_glob(text: str) -> str:
    return "".join(f"\\{char}" if char in _GLOB_SPECIALS else char for char in text)


class RedisCacheProvider(ICacheProvider[Any]):
    """Cache provider backed by a Redis server.

    Parameters
    ----------
    url:
        Redis connection URL (``redis://host:port/db``).  Empty means not
        configured.
    key_prefix:
        Optional namespace prepended to every key as ``prefix:key``.
    scan_count:
        ``COUNT`` hint for each ``SCAN`` batch in :meth:`delete_pattern`.
    """

    def __init__(
        self,
        url: str = "",
        key_prefix: str = "",
        scan_count: int = DEFAULT_SCAN_COUNT,
    ) -> None:
        self._url = url
        self._key_prefix = key_prefix
        self._scan_count = scan_count
        self._client: aioredis.Redis | None = None
        self._closed = False

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return "redis"

    @property
    def key_prefix(self) -> str:
        return self._key_prefix

    def is_configured(self) -> bool:
        """``True`` when a connection URL is set and the provider is open."""
        return bool(self._url) and not self._closed

    def supports_delete_pattern(self) -> bool:
        return True

    def supports_ttl(self) -> bool:
        return True

    async def get(self, key: str) -> Any | None:
        client = await self._get_client()
        if client is None:
            return None
        raw = await client.get(self._prefixed(key))
        if raw is None:
            logger.debug("cache_miss", key=key)
            return None
        logger.debug("cache_hit", key=key)
        return self._deserialize(raw)

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value*; a TTL uses Redis ``SETEX`` so expiry is server-side."""
        if self._closed:
            return
        payload = self._serialize(key, value)
        client = await self._get_client()
        if client is None:
            return
        if ttl:
            await client.setex(self._prefixed(key), ttl, payload)
        else:
            await client.set(self._prefixed(key), payload)
        logger.debug("cache_set", key=key, ttl=ttl)

    async def delete(self, key: str) -> None:
        client = await self._get_client()
        if client is None:
            return
        await client.delete(self._prefixed(key))
        logger.debug("cache_delete", key=key)

    async def exists(self, key: str) -> bool:
        client = await self._get_client()
        if client is None:
            return False
        return await client.exists(self._prefixed(key)) > 0

    async def delete_pattern(self, pattern: str) -> int:
        """Delete keys matching *pattern* using an incremental ``SCAN`` loop.

        Each batch returned by ``SCAN ... MATCH ... COUNT`` is deleted before
        the next one is fetched, so the keyspace is never loaded into memory
        at once and Redis is never blocked by a single ``KEYS`` call.  The
        loop ends when Redis returns cursor ``0``.
        """
        client = await self._get_client()
        if client is None:
            return 0
        match = self._prefixed_pattern(pattern)
        cursor = 0
        deleted = 0
        batches = 0
        while True:
            cursor, keys = await client.scan(
                cursor=cursor, match=match, count=self._scan_count
            )
            batches += 1
            if keys:
                deleted += await client.delete(*keys)
            if int(cursor) == 0:
                break
        logger.debug(
            "cache_delete_pattern", pattern=pattern, deleted=deleted, batches=batches
        )
        return deleted

    async def clear(self) -> None:
        """Remove this provider's keys.

        With a key prefix this is ``delete_pattern("*")`` and only touches
        the namespace.  **Without a prefix this runs ``FLUSHDB`` and wipes the
        whole Redis database**, including keys written by other applications.
        The in-process cache's ``clear`` never reaches beyond its own store;
        this one can.
        """
        if self._closed:
            return
        if self._key_prefix:
            await self.delete_pattern("*")
            return
        client = await self._get_client()
        if client is None:
            return
        logger.warning("cache_flushdb", reason="clear() without key prefix")
        await client.flushdb()

    async def ttl(self, key: str) -> int:
        """Return Redis ``TTL`` for the key: seconds, ``-1`` or ``-2``."""
        client = await self._get_client()
        if client is None:
            return TTL_MISSING
        return int(await client.ttl(self._prefixed(key)))

    async def close(self) -> None:
        """Close the connection pool.  Idempotent."""
        if self._closed:
            return
        self._closed = True
        client, self._client = self._client, None
        if client is not None:
            await client.aclose()
        logger.info("redis_cache_closed")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _get_client(self) -> aioredis.Redis | None:
        """Return the client, creating and pinging it on first use.

        Returns ``None`` once the provider is closed, including when
        :meth:`close` ran while this connect was still pinging.
        """
        if self._closed:
            return None
        if self._client is not None:
            return self._client
        if not self._url:
            raise ProviderUnavailableError(
                message="REDIS_URL is not set",
                provider_name=self.name,
            )
        client = aioredis.from_url(self._url, decode_responses=True)
        try:
            await client.ping()
        except (RedisConnectionError, RedisTimeoutError, OSError) as exc:
            await client.aclose()
            raise ProviderUnavailableError(
                message=f"Redis connection failed: {exc}",
                provider_name=self.name,
            ) from exc
        if self._closed:
            await client.aclose()
            return None
        if self._client is not None:
            # Another coroutine connected while this one was pinging.
            await client.aclose()
            return self._client
        self._client = client
        logger.info("redis_cache_connected", key_prefix=self._key_prefix or None)
        return client

    def _prefixed(self, key: str) -> str:
        return f"{self._key_prefix}:{key}" if self._key_prefix else key

    def _prefixed_pattern(self, pattern: str) -> str:
        if not self._key_prefix:
            return pattern
        return f"{_escape_glob(self._key_prefix)}:{pattern}"

    def _serialize(self, key: str, value: Any) -> str:
        try:
            return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise CacheError(
                message=f"Value for key {key!r} is not JSON serialisable: {exc}",
                provider_name=self.name,
            ) from exc

    @staticmethod
    def _deserialize(raw: str) -> Any:
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return raw
