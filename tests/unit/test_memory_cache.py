"""Unit tests for MemoryCacheProvider -- TTL, lazy eviction, sweep, patterns."""

from __future__ import annotations

import asyncio
import re
import threading
import time

import pytest

from infra_providers.interfaces.cache_provider import TTL_MISSING, TTL_NO_EXPIRY
from infra_providers.providers.cache.memory_cache import (
    MemoryCacheProvider,
    glob_to_regex,
)
from tests.conftest import FakeClock


# ======================================================================
# Basic contract
# ======================================================================


class TestMemoryCacheBasics:
    @pytest.mark.asyncio
    async def test_get_missing_key_returns_none(self, memory_cache: MemoryCacheProvider) -> None:
        assert await memory_cache.get("nonexistent") is None

    @pytest.mark.asyncio
    async def test_set_and_get(self, memory_cache: MemoryCacheProvider) -> None:
        await memory_cache.set("key1", "value1")
        assert await memory_cache.get("key1") == "value1"

    @pytest.mark.asyncio
    async def test_set_overwrites_existing(self, memory_cache: MemoryCacheProvider) -> None:
        await memory_cache.set("key1", "old", ttl=5)
        await memory_cache.set("key1", "new")
        assert await memory_cache.get("key1") == "new"
        assert await memory_cache.ttl("key1") == TTL_NO_EXPIRY

    @pytest.mark.asyncio
    async def test_values_are_stored_by_reference(self, memory_cache: MemoryCacheProvider) -> None:
        data = {"artists": ["Carl Cox", "Jeff Mills"], "count": 2}
        await memory_cache.set("complex", data)
        assert await memory_cache.get("complex") is data

    @pytest.mark.asyncio
    async def test_delete_removes_key(self, memory_cache: MemoryCacheProvider) -> None:
        await memory_cache.set("key1", "value1")
        await memory_cache.delete("key1")
        assert await memory_cache.get("key1") is None
        assert await memory_cache.exists("key1") is False

    @pytest.mark.asyncio
    async def test_delete_twice_is_noop(self, memory_cache: MemoryCacheProvider) -> None:
        await memory_cache.set("key1", "value1")
        await memory_cache.delete("key1")
        await memory_cache.delete("key1")  # should not raise
        await memory_cache.delete("never-set")

    @pytest.mark.asyncio
    async def test_exists(self, memory_cache: MemoryCacheProvider) -> None:
        await memory_cache.set("key1", 0)
        assert await memory_cache.exists("key1") is True
        assert await memory_cache.exists("missing") is False

    @pytest.mark.asyncio
    async def test_clear_drops_everything(self, memory_cache: MemoryCacheProvider) -> None:
        await memory_cache.set("a", 1)
        await memory_cache.set("b", 2, ttl=30)
        await memory_cache.clear()
        assert memory_cache.get_stats().size == 0
        assert await memory_cache.get("a") is None

    def test_is_configured_and_capabilities(self) -> None:
        cache = MemoryCacheProvider()
        assert cache.name == "memory"
        assert cache.is_configured() is True
        assert cache.supports_delete_pattern() is True
        assert cache.supports_ttl() is True

    def test_rejects_non_positive_sweep_interval(self) -> None:
        with pytest.raises(ValueError):
            MemoryCacheProvider(sweep_interval=0)


# ======================================================================
# TTL semantics
# ======================================================================


class TestMemoryCacheTTL:
    @pytest.mark.asyncio
    async def test_entry_expires_after_ttl(
        self, memory_cache: MemoryCacheProvider, clock: FakeClock
    ) -> None:
        await memory_cache.set("k", "v", ttl=1)
        assert await memory_cache.exists("k") is True

        clock.advance(1.5)
        assert await memory_cache.get("k") is None
        assert await memory_cache.ttl("k") == TTL_MISSING

    @pytest.mark.asyncio
    async def test_entry_expires_in_real_time(self) -> None:
        cache = MemoryCacheProvider()
        try:
            await cache.set("k", "v", ttl=1)
            assert await cache.exists("k") is True
            await asyncio.sleep(1.1)
            assert await cache.get("k") is None
            assert await cache.ttl("k") == TTL_MISSING
        finally:
            await cache.close()

    @pytest.mark.asyncio
    async def test_no_ttl_never_expires(
        self, memory_cache: MemoryCacheProvider, clock: FakeClock
    ) -> None:
        await memory_cache.set("k", "v")
        assert await memory_cache.ttl("k") == TTL_NO_EXPIRY
        clock.advance(10 * 365 * 24 * 3600)
        assert await memory_cache.ttl("k") == TTL_NO_EXPIRY
        assert await memory_cache.get("k") == "v"

    @pytest.mark.asyncio
    async def test_zero_ttl_means_no_expiry(self, memory_cache: MemoryCacheProvider) -> None:
        await memory_cache.set("k", "v", ttl=0)
        assert await memory_cache.ttl("k") == TTL_NO_EXPIRY

    @pytest.mark.asyncio
    async def test_ttl_rounds_remaining_up(
        self, memory_cache: MemoryCacheProvider, clock: FakeClock
    ) -> None:
        await memory_cache.set("k", "v", ttl=10)
        assert await memory_cache.ttl("k") == 10
        clock.advance(2.5)
        assert await memory_cache.ttl("k") == 8

    @pytest.mark.asyncio
    async def test_ttl_at_expiry_boundary_reports_missing(
        self, memory_cache: MemoryCacheProvider, clock: FakeClock
    ) -> None:
        await memory_cache.set("k", "v", ttl=1)
        clock.advance(1.0)
        assert await memory_cache.ttl("k") == TTL_MISSING

    @pytest.mark.asyncio
    async def test_ttl_of_missing_key(self, memory_cache: MemoryCacheProvider) -> None:
        assert await memory_cache.ttl("missing") == TTL_MISSING

    @pytest.mark.asyncio
    async def test_expired_read_evicts_entry(
        self, memory_cache: MemoryCacheProvider, clock: FakeClock
    ) -> None:
        await memory_cache.set("k", "v", ttl=1)
        await memory_cache.set("other", "v")
        clock.advance(2)
        stats = memory_cache.get_stats()
        assert stats.keys == ["other"]
        assert stats.evictions == 0

        assert await memory_cache.exists("k") is False
        stats = memory_cache.get_stats()
        assert stats.size == 1
        assert stats.evictions == 1

    @pytest.mark.asyncio
    async def test_each_key_keeps_its_own_ttl(
        self, memory_cache: MemoryCacheProvider, clock: FakeClock
    ) -> None:
        await memory_cache.set("short", "v", ttl=5)
        await memory_cache.set("long", "v", ttl=50)
        await memory_cache.set("forever", "v")

        clock.advance(6)

        assert await memory_cache.get("short") is None
        assert await memory_cache.ttl("long") == 44
        assert await memory_cache.ttl("forever") == TTL_NO_EXPIRY


# ======================================================================
# Pattern deletion
# ======================================================================


class TestMemoryCacheDeletePattern:
    @pytest.mark.asyncio
    async def test_deletes_only_matching_keys(self, memory_cache: MemoryCacheProvider) -> None:
        await memory_cache.set("user:1", "a")
        await memory_cache.set("user:2", "b")
        await memory_cache.set("order:1", "c")

        deleted = await memory_cache.delete_pattern("user:*")

        assert deleted == 2
        assert await memory_cache.get("user:1") is None
        assert await memory_cache.get("user:2") is None
        assert await memory_cache.get("order:1") == "c"

    @pytest.mark.asyncio
    async def test_question_mark_matches_exactly_one_char(
        self, memory_cache: MemoryCacheProvider
    ) -> None:
        for key in ("user:1", "user:10", "user:"):
            await memory_cache.set(key, key)

        assert await memory_cache.delete_pattern("user:?") == 1
        assert sorted(memory_cache.get_stats().keys) == ["user:", "user:10"]

    @pytest.mark.asyncio
    async def test_star_deletes_everything(self, memory_cache: MemoryCacheProvider) -> None:
        for i in range(5):
            await memory_cache.set(f"k{i}", i)
        assert await memory_cache.delete_pattern("*") == 5
        assert memory_cache.get_stats().size == 0

    @pytest.mark.asyncio
    async def test_no_match_returns_zero(self, memory_cache: MemoryCacheProvider) -> None:
        await memory_cache.set("order:1", "c")
        assert await memory_cache.delete_pattern("user:*") == 0

    @pytest.mark.asyncio
    async def test_pattern_is_anchored(self, memory_cache: MemoryCacheProvider) -> None:
        await memory_cache.set("xuser:1", "a")
        await memory_cache.set("user:1:extra", "b")
        assert await memory_cache.delete_pattern("user:?") == 0

    @pytest.mark.parametrize(
        ("pattern", "key", "expected"),
        [
            ("a.b", "a.b", True),
            ("a.b", "axb", False),
            ("[abc]", "[abc]", True),
            ("[abc]", "a", False),
            ("a+", "aaa", False),
            ("report(1)*", "report(1)-final", True),
            ("*", "", True),
            ("line*", "line\nbreak", True),
        ],
    )
    def test_glob_characters_match_literally(
        self, pattern: str, key: str, expected: bool
    ) -> None:
        assert (glob_to_regex(pattern).fullmatch(key) is not None) is expected


# ======================================================================
# Background sweep
# ======================================================================


class TestMemoryCacheSweep:
    @pytest.mark.asyncio
    async def test_manual_sweep_reclaims_unread_entries(
        self, memory_cache: MemoryCacheProvider, clock: FakeClock
    ) -> None:
        await memory_cache.set("short", "v", ttl=1)
        await memory_cache.set("long", "v", ttl=100)
        await memory_cache.set("forever", "v")
        clock.advance(5)

        assert memory_cache.sweep() == 1

        stats = memory_cache.get_stats()
        assert sorted(stats.keys) == ["forever", "long"]
        assert stats.sweeps == 1

    @pytest.mark.asyncio
    async def test_background_sweep_reclaims_without_reads(self, clock: FakeClock) -> None:
        cache = MemoryCacheProvider(sweep_interval=0.05, clock=clock)
        try:
            await cache.set("short", "v", ttl=1)
            assert cache.sweep_running is True

            clock.advance(2)
            await asyncio.sleep(0.2)  # several sweep intervals, no get()

            stats = cache.get_stats()
            assert stats.size == 0
            assert stats.sweeps >= 1
            assert stats.evictions == 1
        finally:
            await cache.close()

    def test_sweeper_not_started_outside_event_loop(self) -> None:
        cache = MemoryCacheProvider()
        assert cache.sweep_running is False
        assert cache.sweep() == 0


# ======================================================================
# Lifecycle
# ======================================================================


class TestMemoryCacheClose:
    @pytest.mark.asyncio
    async def test_close_cancels_sweep_and_clears(self) -> None:
        cache = MemoryCacheProvider(sweep_interval=0.05)
        await cache.set("k", "v")
        assert cache.sweep_running is True

        await cache.close()
        await asyncio.sleep(0)

        assert cache.sweep_running is False
        assert cache.closed is True
        assert cache.get_stats().size == 0

    def test_close_from_another_thread_cancels_sweep(self) -> None:
        cache = MemoryCacheProvider(sweep_interval=0.05)
        loop = asyncio.new_event_loop()
        runner = threading.Thread(target=loop.run_forever, daemon=True)
        runner.start()
        try:
            asyncio.run_coroutine_threadsafe(cache.set("k", "v"), loop).result(timeout=5)
            task = cache._sweep_task
            assert task is not None and not task.done()

            asyncio.run(cache.close())

            deadline = time.monotonic() + 5
            while not task.done() and time.monotonic() < deadline:
                time.sleep(0.01)
            assert task.cancelled()
        finally:
            loop.call_soon_threadsafe(loop.stop)
            runner.join(timeout=5)
            loop.close()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self) -> None:
        cache = MemoryCacheProvider()
        await cache.close()
        await cache.close()

    @pytest.mark.asyncio
    async def test_closed_cache_is_inert(self) -> None:
        cache = MemoryCacheProvider()
        await cache.close()

        await cache.set("k", "v")
        assert await cache.get("k") is None
        assert await cache.exists("k") is False
        assert await cache.ttl("k") == TTL_MISSING
        assert await cache.delete_pattern("*") == 0
        await cache.delete("k")
        await cache.clear()
        assert cache.sweep_running is False


# ======================================================================
# Concurrency
# ======================================================================


class TestMemoryCacheConcurrency:
    def test_threads_share_one_store_without_corruption(self) -> None:
        cache = MemoryCacheProvider(sweep_interval=0.01)
        errors: list[BaseException] = []

        async def worker(worker_id: int) -> None:
            for i in range(200):
                key = f"w{worker_id}:{i}"
                await cache.set(key, i, ttl=60 if i % 2 else None)
                assert await cache.get(key) == i
                if i % 10 == 0:
                    await cache.delete_pattern(f"w{worker_id}:1?")
            cache.sweep()

        def run(worker_id: int) -> None:
            try:
                asyncio.run(worker(worker_id))
            except BaseException as exc:  # noqa: BLE001 -- surfaced via errors list
                errors.append(exc)

        threads = [threading.Thread(target=run, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        keys = cache.get_stats().keys
        assert len(keys) == len(set(keys))
        assert not [k for k in keys if re.fullmatch(r"w\d:1\d", k)]

    @pytest.mark.asyncio
    async def test_last_set_wins(self, memory_cache: MemoryCacheProvider) -> None:
        await asyncio.gather(*(memory_cache.set("k", i) for i in range(50)))
        assert await memory_cache.get("k") == 49
