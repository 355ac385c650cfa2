"""Shared pytest fixtures for the infra-providers test suite."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
import structlog

from infra_providers.config.settings import Settings
from infra_providers.providers.cache.memory_cache import MemoryCacheProvider

_ENV_VARS = (
    "CACHE_PROVIDER",
    "CACHE_SWEEP_INTERVAL_SECONDS",
    "REDIS_URL",
    "REDIS_KEY_PREFIX",
    "REDIS_SCAN_COUNT",
    "APP_ENV",
    "LOG_LEVEL",
)


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_settings(**overrides) -> Settings:
    """Build a Settings instance with safe defaults and optional overrides."""
    defaults = {
        "cache_provider": "memory",
        "cache_sweep_interval_seconds": 60.0,
        "redis_url": "",
        "redis_key_prefix": "",
        "redis_scan_count": 100,
        "app_env": "test",
    }
    defaults.update(overrides)
    return Settings(**defaults)


def make_fake_redis() -> MagicMock:
    """Return a stand-in for ``redis.asyncio.Redis`` with awaitable commands."""
    client = MagicMock()
    client.ping = AsyncMock(return_value=True)
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=True)
    client.setex = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    client.exists = AsyncMock(return_value=1)
    client.scan = AsyncMock(return_value=(0, []))
    client.ttl = AsyncMock(return_value=-1)
    client.flushdb = AsyncMock(return_value=True)
    client.aclose = AsyncMock(return_value=None)
    return client


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Iterator[None]:
    """Isolate every test from the developer's environment and ``.env`` file."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    yield


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """Undo any logging configuration a test (e.g. the CLI) installed."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    structlog.reset_defaults()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def fake_redis() -> MagicMock:
    return make_fake_redis()


@pytest_asyncio.fixture()
async def memory_cache(clock: FakeClock) -> AsyncIterator[MemoryCacheProvider]:
    cache = MemoryCacheProvider(sweep_interval=60.0, clock=clock)
    yield cache
    await cache.close()
