"""Data models for the cache provider domain.

``CacheEntry`` is the in-process backend's private storage record; the
``TLRUCache`` behind it reads ``expires_at`` to expire each key on its own.
It is a plain slotted dataclass rather than a Pydantic model because it
holds the caller's value *by reference* and must not validate or copy it.

``CacheStats`` is the frozen snapshot returned by
:meth:`MemoryCacheProvider.get_stats`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


@dataclass(slots=True)
class CacheEntry:
    """A stored value with an optional absolute expiry (``time.monotonic()`` seconds).

    ``expires_at is None`` means the entry never expires.
    """

    value: Any
    expires_at: float | None = None


class CacheStats(BaseModel):
    """Point-in-time accounting for an in-process cache."""

    model_config = ConfigDict(frozen=True)

    size: int = 0
    keys: list[str] = Field(default_factory=list)
    sweeps: int = 0
    evictions: int = 0
