"""Data models for infra-providers."""

from infra_providers.models.cache import CacheEntry, CacheStats

__all__ = ["CacheEntry", "CacheStats"]
