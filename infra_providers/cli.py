"""Operator CLI for the configured cache provider.

Usage::

    python -m infra_providers.cli status
    python -m infra_providers.cli invalidate "user:*"
    python -m infra_providers.cli ttl user:123

Resolves the cache exactly as the application does (``CACHE_PROVIDER``,
``REDIS_URL``, ``REDIS_KEY_PREFIX``), runs one command, closes the
provider and exits.  ``invalidate`` against a process-local ``memory``
cache only affects the CLI's own empty store, so it is refused.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from infra_providers.config.settings import Settings
from infra_providers.providers.cache import build_cache_registry
from infra_providers.providers.cache.memory_cache import MemoryCacheProvider
from infra_providers.utils.errors import InfraProviderError
from infra_providers.utils.logging import configure_logging_from_settings


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m infra_providers.cli",
        description="Inspect and invalidate the configured cache provider.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Show which cache backend is configured")

    invalidate = sub.add_parser("invalidate", help="Delete keys matching a glob pattern")
    invalidate.add_argument("pattern", help="Glob pattern (* and ? wildcards)")

    ttl = sub.add_parser("ttl", help="Show the remaining TTL of a key")
    ttl.add_argument("key")
    return parser


async def _run(args: argparse.Namespace) -> dict[str, object]:
    registry = build_cache_registry()
    cache = registry.get()
    try:
        if args.command == "status":
            return {
                "configured_tag": registry.active_tag,
                "backend": cache.name,
                "configured": cache.is_configured(),
                "supports_delete_pattern": cache.supports_delete_pattern(),
                "supports_ttl": cache.supports_ttl(),
            }
        if args.command == "invalidate":
            if isinstance(cache, MemoryCacheProvider):
                return {"error": "memory cache is process-local; nothing to invalidate"}
            deleted = await cache.delete_pattern(args.pattern)
            return {"pattern": args.pattern, "deleted": deleted}
        return {"key": args.key, "ttl": await cache.ttl(args.key)}
    finally:
        await registry.aclose()


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    # Logs go to stderr; stdout carries only the JSON result.
    configure_logging_from_settings(Settings(), stream=sys.stderr)

    try:
        result = asyncio.run(_run(args))
    except InfraProviderError as exc:
        print(json.dumps({"error": str(exc)}), file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2))
    return 1 if "error" in result else 0


if __name__ == "__main__":
    sys.exit(main())
