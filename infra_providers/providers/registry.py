"""Per-domain provider registry.

A :class:`ProviderRegistry` turns a configured type tag (``CACHE_PROVIDER``
for the cache domain) into a live backend and keeps that backend as the
domain's singleton:

* every :meth:`~ProviderRegistry.get` re-reads the tag;
* if the tag matches the one that produced the current instance, that
  instance is returned (the common path, so every caller shares one cache);
* otherwise a new backend is built, replaces the old one, and the old one is
  closed by the registry;
* an unknown tag falls back to the domain default with a warning instead of
  raising.

:meth:`~ProviderRegistry.create` builds a specific backend directly and
bypasses the singleton, for callers that need two backends at once.

Registries are ordinary objects.  The application builds one per domain
(see :func:`infra_providers.providers.build_providers`) and passes it
down; tests construct isolated registries of their own.
"""

from __future__ import annotations

import asyncio
import inspect
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import structlog

from infra_providers.config.settings import Settings
from infra_providers.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

_P = TypeVar("_P")

ProviderBuilder = Callable[[Settings], _P]


@dataclass
class RegistryState(Generic[_P]):
    """The live backend for one domain and the tag that produced it."""

    active: _P | None = None
    active_tag: str | None = None


class ProviderRegistry(Generic[_P]):
    """Resolve, cache and swap the active backend for one provider domain.

    Parameters
    ----------
    domain:
        Domain name used in log events, e.g. ``"cache"``.
    builders:
        Map of type tag to a callable that builds the backend from
        :class:`Settings`.
    default_tag:
        Tag used when the configured one is unknown.  Must be in *builders*.
    tag_reader:
        Returns the configured tag for a given :class:`Settings`.
    settings_factory:
        Produces the settings read on every resolution.  Defaults to
        ``Settings`` so environment changes are observed.
    """

    def __init__(
        self,
        domain: str,
        builders: Mapping[str, ProviderBuilder[_P]],
        default_tag: str,
        tag_reader: Callable[[Settings], str],
        settings_factory: Callable[[], Settings] = Settings,
    ) -> None:
        if default_tag not in builders:
            raise ConfigurationError(
                message=f"Default tag {default_tag!r} has no builder",
                provider_name=domain,
            )
        self._domain = domain
        self._builders = dict(builders)
        self._default_tag = default_tag
        self._tag_reader = tag_reader
        self._settings_factory = settings_factory
        self._state: RegistryState[_P] = RegistryState()
        self._lock = threading.Lock()
        self._pending_closes: set[asyncio.Task[Any]] = set()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def domain(self) -> str:
        return self._domain

    @property
    def available_tags(self) -> list[str]:
        return sorted(self._builders)

    @property
    def active(self) -> _P | None:
        return self._state.active

    @property
    def active_tag(self) -> str | None:
        return self._state.active_tag

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def get(self) -> _P:
        """Return the domain singleton, rebuilding it if the configured tag changed.

        Every call runs *settings_factory*; with the default ``Settings`` that
        re-reads the environment and ``.env`` file, even on the fast path.
        Callers on a hot path should hold the returned provider rather than
        resolving per request, or pass a cheaper factory.
        """
        settings = self._settings_factory()
        tag = self._tag_reader(settings)

        stale: _P | None = None
        with self._lock:
            state = self._state
            if state.active is not None and state.active_tag == tag:
                return state.active

            build_tag = tag
            if tag not in self._builders:
                logger.warning(
                    "registry_fallback",
                    domain=self._domain,
                    configured=tag,
                    fallback=self._default_tag,
                )
                build_tag = self._default_tag

            provider = self._builders[build_tag](settings)
            stale = state.active
            previous_tag = state.active_tag
            self._state = RegistryState(active=provider, active_tag=tag)

        if stale is not None:
            logger.info(
                "registry_swap",
                domain=self._domain,
                previous=previous_tag,
                current=tag,
            )
            self._close_stale(stale)
        else:
            logger.info("registry_resolved", domain=self._domain, tag=tag, backend=build_tag)
        return provider

    def create(self, tag: str, settings: Settings | None = None) -> _P:
        """Build a backend of *tag* directly, bypassing the singleton.

        Raises
        ------
        ConfigurationError
            If *tag* is not a known backend for this domain.
        """
        builder = self._builders.get(tag)
        if builder is None:
            raise ConfigurationError(
                message=(
                    f"Unknown {self._domain} provider type: {tag!r} "
                    f"(expected one of {', '.join(self.available_tags)})"
                ),
                provider_name=self._domain,
            )
        return builder(settings if settings is not None else self._settings_factory())

    async def aclose(self) -> None:
        """Close the active backend and reset the registry to its empty state."""
        with self._lock:
            active = self._state.active
            self._state = RegistryState()
        if active is not None:
            result = _close_call(active)
            if result is not None:
                await result
        if self._pending_closes:
            await asyncio.gather(*self._pending_closes, return_exceptions=True)
        logger.info("registry_closed", domain=self._domain)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _close_stale(self, stale: _P) -> None:
        """Close a replaced backend.

        Inside a running loop the close is scheduled as a task (tracked until
        it finishes); outside one it runs to completion before returning.
        """
        result = _close_call(stale)
        if result is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            try:
                asyncio.run(_await(result))
            except Exception:
                logger.exception("registry_stale_close_failed", domain=self._domain)
            return

        task = loop.create_task(_await(result), name=f"{self._domain}-stale-close")
        self._pending_closes.add(task)
        task.add_done_callback(self._on_stale_closed)

    def _on_stale_closed(self, task: asyncio.Task[Any]) -> None:
        self._pending_closes.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "registry_stale_close_failed",
                domain=self._domain,
                error=str(exc),
                exc_info=exc,
            )


def _close_call(provider: Any) -> Any:
    """Invoke ``provider.close()`` if it has one; return the awaitable, if any."""
    close = getattr(provider, "close", None)
    if close is None:
        return None
    result = close()
    return result if inspect.isawaitable(result) else None


async def _await(awaitable: Any) -> Any:
    return await awaitable
