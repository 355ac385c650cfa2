"""Custom exception hierarchy for infra-providers.

All package exceptions inherit from :class:`InfraProviderError`, which
carries an optional ``provider_name`` so error handlers can identify which
backend (e.g. "memory", "redis") caused the failure.

The hierarchy is organized by failure kind:

    InfraProviderError  (base -- catch-all for any infra-providers error)
    +-- ConfigurationError           (unknown provider type, missing config)
    +-- ProviderUnavailableError     (backend down / unreachable)
    +-- CacheError                   (cache-domain failures)
        +-- CapabilityNotSupportedError  (optional operation not implemented)

Configuration problems met while *resolving* the active provider are not
raised at all: the registry logs a warning and falls back to the default
backend.  ``ConfigurationError`` is only raised when a caller explicitly
asks for a provider type that does not exist.
"""


class InfraProviderError(Exception):
    """Base exception for all infra-providers errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which backend triggered the error.  The
    ``__str__`` method prefixes the provider name in brackets for structured
    log output, e.g. ``[redis] Connection refused``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Configuration / availability errors
# ---------------------------------------------------------------------------

class ConfigurationError(InfraProviderError):
    """Raised when a provider type is unknown or its configuration is invalid."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderUnavailableError(InfraProviderError):
    """Raised when a backend is unreachable.

    Surfaced on the first operation that needs the connection.  This layer
    does not retry; retry policy belongs to the caller.
    """

    def __init__(
        self,
        message: str = "Provider backend is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Cache domain errors
# ---------------------------------------------------------------------------

class CacheError(InfraProviderError):
    """Raised when a cache operation fails."""

    def __init__(
        self,
        message: str = "Cache operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class CapabilityNotSupportedError(CacheError):
    """Raised when an optional cache operation is called on a backend that
    does not implement it.

    Callers should check ``supports_delete_pattern()`` / ``supports_ttl()``
    before relying on those operations.
    """

    def __init__(
        self,
        message: str = "Operation not supported by this cache provider",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
