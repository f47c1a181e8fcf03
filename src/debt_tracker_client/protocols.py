"""Protocol definitions for dependency injection.

These protocols define the abstract interfaces that the executor and the token
lifecycle manager depend on, enabling isolated unit testing with fake
implementations.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .failures import Failure
    from .infrastructure.transport import TransportRequest, TransportResponse
    from .types import JsonObject


@runtime_checkable
class HttpTransport(Protocol):
    """Abstract transport that performs a single HTTP exchange."""

    def send(self, request: TransportRequest) -> TransportResponse:
        """Send one request and return the raw response.

        Raises:
            requests.RequestException: On timeout, connection or request-shape errors.
        """
        ...

    def close(self) -> None:
        """Release pooled connections."""
        ...


@runtime_checkable
class Cache(Protocol):
    """Abstract time-boxed cache for JSON payloads."""

    def get(self, key: str) -> JsonObject | None:
        """Retrieve a live cached payload, or None if absent or expired."""
        ...

    def put(self, key: str, value: JsonObject, expiry_seconds: float, *, path: str = "") -> None:
        """Store a payload, overwriting any prior entry."""
        ...

    def invalidate(self, key: str) -> None:
        """Drop a single entry."""
        ...

    def invalidate_prefix(self, path_prefix: str) -> int:
        """Drop every entry whose request path starts with the prefix."""
        ...


@runtime_checkable
class CredentialStore(Protocol):
    """Durable key-value capability for token persistence."""

    def get(self, key: str) -> str | None:
        """Return the stored value, or None."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store a value."""
        ...

    def delete(self, key: str) -> None:
        """Remove a value if present."""
        ...


@runtime_checkable
class EventRecorder(Protocol):
    """Structured logging sink for terminal call outcomes and lifecycle events."""

    def record(self, level: int, message: str, fields: dict[str, object]) -> None:
        """Record one structured event."""
        ...


@runtime_checkable
class ConnectivitySignal(Protocol):
    """Known device connectivity, with change notifications."""

    @property
    def is_online(self) -> bool:
        """Return False only when the device is known to be offline."""
        ...

    def subscribe(self, listener: Callable[[bool], None]) -> Callable[[], None]:
        """Register a change listener and return an unsubscribe callable."""
        ...


@runtime_checkable
class TokenProvider(Protocol):
    """Source of bearer tokens and reactive refresh for the executor."""

    def current_access_token(self) -> str | None:
        """Return the access token to attach, or None."""
        ...

    def refresh_after_rejection(self, rejected_token: str | None) -> str | None:
        """Obtain a usable token after `rejected_token` was refused, or None."""
        ...


@runtime_checkable
class RetryPolicy(Protocol):
    """Abstract retry policy for retryable failures."""

    max_attempts: int

    def should_retry(self, failure: Failure, attempt: int) -> bool:
        """Return True when another attempt should follow `attempt`."""
        ...

    def compute_delay(self, attempt: int) -> float:
        """Return the delay to wait after the failed `attempt` (1-based)."""
        ...
