"""Typed data contracts shared by the executor and the token lifecycle manager.

Usage example:
    from debt_tracker_client.types import RequestDescriptor

    descriptor = RequestDescriptor(
        method="POST",
        path="/debts/42/mark-paid",
        body={"paid_at": "2026-01-01"},
    )
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import StrEnum
from typing import Literal

type JsonValue = str | int | float | bool | None | list[JsonValue] | dict[str, JsonValue]
type JsonObject = dict[str, JsonValue]

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]

SUPPORTED_METHODS: frozenset[str] = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})


def _empty_headers() -> Mapping[str, str]:
    return {}


@dataclass(frozen=True)
class RequestDescriptor:
    """Immutable description of a single logical API call."""

    method: str
    path: str
    body: JsonObject | None = None
    query: Mapping[str, object] | None = None
    headers: Mapping[str, str] = field(default_factory=_empty_headers)
    use_auth: bool = True
    timeout_seconds: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "method", self.method.upper())

    def with_headers(self, headers: Mapping[str, str]) -> RequestDescriptor:
        """Return a copy with additional header overrides merged in."""
        merged = dict(self.headers)
        merged.update(headers)
        return replace(self, headers=merged)

    @property
    def is_write(self) -> bool:
        return self.method != "GET"


@dataclass(frozen=True)
class ResponseEnvelope:
    """A completed HTTP exchange with its parsed JSON object body."""

    status_code: int
    body: JsonObject
    byte_length: int
    descriptor: RequestDescriptor
    url: str
    elapsed_seconds: float = 0.0

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def success_flag(self) -> bool | None:
        value = self.body.get("success")
        return value if isinstance(value, bool) else None

    @property
    def data(self) -> JsonValue:
        return self.body.get("data")

    @property
    def message(self) -> str | None:
        value = self.body.get("message", self.body.get("error"))
        return value if isinstance(value, str) else None

    @property
    def error_code(self) -> str | None:
        value = self.body.get("code", self.body.get("error_code"))
        return str(value) if value is not None else None


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class TokenPair:
    """Access/refresh token pair held by the token lifecycle manager.

    The backend does not expose an expiry, so `issued_at` is informational only.
    """

    access_token: str
    refresh_token: str | None = None
    issued_at: datetime = field(default_factory=_utc_now)

    def __repr__(self) -> str:
        refresh = "set" if self.refresh_token else "none"
        return (
            "TokenPair(access_token=<redacted>, "
            f"refresh_token=<{refresh}>, issued_at={self.issued_at.isoformat()})"
        )


class AuthState(StrEnum):
    """Authentication lifecycle states."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"
