"""Classification of transport and HTTP outcomes into a closed failure taxonomy.

Everything here is pure: no I/O, no logging, no mutation. A Failure is only ever
re-classified by constructing a new one.

Usage example:
    from debt_tracker_client.failures import FailureKind, classify_status

    assert classify_status(503) is FailureKind.SERVICE_UNAVAILABLE
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from enum import StrEnum

import requests

from .types import JsonObject


class FailureKind(StrEnum):
    """Closed set of failure kinds surfaced by the executor."""

    NO_CONNECTION = "no_connection"
    TIMEOUT = "timeout"
    BAD_REQUEST = "bad_request"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    VALIDATION = "validation"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    SERVICE_UNAVAILABLE = "service_unavailable"
    PARSE_ERROR = "parse_error"
    INVALID_REQUEST = "invalid_request"
    UNKNOWN = "unknown"


_STATUS_TABLE: dict[int, FailureKind] = {
    400: FailureKind.BAD_REQUEST,
    401: FailureKind.UNAUTHORIZED,
    403: FailureKind.FORBIDDEN,
    404: FailureKind.NOT_FOUND,
    409: FailureKind.CONFLICT,
    422: FailureKind.VALIDATION,
    429: FailureKind.RATE_LIMITED,
    500: FailureKind.SERVER_ERROR,
    502: FailureKind.SERVICE_UNAVAILABLE,
    503: FailureKind.SERVICE_UNAVAILABLE,
    504: FailureKind.SERVICE_UNAVAILABLE,
}

RETRYABLE_KINDS: frozenset[FailureKind] = frozenset(
    {
        FailureKind.NO_CONNECTION,
        FailureKind.TIMEOUT,
        FailureKind.SERVER_ERROR,
        FailureKind.SERVICE_UNAVAILABLE,
    }
)

USER_ACTION_KINDS: frozenset[FailureKind] = frozenset(
    {
        FailureKind.NO_CONNECTION,
        FailureKind.BAD_REQUEST,
        FailureKind.UNAUTHORIZED,
        FailureKind.FORBIDDEN,
        FailureKind.CONFLICT,
        FailureKind.VALIDATION,
    }
)

LOGOUT_KINDS: frozenset[FailureKind] = frozenset({FailureKind.UNAUTHORIZED})

_USER_MESSAGES: dict[FailureKind, str] = {
    FailureKind.NO_CONNECTION: "Please check your internet connection and try again.",
    FailureKind.TIMEOUT: "Request timed out. Please try again.",
    FailureKind.UNAUTHORIZED: "Please log in again to continue.",
    FailureKind.FORBIDDEN: "You don't have permission to access this resource.",
    FailureKind.NOT_FOUND: "The requested resource was not found.",
    FailureKind.VALIDATION: "Please check your input and try again.",
    FailureKind.RATE_LIMITED: "Too many requests. Please wait and try again.",
    FailureKind.SERVER_ERROR: "Server error. Please try again later.",
    FailureKind.SERVICE_UNAVAILABLE: (
        "Service is temporarily unavailable. Please try again later."
    ),
    FailureKind.PARSE_ERROR: "Failed to process server response.",
}

_DEFAULT_MESSAGES: dict[FailureKind, str] = {
    FailureKind.NO_CONNECTION: "Network unavailable",
    FailureKind.TIMEOUT: "Request timeout",
    FailureKind.PARSE_ERROR: "Invalid JSON response",
    FailureKind.INVALID_REQUEST: "Invalid request",
}


@dataclass(frozen=True)
class Failure:
    """A classified, immutable call failure."""

    kind: FailureKind
    message: str
    status_code: int | None = None
    error_code: str | None = None
    details: JsonObject | None = None
    retry_after_seconds: int | None = None

    @property
    def is_retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    @property
    def requires_user_action(self) -> bool:
        return self.kind in USER_ACTION_KINDS

    @property
    def forces_logout(self) -> bool:
        return self.kind in LOGOUT_KINDS

    @property
    def user_message(self) -> str:
        fixed = _USER_MESSAGES.get(self.kind)
        if fixed is not None:
            return fixed
        return self.message or "An unexpected error occurred."

    def reclassified(self, kind: FailureKind) -> Failure:
        """Return a copy of this failure with a different kind."""
        return replace(self, kind=kind)

    def to_log_fields(self) -> dict[str, object]:
        return {
            "kind": self.kind.value,
            "status_code": self.status_code,
            "error_code": self.error_code,
            "retryable": self.is_retryable,
            "requires_user_action": self.requires_user_action,
            "forces_logout": self.forces_logout,
        }

    def __str__(self) -> str:
        parts = [self.message]
        if self.status_code is not None:
            parts.append(f"(status: {self.status_code})")
        if self.error_code is not None:
            parts.append(f"(code: {self.error_code})")
        parts.append(f"[{self.kind.value}]")
        return " ".join(parts)


def classify_status(status_code: int) -> FailureKind:
    """Map a non-success HTTP status code to a failure kind."""
    return _STATUS_TABLE.get(status_code, FailureKind.UNKNOWN)


def classify_transport_error(error: BaseException) -> Failure:
    """Classify an exception raised before an HTTP exchange completed."""
    # ConnectTimeout is both a Timeout and a ConnectionError; timeout wins.
    if isinstance(error, (requests.Timeout, TimeoutError)):
        return Failure(kind=FailureKind.TIMEOUT, message=_DEFAULT_MESSAGES[FailureKind.TIMEOUT])
    if isinstance(
        error,
        (
            requests.exceptions.MissingSchema,
            requests.exceptions.InvalidSchema,
            requests.exceptions.InvalidURL,
            requests.exceptions.InvalidHeader,
            requests.exceptions.URLRequired,
        ),
    ):
        return Failure(kind=FailureKind.INVALID_REQUEST, message=f"Invalid request: {error}")
    if isinstance(error, requests.ConnectionError):
        return Failure(kind=FailureKind.NO_CONNECTION, message=f"Network error: {error}")
    # RequestException derives from OSError, so it must be matched before OSError.
    if isinstance(error, requests.RequestException):
        return Failure(kind=FailureKind.UNKNOWN, message=f"Request failed: {error}")
    if isinstance(error, OSError):
        return Failure(kind=FailureKind.NO_CONNECTION, message=f"Network error: {error}")
    return Failure(kind=FailureKind.UNKNOWN, message=f"Request failed: {error}")


def _text_field(body: Mapping[str, object], *names: str) -> str | None:
    for name in names:
        value = body.get(name)
        if value is not None and value != "":
            return str(value)
    return None


def classify_response(
    status_code: int,
    body: JsonObject,
    headers: Mapping[str, str] | None = None,
) -> Failure:
    """Classify a completed, non-success HTTP exchange."""
    kind = classify_status(status_code)
    retry_after = parse_retry_after(headers) if kind is FailureKind.RATE_LIMITED else None
    return Failure(
        kind=kind,
        message=_text_field(body, "message", "error") or "Request failed",
        status_code=status_code,
        error_code=_text_field(body, "code", "error_code"),
        details=body or None,
        retry_after_seconds=retry_after,
    )


def parse_failure(status_code: int | None = None) -> Failure:
    """Failure for a non-empty body that is not a JSON object."""
    return Failure(
        kind=FailureKind.PARSE_ERROR,
        message=_DEFAULT_MESSAGES[FailureKind.PARSE_ERROR],
        status_code=status_code,
    )


def invalid_request(message: str) -> Failure:
    return Failure(kind=FailureKind.INVALID_REQUEST, message=message)


def offline_failure() -> Failure:
    return Failure(kind=FailureKind.NO_CONNECTION, message="Device is offline")


def parse_retry_after(headers: Mapping[str, str] | None) -> int | None:
    """Parse Retry-After header into seconds, if available."""
    if not headers:
        return None
    value = headers.get("Retry-After")
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        dt = parsedate_to_datetime(value)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=UTC)
        delta = (dt - datetime.now(UTC)).total_seconds()
        return max(0, int(delta))
    except (AttributeError, OverflowError, TypeError, ValueError):
        return None


# =============================================================================
# Authentication-specific taxonomy
# =============================================================================


class AuthFailureKind(StrEnum):
    """Authentication failure kinds derived from a Failure and its error code."""

    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_NOT_FOUND = "account_not_found"
    ACCOUNT_LOCKED = "account_locked"
    EMAIL_NOT_VERIFIED = "email_not_verified"
    WEAK_PASSWORD = "weak_password"
    EMAIL_EXISTS = "email_exists"
    TOKEN_EXPIRED = "token_expired"
    TOKEN_INVALID = "token_invalid"
    NOT_AUTHENTICATED = "not_authenticated"
    UNKNOWN = "unknown"

    @property
    def requires_user_action(self) -> bool:
        return self in {
            AuthFailureKind.EMAIL_NOT_VERIFIED,
            AuthFailureKind.TOKEN_EXPIRED,
            AuthFailureKind.NOT_AUTHENTICATED,
            AuthFailureKind.INVALID_CREDENTIALS,
            AuthFailureKind.WEAK_PASSWORD,
        }

    @property
    def should_redirect_to_login(self) -> bool:
        return self in {
            AuthFailureKind.TOKEN_EXPIRED,
            AuthFailureKind.TOKEN_INVALID,
            AuthFailureKind.NOT_AUTHENTICATED,
        }

    @property
    def is_retryable(self) -> bool:
        return self is AuthFailureKind.UNKNOWN


_UNAUTHORIZED_CODES: dict[str, AuthFailureKind] = {
    "TOKEN_EXPIRED": AuthFailureKind.TOKEN_EXPIRED,
    "TOKEN_INVALID": AuthFailureKind.TOKEN_INVALID,
    "INVALID_CREDENTIALS": AuthFailureKind.INVALID_CREDENTIALS,
}

_CODE_OVERRIDES: dict[str, AuthFailureKind] = {
    "ACCOUNT_LOCKED": AuthFailureKind.ACCOUNT_LOCKED,
    "EMAIL_NOT_VERIFIED": AuthFailureKind.EMAIL_NOT_VERIFIED,
}


def classify_auth_failure(failure: Failure) -> AuthFailureKind:
    """Derive the authentication-specific kind for a failed auth call."""
    code = (failure.error_code or "").upper()
    if code in _CODE_OVERRIDES:
        return _CODE_OVERRIDES[code]
    match failure.kind:
        case FailureKind.UNAUTHORIZED:
            return _UNAUTHORIZED_CODES.get(code, AuthFailureKind.NOT_AUTHENTICATED)
        case FailureKind.FORBIDDEN:
            return AuthFailureKind.ACCOUNT_LOCKED
        case FailureKind.NOT_FOUND:
            return AuthFailureKind.ACCOUNT_NOT_FOUND
        case FailureKind.CONFLICT:
            return AuthFailureKind.EMAIL_EXISTS
        case FailureKind.VALIDATION:
            field_name = (failure.details or {}).get("field")
            if field_name == "password":
                return AuthFailureKind.WEAK_PASSWORD
            if field_name == "email":
                return AuthFailureKind.EMAIL_NOT_VERIFIED
            return AuthFailureKind.UNKNOWN
        case _:
            return AuthFailureKind.UNKNOWN
