"""Custom exceptions for the debt tracker API client.

These exceptions provide clear error handling and enable testing of error paths.
"""

from __future__ import annotations

from .failures import AuthFailureKind, Failure, FailureKind


class ClientError(Exception):
    """Base exception for all client errors."""

    pass


class ApiError(ClientError):
    """Raised when a call ends in a terminal Failure after local recovery.

    The classified Failure is available as `failure`; it is never mutated.
    """

    def __init__(self, failure: Failure) -> None:
        self.failure = failure
        super().__init__(str(failure))

    @property
    def kind(self) -> FailureKind:
        return self.failure.kind


class CallCancelledError(ApiError):
    """Raised inside a worker when its call was cancelled; the outcome is discarded."""

    def __init__(self) -> None:
        super().__init__(Failure(kind=FailureKind.UNKNOWN, message="Call cancelled"))


class AuthError(ClientError):
    """Raised when an authentication flow (login, session check) fails."""

    def __init__(
        self,
        kind: AuthFailureKind,
        message: str,
        *,
        failure: Failure | None = None,
    ) -> None:
        self.auth_kind = kind
        self.failure = failure
        super().__init__(message)

    @property
    def requires_user_action(self) -> bool:
        return self.auth_kind.requires_user_action

    @property
    def should_redirect_to_login(self) -> bool:
        return self.auth_kind.should_redirect_to_login


class NotAuthenticatedError(AuthError):
    """Raised when an operation needs a session and none is held."""

    def __init__(self) -> None:
        super().__init__(AuthFailureKind.NOT_AUTHENTICATED, "User not authenticated")


class CredentialStoreError(ClientError):
    """Raised when the durable credential store cannot be read."""

    def __init__(self, path: str, detail: str) -> None:
        self.path = path
        super().__init__(f"Credential store at {path} is unreadable: {detail}")


class UnknownFlavorError(ValueError):
    """Raised when an unsupported deployment flavor is configured."""

    def __init__(self, flavor: str) -> None:
        super().__init__(
            f"Unknown flavor {flavor!r}. Expected one of: development, staging, production."
        )


class ConfigFileNotFoundError(ClientError):
    """Raised when a requested config file does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Config file not found: {path}")


class ConfigFileParseError(ClientError):
    """Raised when a config file is not valid TOML."""

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"Config file {path} is not valid TOML: {detail}")


class ConfigFileValidationError(ClientError):
    """Raised when a config file does not match the expected schema."""

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"Config file {path} is invalid: {detail}")
