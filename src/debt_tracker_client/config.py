"""Centralised, injectable configuration for the debt tracker API client."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Self

from dotenv import load_dotenv

from .config_file import ClientConfigFile
from .exceptions import UnknownFlavorError

FLAVOR_BASE_URLS: dict[str, str] = {
    "development": "http://10.0.2.2:8080/api",  # Android emulator localhost
    "staging": "https://staging-api.debttracker.com/api",
    "production": "https://api.debttracker.com/api",
}

_ENV_PREFIX = "DEBT_API_"


class PositiveNumberEnvVarError(ValueError):
    """Raised when an environment variable must be a positive number."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a positive number.")


class BooleanEnvVarError(ValueError):
    """Raised when an environment variable must be a supported boolean."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a boolean value (true/false, 1/0, yes/no, on/off).")


@dataclass(frozen=True)
class ClientConfig:
    """Immutable configuration for the executor and the token lifecycle manager.

    Load from environment with `ClientConfig.from_env()` or construct directly for testing.
    """

    # Backend
    flavor: str = "development"
    base_url: str = ""  # overrides the flavor URL when set
    api_version: str = "v1"
    platform: str = "mobile"
    app_version: str = "1.0.0"

    # Execution
    timeout_seconds: float = 30.0
    max_attempts: int = 3
    retry_base_delay_seconds: float = 1.0
    max_concurrent_calls: int = 8
    fail_fast_without_token: bool = False

    # Token lifecycle
    token_refresh_interval_seconds: float = 50 * 60
    refresh_wait_timeout_seconds: float = 120.0
    credentials_path: str = ""

    # Cache
    cache_expiry_seconds: float = 60 * 60
    cache_sweep_interval_seconds: float = 5 * 60

    # Observability
    slow_request_threshold_ms: float = 3000.0
    log_bodies: bool = False

    def __post_init__(self) -> None:
        if self.flavor not in FLAVOR_BASE_URLS:
            raise UnknownFlavorError(self.flavor)

    @property
    def resolved_base_url(self) -> str:
        return (self.base_url or FLAVOR_BASE_URLS[self.flavor]).rstrip("/")

    @property
    def api_root(self) -> str:
        """Versioned root every relative endpoint path is appended to."""
        return f"{self.resolved_base_url}/{self.api_version}"

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> Self:
        """Load configuration from `DEBT_API_*` environment variables.

        Args:
            dotenv_path: Optional path to .env file. If None, uses default .env discovery.

        Returns:
            ClientConfig instance populated from environment.
        """
        load_dotenv(dotenv_path)

        return cls(
            flavor=_env("FLAVOR", "development").lower(),
            base_url=_env("BASE_URL", ""),
            api_version=_env("VERSION", "v1") or "v1",
            platform=_env("PLATFORM", "mobile") or "mobile",
            app_version=_env("APP_VERSION", "1.0.0") or "1.0.0",
            timeout_seconds=_parse_positive_float("TIMEOUT_SECONDS", "30"),
            max_attempts=int(_parse_positive_float("MAX_ATTEMPTS", "3")),
            retry_base_delay_seconds=float(_env("RETRY_BASE_DELAY_SECONDS", "1") or "1"),
            max_concurrent_calls=int(_parse_positive_float("MAX_CONCURRENT_CALLS", "8")),
            fail_fast_without_token=_parse_bool("FAIL_FAST_WITHOUT_TOKEN", default=False),
            token_refresh_interval_seconds=_parse_positive_float(
                "TOKEN_REFRESH_INTERVAL_SECONDS", "3000"
            ),
            refresh_wait_timeout_seconds=_parse_positive_float(
                "REFRESH_WAIT_TIMEOUT_SECONDS", "120"
            ),
            credentials_path=_env("CREDENTIALS_PATH", ""),
            cache_expiry_seconds=_parse_positive_float("CACHE_EXPIRY_SECONDS", "3600"),
            cache_sweep_interval_seconds=_parse_positive_float(
                "CACHE_SWEEP_INTERVAL_SECONDS", "300"
            ),
            slow_request_threshold_ms=_parse_positive_float("SLOW_REQUEST_THRESHOLD_MS", "3000"),
            log_bodies=_parse_bool("LOG_BODIES", default=False),
        )

    def with_overrides(
        self,
        *,
        flavor: str | None = None,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        log_bodies: bool | None = None,
    ) -> Self:
        """Return a new config with specified overrides (for CLI options)."""
        return replace(
            self,
            flavor=self.flavor if flavor is None else flavor.strip().lower(),
            base_url=self.base_url if base_url is None else base_url.strip(),
            timeout_seconds=self.timeout_seconds if timeout_seconds is None else timeout_seconds,
            log_bodies=self.log_bodies if log_bodies is None else log_bodies,
        )

    def with_file_overrides(self, file_config: ClientConfigFile) -> Self:
        """Return a new config with config-file values overriding env/default values."""
        overrides = {
            name: value
            for name, value in file_config.as_overrides().items()
            if value is not None
        }
        return replace(self, **overrides)


def _env(name: str, default: str) -> str:
    return os.getenv(f"{_ENV_PREFIX}{name}", default).strip()


def _parse_positive_float(name: str, default: str) -> float:
    """Parse a positive number from a prefixed environment variable."""
    env_name = f"{_ENV_PREFIX}{name}"
    text = _env(name, default) or default
    try:
        parsed = float(text)
    except ValueError as exc:
        raise PositiveNumberEnvVarError(env_name) from exc
    if parsed <= 0:
        raise PositiveNumberEnvVarError(env_name)
    return parsed


def _parse_bool(name: str, *, default: bool) -> bool:
    """Parse an optional boolean from a prefixed environment variable."""
    text = _env(name, "").lower()
    if not text:
        return default
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off"}:
        return False
    raise BooleanEnvVarError(f"{_ENV_PREFIX}{name}")
