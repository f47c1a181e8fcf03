"""Typed parsing and validation for client config files.

Usage example:
    from pathlib import Path

    from debt_tracker_client.config import ClientConfig
    from debt_tracker_client.config_file import load_client_config_file

    file_config = load_client_config_file(path=Path("debt-tracker.toml"))
    config = ClientConfig.from_env().with_file_overrides(file_config)

Expected file layout:
    schema_version = 1

    [client]
    flavor = "staging"
    timeout_seconds = 15
"""

from __future__ import annotations

import tomllib
from dataclasses import asdict, dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .exceptions import ConfigFileNotFoundError, ConfigFileParseError, ConfigFileValidationError

_SCHEMA_VERSION = 1
_FLAVORS = frozenset({"development", "staging", "production"})


@dataclass(frozen=True)
class ClientConfigFile:
    """Validated client config values loaded from a TOML file."""

    flavor: str | None = None
    base_url: str | None = None
    api_version: str | None = None
    app_version: str | None = None
    timeout_seconds: float | None = None
    max_attempts: int | None = None
    retry_base_delay_seconds: float | None = None
    max_concurrent_calls: int | None = None
    fail_fast_without_token: bool | None = None
    token_refresh_interval_seconds: float | None = None
    refresh_wait_timeout_seconds: float | None = None
    credentials_path: str | None = None
    cache_expiry_seconds: float | None = None
    cache_sweep_interval_seconds: float | None = None
    slow_request_threshold_ms: float | None = None
    log_bodies: bool | None = None

    def as_overrides(self) -> dict[str, object]:
        return asdict(self)


class _ClientSectionModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    flavor: str | None = None
    base_url: str | None = None
    api_version: str | None = None
    app_version: str | None = None
    timeout_seconds: float | None = None
    max_attempts: int | None = None
    retry_base_delay_seconds: float | None = None
    max_concurrent_calls: int | None = None
    fail_fast_without_token: bool | None = None
    token_refresh_interval_seconds: float | None = None
    refresh_wait_timeout_seconds: float | None = None
    credentials_path: str | None = None
    cache_expiry_seconds: float | None = None
    cache_sweep_interval_seconds: float | None = None
    slow_request_threshold_ms: float | None = None
    log_bodies: bool | None = None

    @field_validator("flavor")
    @classmethod
    def _validate_flavor(cls, value: str | None) -> str | None:
        if value is None:
            return None
        flavor = value.strip().lower()
        if flavor not in _FLAVORS:
            raise ValueError
        return flavor

    @field_validator("base_url", "api_version", "app_version", "credentials_path")
    @classmethod
    def _validate_non_empty_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        text = value.strip()
        if not text:
            raise ValueError
        return text

    @field_validator("max_attempts", "max_concurrent_calls")
    @classmethod
    def _validate_positive_int(cls, value: int | None) -> int | None:
        if value is None:
            return None
        if value < 1:
            raise ValueError
        return value

    @field_validator(
        "timeout_seconds",
        "token_refresh_interval_seconds",
        "refresh_wait_timeout_seconds",
        "cache_expiry_seconds",
        "cache_sweep_interval_seconds",
        "slow_request_threshold_ms",
    )
    @classmethod
    def _validate_positive_number(cls, value: float | None) -> float | None:
        if value is None:
            return None
        if value <= 0:
            raise ValueError
        return value

    @field_validator("retry_base_delay_seconds")
    @classmethod
    def _validate_non_negative(cls, value: float | None) -> float | None:
        if value is None:
            return None
        if value < 0:
            raise ValueError
        return value


class _ConfigFileModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    schema_version: int
    client: _ClientSectionModel

    @field_validator("schema_version")
    @classmethod
    def _validate_schema_version(cls, value: int) -> int:
        if value != _SCHEMA_VERSION:
            raise ValueError
        return value


def _format_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ("<root>",)))
    message = str(first.get("msg", "invalid value"))
    return f"{location}: {message}"


def load_client_config_file(*, path: Path) -> ClientConfigFile:
    """Load and validate a client TOML config file."""
    if not path.exists():
        raise ConfigFileNotFoundError(str(path))

    raw_payload = path.read_text(encoding="utf-8")
    try:
        payload: object = tomllib.loads(raw_payload)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigFileParseError(str(path), str(exc)) from exc

    try:
        model = _ConfigFileModel.model_validate(payload)
    except ValidationError as exc:
        raise ConfigFileValidationError(str(path), _format_validation_error(exc)) from exc

    return ClientConfigFile(**model.client.model_dump())
