"""Pydantic-based validation helpers for inbound response payloads."""

from __future__ import annotations

from typing import TypedDict

from pydantic import TypeAdapter, ValidationError


class IncomingDataError(ValueError):
    """Raised when inbound data fails validation."""


class TokenDataInput(TypedDict, total=False):
    access_token: str | None
    token: str | None
    refresh_token: str | None


class TokenEnvelopeInput(TypedDict, total=False):
    success: bool | None
    data: TokenDataInput | None


class SessionCheckInput(TypedDict, total=False):
    valid: bool | None


def validate_as[SchemaT](schema: type[SchemaT], payload: object) -> SchemaT:
    try:
        return TypeAdapter(schema).validate_python(payload)
    except ValidationError as exc:
        message = f"Invalid payload for {schema}."
        raise IncomingDataError(message) from exc


def validate_json_as[SchemaT](schema: type[SchemaT], payload: str | bytes | bytearray) -> SchemaT:
    try:
        return TypeAdapter(schema).validate_json(payload)
    except ValidationError as exc:
        message = f"Invalid JSON payload for {schema}."
        raise IncomingDataError(message) from exc


def parse_token_payload(payload: object) -> tuple[str, str | None] | None:
    """Extract `(access_token, refresh_token)` from a login or refresh response.

    Accepts `data.access_token` or the legacy `data.token`. Returns None when
    the payload reports `success: false` or carries no usable access token.
    """
    try:
        envelope = validate_as(TokenEnvelopeInput, payload)
    except IncomingDataError:
        return None
    if envelope.get("success") is False:
        return None
    data = envelope.get("data") or {}
    access = data.get("access_token") or data.get("token")
    if not access:
        return None
    return access, data.get("refresh_token") or None


def parse_session_valid(payload: object) -> bool:
    """Return True only when a session-check payload reports `valid: true`."""
    try:
        check = validate_as(SessionCheckInput, payload)
    except IncomingDataError:
        return False
    if check.get("valid") is True:
        return True
    data = payload.get("data") if isinstance(payload, dict) else None
    if isinstance(data, dict):
        try:
            return validate_as(SessionCheckInput, data).get("valid") is True
        except IncomingDataError:
            return False
    return False
