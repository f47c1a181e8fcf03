"""Tests for shared data contracts."""

from debt_tracker_client.types import (
    AuthState,
    JsonObject,
    RequestDescriptor,
    ResponseEnvelope,
    TokenPair,
)


def _envelope(status_code: int, body: JsonObject) -> ResponseEnvelope:
    return ResponseEnvelope(
        status_code=status_code,
        body=body,
        byte_length=0,
        descriptor=RequestDescriptor(method="GET", path="/debts"),
        url="https://api.test/api/v1/debts",
    )


def test_descriptor_normalises_method_and_flags_writes() -> None:
    read = RequestDescriptor(method="get", path="/debts")
    write = RequestDescriptor(method="patch", path="/debts/1", body={"amount": 3})

    assert read.method == "GET"
    assert not read.is_write
    assert write.is_write
    assert read.use_auth is True
    assert dict(read.headers) == {}


def test_descriptor_with_headers_merges_without_mutating() -> None:
    original = RequestDescriptor(method="GET", path="/debts", headers={"X-A": "1"})

    updated = original.with_headers({"X-B": "2"})

    assert dict(updated.headers) == {"X-A": "1", "X-B": "2"}
    assert dict(original.headers) == {"X-A": "1"}


def test_envelope_exposes_backend_conventions() -> None:
    envelope = _envelope(
        201, {"success": True, "data": {"id": 7}, "message": "Created", "code": 12}
    )

    assert envelope.is_success
    assert envelope.success_flag is True
    assert envelope.data == {"id": 7}
    assert envelope.message == "Created"
    assert envelope.error_code == "12"


def test_envelope_falls_back_to_error_fields() -> None:
    envelope = _envelope(400, {"error": "Bad input", "error_code": "E1", "success": "no"})

    assert not envelope.is_success
    assert envelope.success_flag is None
    assert envelope.message == "Bad input"
    assert envelope.error_code == "E1"
    assert envelope.data is None


def test_token_pair_repr_hides_secrets() -> None:
    pair = TokenPair(access_token="secret-access", refresh_token="secret-refresh")

    text = repr(pair)

    assert "secret" not in text
    assert "refresh_token=<set>" in text
    assert "refresh_token=<none>" in repr(TokenPair(access_token="a"))


def test_auth_state_values() -> None:
    assert [state.value for state in AuthState] == [
        "unauthenticated",
        "authenticated",
        "refreshing",
    ]
