"""Tests for the response cache and request fingerprints."""

from __future__ import annotations

from debt_tracker_client.infrastructure.cache import ResponseCache, fingerprint
from tests.fakes import ManualClock


def test_fingerprint_sorts_query_and_drops_none() -> None:
    first = fingerprint("get", "/debts", {"page": 2, "status": "open", "q": None})
    second = fingerprint("GET", "/debts", {"status": "open", "page": 2})

    assert first == second == "GET /debts?page=2&status=open"
    assert fingerprint("GET", "/debts") == "GET /debts"
    assert fingerprint("GET", "/debts", {"q": None}) == "GET /debts"


def test_put_then_get_round_trips_until_expiry() -> None:
    clock = ManualClock()
    cache = ResponseCache(clock=clock)
    cache.put("GET /debts", {"data": [1, 2]}, expiry_seconds=60)

    assert cache.get("GET /debts") == {"data": [1, 2]}

    clock.advance(60)
    assert cache.get("GET /debts") == {"data": [1, 2]}

    clock.advance(0.001)
    assert cache.get("GET /debts") is None
    assert len(cache) == 0


def test_put_overwrites_existing_entry() -> None:
    cache = ResponseCache(clock=ManualClock())
    cache.put("k", {"v": 1}, expiry_seconds=60)
    cache.put("k", {"v": 2}, expiry_seconds=60)

    assert cache.get("k") == {"v": 2}


def test_cached_payload_is_isolated_from_caller_mutation() -> None:
    cache = ResponseCache(clock=ManualClock())
    payload: dict[str, object] = {"data": {"amount": 10}}
    cache.put("k", payload, expiry_seconds=60)
    payload["data"] = "changed"

    read = cache.get("k")
    assert read == {"data": {"amount": 10}}
    assert read is not None
    read["data"] = "mutated"
    assert cache.get("k") == {"data": {"amount": 10}}


def test_invalidate_and_invalidate_prefix() -> None:
    cache = ResponseCache(clock=ManualClock())
    cache.put("GET /debts", {}, expiry_seconds=60, path="/debts")
    cache.put("GET /debts/1", {}, expiry_seconds=60, path="/debts/1")
    cache.put("GET /contacts", {}, expiry_seconds=60, path="/contacts")

    cache.invalidate("GET /contacts")
    dropped = cache.invalidate_prefix("/debts")

    assert dropped == 2
    assert len(cache) == 0


def test_purge_expired_only_drops_stale_entries() -> None:
    clock = ManualClock()
    cache = ResponseCache(clock=clock)
    cache.put("short", {}, expiry_seconds=10)
    cache.put("long", {}, expiry_seconds=100)

    clock.advance(50)

    assert cache.purge_expired() == 1
    assert cache.has("long")
    assert not cache.has("short")
