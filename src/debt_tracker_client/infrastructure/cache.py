"""Response cache implementations for infrastructure.

Usage example:
    from debt_tracker_client.infrastructure.cache import ResponseCache, fingerprint

    cache = ResponseCache()
    key = fingerprint("GET", "/debts", {"page": 1})
    cache.put(key, {"data": []}, expiry_seconds=300, path="/debts")
    cached = cache.get(key)
"""

from __future__ import annotations

import copy
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import override
from urllib.parse import urlencode

from ..protocols import Cache
from ..types import JsonObject

SHORT_EXPIRY_SECONDS = 5 * 60
MEDIUM_EXPIRY_SECONDS = 60 * 60
LONG_EXPIRY_SECONDS = 24 * 60 * 60


def fingerprint(method: str, path: str, query: Mapping[str, object] | None = None) -> str:
    """Return the deterministic cache key for a request.

    Query parameters are sorted by key and `None` values are dropped, so the
    same logical read always maps to the same key.
    """
    key = f"{method.upper()} {path}"
    if not query:
        return key
    pairs = sorted((str(k), str(v)) for k, v in query.items() if v is not None)
    if not pairs:
        return key
    return f"{key}?{urlencode(pairs)}"


@dataclass(frozen=True)
class CacheEntry:
    """A cached payload with its storage time and lifetime."""

    fingerprint: str
    path: str
    payload: JsonObject
    stored_at: float
    expiry_seconds: float

    def is_expired(self, now: float) -> bool:
        return now > self.stored_at + self.expiry_seconds


class ResponseCache(Cache):
    """Thread-safe in-memory cache with lazy expiry.

    Entries are independent; concurrent writers to the same key are
    last-write-wins. Stale entries are evicted when read and by `purge_expired`.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    @override
    def get(self, key: str) -> JsonObject | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None
            return copy.deepcopy(entry.payload)

    @override
    def put(self, key: str, value: JsonObject, expiry_seconds: float, *, path: str = "") -> None:
        entry = CacheEntry(
            fingerprint=key,
            path=path,
            payload=copy.deepcopy(value),
            stored_at=self._clock(),
            expiry_seconds=expiry_seconds,
        )
        with self._lock:
            self._entries[key] = entry

    @override
    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    @override
    def invalidate_prefix(self, path_prefix: str) -> int:
        with self._lock:
            doomed = [k for k, e in self._entries.items() if e.path.startswith(path_prefix)]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def purge_expired(self) -> int:
        """Evict every expired entry and return how many were dropped."""
        now = self._clock()
        with self._lock:
            doomed = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
