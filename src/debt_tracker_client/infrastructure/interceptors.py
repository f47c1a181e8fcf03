"""Interceptor pipeline: ordered, side-effect-only request/response observers.

Usage example:
    from debt_tracker_client.infrastructure.interceptors import (
        InterceptorPipeline,
        LoggingInterceptor,
        TimingInterceptor,
    )

    pipeline = InterceptorPipeline()
    pipeline.register(LoggingInterceptor())
    pipeline.register(TimingInterceptor(slow_threshold_ms=3000))
"""

from __future__ import annotations

import copy
import json
import threading
import time
from collections.abc import Callable
from typing import override

from ..observability import get_logger
from ..types import JsonObject, ResponseEnvelope

logger = get_logger("debt_tracker_client.infrastructure.interceptors")

_REDACTED_HEADERS = frozenset({"authorization"})


class Interceptor:
    """Base observer; override either hook or both."""

    def on_request(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: JsonObject | None,
    ) -> None:
        return None

    def on_response(self, envelope: ResponseEnvelope) -> None:
        return None


class InterceptorPipeline:
    """Ordered list of observers invoked around every call.

    Observers run sequentially in registration order. An observer that raises
    is logged and skipped; it never aborts the call.
    """

    def __init__(self) -> None:
        self._observers: list[Interceptor] = []
        self._lock = threading.Lock()

    def register(self, observer: Interceptor) -> None:
        with self._lock:
            self._observers.append(observer)

    def unregister(self, observer: Interceptor) -> bool:
        with self._lock:
            try:
                self._observers.remove(observer)
            except ValueError:
                return False
            return True

    def clear(self) -> None:
        with self._lock:
            self._observers.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._observers)

    def _snapshot(self) -> list[Interceptor]:
        with self._lock:
            return list(self._observers)

    def run_before(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: JsonObject | None,
    ) -> None:
        for observer in self._snapshot():
            try:
                observer.on_request(method, url, dict(headers), copy.deepcopy(body))
            except Exception:
                _log_observer_failure(observer, "on_request")

    def run_after(self, envelope: ResponseEnvelope) -> None:
        for observer in self._snapshot():
            try:
                observer.on_response(envelope)
            except Exception:
                _log_observer_failure(observer, "on_response")


def _log_observer_failure(observer: Interceptor, hook: str) -> None:
    logger.exception("Interceptor %s.%s failed; continuing", type(observer).__name__, hook)


def redact_headers(headers: dict[str, str]) -> dict[str, str]:
    return {
        name: ("<redacted>" if name.lower() in _REDACTED_HEADERS else value)
        for name, value in headers.items()
    }


class LoggingInterceptor(Interceptor):
    """Logs one line per request and response at DEBUG level."""

    def __init__(self, *, log_bodies: bool = False) -> None:
        self.log_bodies = log_bodies

    @override
    def on_request(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: JsonObject | None,
    ) -> None:
        logger.debug("-> %s %s headers=%s", method, url, redact_headers(headers))
        if body is not None and self.log_bodies:
            logger.debug("-> body: %s", json.dumps(body, ensure_ascii=False))

    @override
    def on_response(self, envelope: ResponseEnvelope) -> None:
        logger.debug("<- %s %s", envelope.status_code, envelope.url)
        if self.log_bodies and envelope.body:
            logger.debug("<- body: %s", json.dumps(envelope.body, ensure_ascii=False))


class TimingInterceptor(Interceptor):
    """Measures each exchange and warns about slow requests.

    Start times are tracked per thread, so concurrent calls to the same URL do
    not overwrite each other.
    """

    def __init__(
        self,
        *,
        slow_threshold_ms: float = 3000.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.slow_threshold_ms = slow_threshold_ms
        self._clock = clock
        self._local = threading.local()
        self._lock = threading.Lock()
        self.last_durations_ms: dict[str, float] = {}

    @override
    def on_request(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: JsonObject | None,
    ) -> None:
        self._local.started = (url, self._clock())

    @override
    def on_response(self, envelope: ResponseEnvelope) -> None:
        started = getattr(self._local, "started", None)
        if started is None or started[0] != envelope.url:
            return
        self._local.started = None
        duration_ms = (self._clock() - started[1]) * 1000
        with self._lock:
            self.last_durations_ms[envelope.url] = duration_ms
        if duration_ms > self.slow_threshold_ms:
            logger.warning("Slow API request: %s took %.0fms", envelope.url, duration_ms)
