"""Request executor: build, send, classify, retry and reactively refresh.

The executor owns the transport. It turns a `RequestDescriptor` into at most
`max_attempts` HTTP exchanges (plus one extra exchange after a successful
reactive token refresh) and either returns a `ResponseEnvelope` or raises
`ApiError` carrying the terminal `Failure`.

Usage example:
    from debt_tracker_client.config import ClientConfig
    from debt_tracker_client.executor import RequestExecutor
    from debt_tracker_client.infrastructure.transport import RequestsTransport
    from debt_tracker_client.types import RequestDescriptor

    executor = RequestExecutor(transport=RequestsTransport(), config=ClientConfig())
    envelope = executor.execute(RequestDescriptor(method="GET", path="/debts/summary"))
    pending = executor.submit(RequestDescriptor(method="GET", path="/debts"))
    executor.cancel(pending.call_id)
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from dataclasses import dataclass
from itertools import count
from urllib.parse import urlencode

import requests

from .config import ClientConfig
from .endpoints import HealthEndpoints, resource_prefix
from .exceptions import ApiError, CallCancelledError
from .failures import (
    Failure,
    FailureKind,
    classify_response,
    classify_transport_error,
    invalid_request,
    offline_failure,
    parse_failure,
)
from .infrastructure.cache import ResponseCache, fingerprint
from .infrastructure.interceptors import InterceptorPipeline
from .infrastructure.resilience import RetryPolicy as RetryPolicyImpl
from .infrastructure.transport import TransportRequest, TransportResponse
from .infrastructure.validation import IncomingDataError, validate_json_as
from .observability import LoggerEventRecorder, get_logger
from .protocols import (
    Cache,
    ConnectivitySignal,
    EventRecorder,
    HttpTransport,
    RetryPolicy,
    TokenProvider,
)
from .types import SUPPORTED_METHODS, JsonObject, RequestDescriptor, ResponseEnvelope

logger = get_logger("debt_tracker_client.executor")


@dataclass
class _CallTrace:
    """Per-call bookkeeping used for the terminal outcome record."""

    attempts: int = 0
    auth_retried: bool = False
    from_cache: bool = False


class PendingCall:
    """Handle for a call running on the executor's worker pool."""

    def __init__(
        self,
        call_id: str,
        descriptor: RequestDescriptor,
        future: Future[ResponseEnvelope],
        cancel_event: threading.Event,
    ) -> None:
        self.call_id = call_id
        self.descriptor = descriptor
        self._future = future
        self._cancel_event = cancel_event

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def done(self) -> bool:
        return self._future.done()

    def cancel(self) -> None:
        self._cancel_event.set()
        self._future.cancel()

    def result(self, timeout: float | None = None) -> ResponseEnvelope | None:
        """Wait for the call and return its envelope.

        Returns None for a cancelled call, whatever its eventual outcome.

        Raises:
            ApiError: If the call ended in a terminal failure.
        """
        try:
            envelope = self._future.result(timeout)
        except CancelledError:
            return None
        except ApiError:
            if self.cancelled:
                return None
            raise
        return None if self.cancelled else envelope


class RequestExecutor:
    """Executes API calls with retry, reactive refresh, caching and interception.

    Calls may run concurrently from any number of threads; each logical call
    retries strictly sequentially.
    """

    def __init__(
        self,
        *,
        transport: HttpTransport,
        config: ClientConfig,
        cache: Cache | None = None,
        interceptors: InterceptorPipeline | None = None,
        connectivity: ConnectivitySignal | None = None,
        recorder: EventRecorder | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.transport = transport
        self.config = config
        self.cache = cache or ResponseCache()
        self.interceptors = interceptors or InterceptorPipeline()
        self.connectivity = connectivity
        self.recorder = recorder or LoggerEventRecorder()
        self.retry_policy = retry_policy or RetryPolicyImpl(
            max_attempts=config.max_attempts,
            base_delay_seconds=config.retry_base_delay_seconds,
        )
        self._sleep = sleep
        self._clock = clock
        self._token_provider: TokenProvider | None = None
        self._pool = ThreadPoolExecutor(
            max_workers=config.max_concurrent_calls,
            thread_name_prefix="api-call",
        )
        self._pending: dict[str, PendingCall] = {}
        self._pending_lock = threading.Lock()
        self._call_ids = count(1)
        self._closed = False

    def bind_token_provider(self, provider: TokenProvider | None) -> None:
        """Attach the source of bearer tokens and reactive refresh."""
        self._token_provider = provider

    # =========================================================================
    # Core execution
    # =========================================================================

    def execute(
        self,
        descriptor: RequestDescriptor,
        *,
        cacheable: bool = False,
        force_refresh: bool = False,
        cache_expiry_seconds: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ResponseEnvelope:
        """Execute one logical call.

        Raises:
            ApiError: Once local recovery is exhausted or the failure is terminal.
        """
        trace = _CallTrace()
        started = self._clock()
        try:
            envelope = self._run(
                descriptor,
                trace,
                cacheable=cacheable,
                force_refresh=force_refresh,
                cache_expiry_seconds=cache_expiry_seconds,
                cancel_event=cancel_event,
            )
        except ApiError as exc:
            if _is_cancelled(cancel_event):
                logger.debug("Discarded cancelled call %s %s", descriptor.method, descriptor.path)
            else:
                self._record_outcome(descriptor, trace, started, failure=exc.failure)
            raise
        if _is_cancelled(cancel_event):
            logger.debug("Discarded cancelled call %s %s", descriptor.method, descriptor.path)
        else:
            self._record_outcome(descriptor, trace, started, envelope=envelope)
        return envelope

    def _run(
        self,
        descriptor: RequestDescriptor,
        trace: _CallTrace,
        *,
        cacheable: bool,
        force_refresh: bool,
        cache_expiry_seconds: float | None,
        cancel_event: threading.Event | None,
    ) -> ResponseEnvelope:
        if descriptor.method not in SUPPORTED_METHODS:
            raise ApiError(invalid_request(f"Unsupported HTTP method: {descriptor.method}"))

        url = self.build_url(descriptor.path, descriptor.query)
        cache_key = (
            fingerprint(descriptor.method, descriptor.path, descriptor.query)
            if cacheable and not descriptor.is_write
            else None
        )
        if cache_key is not None and not force_refresh:
            cached = self.cache.get(cache_key)
            if cached is not None:
                trace.from_cache = True
                return ResponseEnvelope(
                    status_code=200,
                    body=cached,
                    byte_length=0,
                    descriptor=descriptor,
                    url=url,
                )

        if self.connectivity is not None and not self.connectivity.is_online:
            raise ApiError(offline_failure())

        token = self._current_token() if descriptor.use_auth else None
        if descriptor.use_auth and token is None and self.config.fail_fast_without_token:
            raise ApiError(
                Failure(
                    kind=FailureKind.UNAUTHORIZED,
                    message="User not authenticated",
                    status_code=401,
                )
            )

        retry_attempt = 0
        while True:
            _raise_if_cancelled(cancel_event)
            retry_attempt += 1
            trace.attempts += 1
            outcome = self._attempt(descriptor, url, token)
            if isinstance(outcome, ResponseEnvelope):
                self._store_success(descriptor, outcome, cache_key, cache_expiry_seconds)
                return outcome

            failure = outcome
            if (
                failure.kind is FailureKind.UNAUTHORIZED
                and descriptor.use_auth
                and not trace.auth_retried
            ):
                trace.auth_retried = True
                new_token = self._refresh_after_rejection(token)
                if new_token is None:
                    raise ApiError(failure)
                logger.info("Retrying %s %s with refreshed token", descriptor.method, url)
                token = new_token
                # The refresh-and-retry does not consume the retry budget.
                retry_attempt -= 1
                continue

            if self.retry_policy.should_retry(failure, retry_attempt):
                delay = self.retry_policy.compute_delay(retry_attempt)
                logger.warning(
                    "Retrying %s %s after %s (attempt %d/%d, waiting %.1fs)",
                    descriptor.method,
                    url,
                    failure.kind.value,
                    retry_attempt,
                    self.retry_policy.max_attempts,
                    delay,
                )
                _raise_if_cancelled(cancel_event)
                self._sleep(delay)
                continue

            raise ApiError(failure)

    def _attempt(
        self,
        descriptor: RequestDescriptor,
        url: str,
        token: str | None,
    ) -> ResponseEnvelope | Failure:
        """Perform one HTTP exchange and return an envelope or a classified failure."""
        timeout = descriptor.timeout_seconds or self.config.timeout_seconds
        deadline = self._clock() + timeout
        headers = self.build_headers(descriptor, token)

        self.interceptors.run_before(descriptor.method, url, headers, descriptor.body)

        remaining = deadline - self._clock()
        if remaining <= 0:
            return Failure(kind=FailureKind.TIMEOUT, message="Request timeout")

        request = TransportRequest(
            method=descriptor.method,
            url=url,
            timeout_seconds=remaining,
            headers=headers,
            content=_encode_body(descriptor.body),
        )
        sent_at = self._clock()
        try:
            response = self.transport.send(request)
        except (requests.RequestException, OSError) as exc:
            return classify_transport_error(exc)

        body = _parse_body(response)
        if body is None:
            return parse_failure(response.status_code)

        envelope = ResponseEnvelope(
            status_code=response.status_code,
            body=body,
            byte_length=len(response.content),
            descriptor=descriptor,
            url=url,
            elapsed_seconds=self._clock() - sent_at,
        )
        self.interceptors.run_after(envelope)
        if envelope.is_success:
            return envelope
        return classify_response(response.status_code, body, response.headers)

    def _store_success(
        self,
        descriptor: RequestDescriptor,
        envelope: ResponseEnvelope,
        cache_key: str | None,
        cache_expiry_seconds: float | None,
    ) -> None:
        if cache_key is not None:
            expiry = cache_expiry_seconds or self.config.cache_expiry_seconds
            self.cache.put(cache_key, envelope.body, expiry, path=descriptor.path)
        elif descriptor.is_write:
            prefix = resource_prefix(descriptor.path)
            dropped = self.cache.invalidate_prefix(prefix)
            if dropped:
                logger.debug("Invalidated %d cached entries under %s", dropped, prefix)

    def _current_token(self) -> str | None:
        if self._token_provider is None:
            return None
        return self._token_provider.current_access_token()

    def _refresh_after_rejection(self, rejected_token: str | None) -> str | None:
        if self._token_provider is None:
            return None
        return self._token_provider.refresh_after_rejection(rejected_token)

    def _record_outcome(
        self,
        descriptor: RequestDescriptor,
        trace: _CallTrace,
        started: float,
        *,
        envelope: ResponseEnvelope | None = None,
        failure: Failure | None = None,
    ) -> None:
        fields: dict[str, object] = {
            "method": descriptor.method,
            "path": descriptor.path,
            "attempts": trace.attempts,
            "elapsed_ms": round((self._clock() - started) * 1000),
        }
        if trace.from_cache:
            fields["cache"] = "hit"
        if trace.auth_retried:
            fields["auth_retried"] = True
        if envelope is not None:
            fields["status"] = envelope.status_code
            self.recorder.record(logging.INFO, "api.call.succeeded", fields)
            return
        if failure is not None:
            fields.update(failure.to_log_fields())
            level = logging.ERROR if failure.kind is FailureKind.UNKNOWN else logging.WARNING
            self.recorder.record(level, "api.call.failed", fields)

    # =========================================================================
    # Request building
    # =========================================================================

    def build_url(self, path: str, query: Mapping[str, object] | None = None) -> str:
        """Join the versioned base URL and `path`; absolute URLs pass through."""
        if path.startswith(("http://", "https://")):
            url = path
        else:
            url = f"{self.config.api_root}/{path.lstrip('/')}"
        if query:
            pairs = [(str(k), str(v)) for k, v in query.items() if v is not None]
            if pairs:
                url = f"{url}?{urlencode(pairs)}"
        return url

    def build_headers(self, descriptor: RequestDescriptor, token: str | None) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-API-Version": self.config.api_version,
            "X-Platform": self.config.platform,
            "X-App-Version": self.config.app_version,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        headers.update(descriptor.headers)
        return headers

    # =========================================================================
    # Convenience verbs
    # =========================================================================

    def get(
        self,
        path: str,
        *,
        query: Mapping[str, object] | None = None,
        use_auth: bool = True,
        timeout_seconds: float | None = None,
    ) -> JsonObject:
        descriptor = RequestDescriptor(
            method="GET",
            path=path,
            query=query,
            use_auth=use_auth,
            timeout_seconds=timeout_seconds,
        )
        return self.execute(descriptor).body

    def get_cached(
        self,
        path: str,
        *,
        query: Mapping[str, object] | None = None,
        use_auth: bool = True,
        cache_expiry_seconds: float | None = None,
        force_refresh: bool = False,
    ) -> JsonObject:
        """GET through the response cache."""
        descriptor = RequestDescriptor(method="GET", path=path, query=query, use_auth=use_auth)
        envelope = self.execute(
            descriptor,
            cacheable=True,
            force_refresh=force_refresh,
            cache_expiry_seconds=cache_expiry_seconds,
        )
        return envelope.body

    def post(
        self, path: str, body: JsonObject | None = None, *, use_auth: bool = True
    ) -> JsonObject:
        return self._write("POST", path, body, use_auth)

    def put(
        self, path: str, body: JsonObject | None = None, *, use_auth: bool = True
    ) -> JsonObject:
        return self._write("PUT", path, body, use_auth)

    def patch(
        self, path: str, body: JsonObject | None = None, *, use_auth: bool = True
    ) -> JsonObject:
        return self._write("PATCH", path, body, use_auth)

    def delete(self, path: str, *, use_auth: bool = True) -> JsonObject:
        return self._write("DELETE", path, None, use_auth)

    def _write(
        self, method: str, path: str, body: JsonObject | None, use_auth: bool
    ) -> JsonObject:
        descriptor = RequestDescriptor(method=method, path=path, body=body, use_auth=use_auth)
        return self.execute(descriptor).body

    # =========================================================================
    # Concurrency and cancellation
    # =========================================================================

    def submit(
        self,
        descriptor: RequestDescriptor,
        *,
        cacheable: bool = False,
        force_refresh: bool = False,
    ) -> PendingCall:
        """Run a call on the worker pool and return its cancellable handle."""
        if self._closed:
            raise RuntimeError("RequestExecutor is closed.")
        call_id = f"call-{next(self._call_ids)}"
        cancel_event = threading.Event()
        future = self._pool.submit(
            self.execute,
            descriptor,
            cacheable=cacheable,
            force_refresh=force_refresh,
            cancel_event=cancel_event,
        )
        pending = PendingCall(call_id, descriptor, future, cancel_event)
        with self._pending_lock:
            self._pending[call_id] = pending
        future.add_done_callback(lambda _: self._forget(call_id))
        return pending

    def _forget(self, call_id: str) -> None:
        with self._pending_lock:
            self._pending.pop(call_id, None)

    def cancel(self, call_id: str) -> bool:
        """Cancel a pending call; its eventual response is discarded."""
        with self._pending_lock:
            pending = self._pending.pop(call_id, None)
        if pending is None:
            return False
        pending.cancel()
        descriptor = pending.descriptor
        logger.debug("Cancelled %s (%s %s)", call_id, descriptor.method, descriptor.path)
        return True

    def cancel_all(self) -> int:
        with self._pending_lock:
            pending_calls = list(self._pending.values())
            self._pending.clear()
        for pending in pending_calls:
            pending.cancel()
        return len(pending_calls)

    @property
    def pending_count(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    def execute_many(
        self,
        descriptors: Iterable[RequestDescriptor],
        *,
        fail_fast: bool = False,
    ) -> list[ResponseEnvelope | Failure]:
        """Run calls concurrently and return results in input order.

        Without `fail_fast` each slot holds the envelope or the terminal Failure.
        With `fail_fast` the first failure (in input order) is raised and the
        remaining calls are cancelled.
        """
        pending_calls = [self.submit(descriptor) for descriptor in descriptors]
        results: list[ResponseEnvelope | Failure] = []
        for index, pending in enumerate(pending_calls):
            try:
                envelope = pending.result()
            except ApiError as exc:
                if fail_fast:
                    for remaining in pending_calls[index + 1 :]:
                        self.cancel(remaining.call_id)
                    raise
                results.append(exc.failure)
                continue
            if envelope is None:
                results.append(Failure(kind=FailureKind.UNKNOWN, message="Call cancelled"))
            else:
                results.append(envelope)
        return results

    # =========================================================================
    # Health and diagnostics
    # =========================================================================

    def check_health(self) -> bool:
        """Return True when the backend health endpoint answers successfully."""
        descriptor = RequestDescriptor(
            method="GET", path=HealthEndpoints.HEALTH, use_auth=False, timeout_seconds=10
        )
        try:
            self.execute(descriptor)
        except ApiError as exc:
            logger.warning("Health check failed: %s", exc.failure)
            return False
        return True

    def ping(self) -> float | None:
        """Return the round-trip time in seconds, or None when the backend is unreachable."""
        descriptor = RequestDescriptor(
            method="GET", path=HealthEndpoints.PING, use_auth=False, timeout_seconds=5
        )
        started = self._clock()
        try:
            self.execute(descriptor)
        except ApiError as exc:
            logger.warning("Ping failed: %s", exc.failure)
            return None
        return self._clock() - started

    def stats(self) -> dict[str, object]:
        return {
            "base_url": self.config.api_root,
            "online": True if self.connectivity is None else self.connectivity.is_online,
            "pending_calls": self.pending_count,
            "interceptors": len(self.interceptors),
            "has_token": self._current_token() is not None,
        }

    def close(self) -> None:
        """Cancel pending calls, stop the worker pool and release the transport."""
        if self._closed:
            return
        self._closed = True
        cancelled = self.cancel_all()
        if cancelled:
            logger.info("Cancelled %d pending calls on close", cancelled)
        self._pool.shutdown(wait=False, cancel_futures=True)
        self.transport.close()


def _is_cancelled(cancel_event: threading.Event | None) -> bool:
    return cancel_event is not None and cancel_event.is_set()


def _raise_if_cancelled(cancel_event: threading.Event | None) -> None:
    if _is_cancelled(cancel_event):
        raise CallCancelledError()


def _encode_body(body: JsonObject | None) -> bytes | None:
    if body is None:
        return None
    return json.dumps(body).encode("utf-8")


def _parse_body(response: TransportResponse) -> JsonObject | None:
    """Parse a response body; empty is `{}`, anything but a JSON object is None."""
    if not response.content.strip():
        return {}
    try:
        return validate_json_as(dict[str, object], response.content)
    except IncomingDataError:
        return None
