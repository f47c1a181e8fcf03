"""Composition root for wiring the API client services."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType

from .auth import TokenLifecycleManager
from .cli import create_app
from .config import ClientConfig
from .executor import RequestExecutor
from .infrastructure import (
    ConnectivityMonitor,
    InMemoryCredentialStore,
    InterceptorPipeline,
    JsonFileCredentialStore,
    LoggingInterceptor,
    PeriodicTask,
    RequestsTransport,
    ResponseCache,
    TimingInterceptor,
)
from .observability import LoggerEventRecorder, get_logger
from .protocols import CredentialStore, EventRecorder, HttpTransport
from .types import AuthState

logger = get_logger("debt_tracker_client.composition")


@dataclass
class ApiServices:
    """Container owning every long-lived client component.

    `close()` is the single cancellation point for periodic work, pending calls
    and pooled connections.
    """

    config: ClientConfig
    cache: ResponseCache
    interceptors: InterceptorPipeline
    connectivity: ConnectivityMonitor
    executor: RequestExecutor
    auth: TokenLifecycleManager
    sweeper: PeriodicTask

    def start(self) -> AuthState:
        """Start the cache sweep and restore any stored session."""
        self.sweeper.start()
        return self.auth.restore()

    def close(self) -> None:
        self.sweeper.cancel()
        self.auth.close()
        self.executor.close()
        logger.debug("API services closed")

    def __enter__(self) -> ApiServices:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def build_credential_store(config: ClientConfig) -> CredentialStore:
    if config.credentials_path:
        return JsonFileCredentialStore(Path(config.credentials_path).expanduser())
    return InMemoryCredentialStore()


def build_api_services(
    *,
    config: ClientConfig,
    credential_store: CredentialStore | None = None,
    transport: HttpTransport | None = None,
    recorder: EventRecorder | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> ApiServices:
    """Build concrete services for the configured backend.

    Args:
        config: Client configuration.
        credential_store: Durable token store; derived from `config` when omitted.
        transport: HTTP transport; a pooled requests session when omitted.
        recorder: Structured event sink for call outcomes and auth events.
        sleep: Backoff sleeper (injectable for tests).
    """
    recorder = recorder or LoggerEventRecorder()
    cache = ResponseCache()
    interceptors = InterceptorPipeline()
    interceptors.register(LoggingInterceptor(log_bodies=config.log_bodies))
    interceptors.register(TimingInterceptor(slow_threshold_ms=config.slow_request_threshold_ms))
    connectivity = ConnectivityMonitor()
    executor = RequestExecutor(
        transport=transport or RequestsTransport(),
        config=config,
        cache=cache,
        interceptors=interceptors,
        connectivity=connectivity,
        recorder=recorder,
        sleep=sleep,
    )
    auth = TokenLifecycleManager(
        executor=executor,
        credential_store=credential_store or build_credential_store(config),
        refresh_interval_seconds=config.token_refresh_interval_seconds,
        refresh_wait_timeout_seconds=config.refresh_wait_timeout_seconds,
        recorder=recorder,
    )
    executor.bind_token_provider(auth)
    sweeper = PeriodicTask(
        config.cache_sweep_interval_seconds,
        cache.purge_expired,
        name="cache-sweep",
    )
    return ApiServices(
        config=config,
        cache=cache,
        interceptors=interceptors,
        connectivity=connectivity,
        executor=executor,
        auth=auth,
        sweeper=sweeper,
    )


def build_cli_services(*, config: ClientConfig) -> ApiServices:
    return build_api_services(config=config)


app = create_app(build_cli_services)
