"""Pytest fixtures for testing.

All tests are network-isolated - socket connections are blocked by default.
"""

from __future__ import annotations

import logging
import socket
from collections.abc import Callable, Iterator

import pytest

from debt_tracker_client.auth import TokenLifecycleManager
from debt_tracker_client.config import ClientConfig
from debt_tracker_client.executor import RequestExecutor
from debt_tracker_client.infrastructure.cache import ResponseCache
from debt_tracker_client.infrastructure.connectivity import ConnectivityMonitor
from debt_tracker_client.infrastructure.credentials import InMemoryCredentialStore
from debt_tracker_client.infrastructure.interceptors import InterceptorPipeline
from tests.fakes import RecordingEventRecorder, RecordingSleeper, ScriptedTransport
from tests.support.errors import NetworkIsolationError

# =============================================================================
# Network Isolation - Block all socket connections in tests
# =============================================================================


def _blocked_socket_connect(self: socket.socket, *args: object, **kwargs: object) -> None:
    """Raise an error if any test tries to make a real network connection."""
    raise NetworkIsolationError(str(args))


@pytest.fixture(autouse=True)
def block_network_access(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Block all network access in tests.

    This fixture runs automatically for all tests and prevents any real
    network connections. Tests that need HTTP should use ScriptedTransport.
    """
    monkeypatch.setattr(socket.socket, "connect", _blocked_socket_connect)
    yield


# =============================================================================
# Client fixtures
# =============================================================================


@pytest.fixture
def config() -> ClientConfig:
    return ClientConfig(base_url="https://api.test/api", max_concurrent_calls=8)


@pytest.fixture
def transport() -> ScriptedTransport:
    return ScriptedTransport()


@pytest.fixture
def recorder() -> RecordingEventRecorder:
    return RecordingEventRecorder()


@pytest.fixture
def sleeper() -> RecordingSleeper:
    return RecordingSleeper()


@pytest.fixture
def connectivity() -> ConnectivityMonitor:
    return ConnectivityMonitor()


@pytest.fixture
def credential_store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
def executor(
    config: ClientConfig,
    transport: ScriptedTransport,
    recorder: RecordingEventRecorder,
    sleeper: RecordingSleeper,
    connectivity: ConnectivityMonitor,
) -> Iterator[RequestExecutor]:
    executor = RequestExecutor(
        transport=transport,
        config=config,
        cache=ResponseCache(),
        interceptors=InterceptorPipeline(),
        connectivity=connectivity,
        recorder=recorder,
        sleep=sleeper,
    )
    yield executor
    executor.close()


@pytest.fixture
def auth(
    executor: RequestExecutor,
    credential_store: InMemoryCredentialStore,
    recorder: RecordingEventRecorder,
) -> Iterator[TokenLifecycleManager]:
    manager = TokenLifecycleManager(
        executor=executor,
        credential_store=credential_store,
        refresh_interval_seconds=3600,
        refresh_wait_timeout_seconds=5,
        recorder=recorder,
    )
    executor.bind_token_provider(manager)
    yield manager
    manager.close()


@pytest.fixture
def capture_logger() -> Iterator[Callable[[str], list[logging.LogRecord]]]:
    """Attach a recording handler to a named (non-propagating) logger."""
    attached: list[tuple[logging.Logger, logging.Handler]] = []

    def attach(name: str) -> list[logging.LogRecord]:
        records: list[logging.LogRecord] = []

        class _ListHandler(logging.Handler):
            def emit(self, record: logging.LogRecord) -> None:
                records.append(record)

        logger = logging.getLogger(name)
        handler = _ListHandler(level=logging.DEBUG)
        logger.addHandler(handler)
        attached.append((logger, handler))
        return records

    yield attach
    for logger, handler in attached:
        logger.removeHandler(handler)
