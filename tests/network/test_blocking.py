"""Checks that the autouse socket guard stops the real transport from connecting."""

from __future__ import annotations

import socket

import pytest

from debt_tracker_client.infrastructure.transport import RequestsTransport, TransportRequest
from tests.support.errors import NetworkIsolationError


def test_raw_socket_connect_is_refused() -> None:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        with pytest.raises(NetworkIsolationError, match="127.0.0.1"):
            sock.connect(("127.0.0.1", 9))


def test_requests_transport_cannot_reach_the_network() -> None:
    transport = RequestsTransport()
    request = TransportRequest(
        method="GET",
        url="http://127.0.0.1:9/api/v1/health",
        timeout_seconds=1,
        headers={"Accept": "application/json"},
    )
    try:
        with pytest.raises(NetworkIsolationError, match="Use ScriptedTransport"):
            transport.send(request)
    finally:
        transport.close()
