"""Tests for the requests-backed transport."""

from __future__ import annotations

from typing import Any

import requests
from requests.structures import CaseInsensitiveDict

from debt_tracker_client.infrastructure.transport import RequestsTransport, TransportRequest


class DummyResponse:
    def __init__(self) -> None:
        self.status_code = 201
        self.content = b'{"success": true}'
        self.headers = CaseInsensitiveDict({"Retry-After": "5"})


class DummySession(requests.Session):
    def __init__(self) -> None:
        super().__init__()
        self.calls: list[dict[str, Any]] = []
        self.was_closed = False

    def request(self, method: str, url: str, **kwargs: Any) -> Any:
        self.calls.append({"method": method, "url": url, **kwargs})
        return DummyResponse()

    def close(self) -> None:
        self.was_closed = True


def test_send_passes_request_fields_to_session() -> None:
    session = DummySession()
    transport = RequestsTransport(session=session)

    response = transport.send(
        TransportRequest(
            method="POST",
            url="https://api.test/api/v1/debts",
            timeout_seconds=12.5,
            headers={"Accept": "application/json"},
            content=b'{"amount": 5}',
        )
    )

    assert session.calls == [
        {
            "method": "POST",
            "url": "https://api.test/api/v1/debts",
            "headers": {"Accept": "application/json"},
            "data": b'{"amount": 5}',
            "timeout": 12.5,
        }
    ]
    assert response.status_code == 201
    assert response.content == b'{"success": true}'
    assert response.headers.get("retry-after") == "5"


def test_close_closes_session() -> None:
    session = DummySession()
    RequestsTransport(session=session).close()

    assert session.was_closed
