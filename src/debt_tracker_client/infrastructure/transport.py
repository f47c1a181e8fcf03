"""HTTP transport implementations for infrastructure.

Usage example:
    import requests

    from debt_tracker_client.infrastructure.transport import RequestsTransport, TransportRequest

    transport = RequestsTransport(session=requests.Session())
    response = transport.send(
        TransportRequest(method="GET", url="https://api.example.com/v1/ping", timeout_seconds=5)
    )
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import override

import requests

from ..protocols import HttpTransport


def _empty_headers() -> Mapping[str, str]:
    return {}


@dataclass(frozen=True)
class TransportRequest:
    """Fully built request handed to the transport."""

    method: str
    url: str
    timeout_seconds: float
    headers: Mapping[str, str] = field(default_factory=_empty_headers)
    content: bytes | None = None


@dataclass(frozen=True)
class TransportResponse:
    """Raw response returned by the transport."""

    status_code: int
    content: bytes = b""
    headers: Mapping[str, str] = field(default_factory=_empty_headers)


class RequestsTransport(HttpTransport):
    """Requests-backed transport sharing one pooled session."""

    def __init__(self, *, session: requests.Session | None = None) -> None:
        self._session = session or requests.Session()

    @override
    def send(self, request: TransportRequest) -> TransportResponse:
        response = self._session.request(
            request.method,
            request.url,
            headers=dict(request.headers),
            data=request.content,
            timeout=request.timeout_seconds,
        )
        return TransportResponse(
            status_code=response.status_code,
            content=response.content,
            headers=response.headers,
        )

    @override
    def close(self) -> None:
        self._session.close()
