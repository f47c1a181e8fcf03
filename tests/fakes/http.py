"""HTTP transport fakes for tests."""

from __future__ import annotations

import json
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import override
from urllib.parse import urlsplit

from debt_tracker_client.infrastructure.transport import TransportRequest, TransportResponse
from debt_tracker_client.protocols import HttpTransport
from tests.support.errors import FakeResponseMissingError

type Reply = TransportResponse | BaseException | Callable[[TransportRequest], TransportResponse]

API_ROOT = "https://api.test/api/v1"


def json_response(
    status_code: int,
    body: object,
    headers: Mapping[str, str] | None = None,
) -> TransportResponse:
    return TransportResponse(
        status_code=status_code,
        content=json.dumps(body).encode("utf-8"),
        headers=dict(headers or {}),
    )


def raw_response(status_code: int, content: bytes) -> TransportResponse:
    return TransportResponse(status_code=status_code, content=content)


def _empty_routes() -> dict[tuple[str, str], list[Reply]]:
    return {}


def _empty_requests() -> list[TransportRequest]:
    return []


@dataclass
class ScriptedTransport(HttpTransport):
    """Fake transport replaying canned replies per `(method, path)` route.

    Replies for a route are consumed in order; the last one repeats. A reply
    may be a response, an exception to raise, or a callable producing a response.
    """

    routes: dict[tuple[str, str], list[Reply]] = field(default_factory=_empty_routes)
    requests: list[TransportRequest] = field(default_factory=_empty_requests)
    closed: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def add(self, method: str, path: str, *replies: Reply) -> ScriptedTransport:
        with self._lock:
            self.routes.setdefault((method.upper(), path), []).extend(replies)
        return self

    def calls_to(self, method: str, path: str) -> list[TransportRequest]:
        with self._lock:
            return [
                request
                for request in self.requests
                if request.method == method.upper() and _route_path(request.url) == path
            ]

    @override
    def send(self, request: TransportRequest) -> TransportResponse:
        key = (request.method, _route_path(request.url))
        with self._lock:
            self.requests.append(request)
            replies = self.routes.get(key)
            if not replies:
                raise FakeResponseMissingError(request.method, request.url)
            reply = replies.pop(0) if len(replies) > 1 else replies[0]
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return reply(request)
        return reply

    @override
    def close(self) -> None:
        self.closed = True


def _route_path(url: str) -> str:
    path = urlsplit(url).path
    root = urlsplit(API_ROOT).path
    return path[len(root) :] if path.startswith(root) else path
