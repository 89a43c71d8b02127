"""Shared fixtures: an in-memory Netra API behind httpx.MockTransport."""

import threading
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import httpx
import pytest

from netra.client import DriveClient
from netra.session_store import Session

BASE_URL = "http://api.test/api/v1"
API_PREFIX = "/api/v1"


class FakeApi:
    """Routes requests by (method, path) and records every request it sees."""

    def __init__(self) -> None:
        self.calls: List[httpx.Request] = []
        self._routes: Dict[Tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}
        self._lock = threading.Lock()

    def add(
        self,
        method: str,
        path: str,
        status: int = 200,
        json: Any = None,
        handler: Optional[Callable[[httpx.Request], httpx.Response]] = None,
    ) -> None:
        if handler is None:
            def handler(_request: httpx.Request) -> httpx.Response:
                return httpx.Response(status, json=json)
        self._routes[(method, path)] = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.startswith(API_PREFIX):
            path = path[len(API_PREFIX):]
        with self._lock:
            self.calls.append(request)
        handler = self._routes.get((request.method, path))
        if handler is None:
            return httpx.Response(404, json={"detail": "Not Found"})
        return handler(request)

    def count(self, method: str, path: str) -> int:
        with self._lock:
            return sum(
                1 for r in self.calls
                if r.method == method and r.url.path == f"{API_PREFIX}{path}"
            )


@pytest.fixture(autouse=True)
def _no_http_trace(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NETRA_HTTP_LOG", "")


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def make_client(fake_api: FakeApi) -> Iterator[Callable[..., DriveClient]]:
    clients: List[DriveClient] = []

    def factory(access: Optional[str] = "old-access", refresh: Optional[str] = "old-refresh") -> DriveClient:
        client = DriveClient(
            session=Session(access, refresh),
            base_url=BASE_URL,
            transport=httpx.MockTransport(fake_api),
            http_log_path="",
        )
        clients.append(client)
        return client

    yield factory
    for client in clients:
        client.close()


@pytest.fixture
def client(make_client: Callable[..., DriveClient]) -> DriveClient:
    return make_client()
