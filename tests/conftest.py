"""Shared fixtures: a scripted HTTP backend and a gateway wired to it."""

import inspect
from collections.abc import Callable
from typing import Any

import httpx
import orjson
import pytest

from restbase.config import BackendConfig
from restbase.storage.session_store import InMemorySessionStore
from restbase.transport.gateway import Gateway

BASE_URL = "https://project.example.co"
ANON_KEY = "anon-key"


class FakeBackend:
    """Scripted backend that records every request it receives.

    Responses are consumed in the order they were queued. An unscripted
    request gets ``200 []``.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._queue: list[Any] = []

    def respond(
        self,
        status_code: int = 200,
        json: Any = None,
        content: bytes | str | None = None,
    ) -> None:
        if json is not None:
            self._queue.append(httpx.Response(status_code, json=json))
        else:
            self._queue.append(httpx.Response(status_code, content=content or b""))

    def fail(self, exc: Exception) -> None:
        self._queue.append(exc)

    def call(self, func: Callable[[httpx.Request], Any]) -> None:
        """Queue a callable (sync or async) producing the response."""
        self._queue.append(func)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def body(self, index: int = -1) -> Any:
        return orjson.loads(self.requests[index].content)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self._queue:
            return httpx.Response(200, json=[])

        item = self._queue.pop(0)
        if isinstance(item, Exception):
            raise item
        if callable(item):
            item = item(request)
            if inspect.isawaitable(item):
                item = await item
        return item


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def backend_config() -> BackendConfig:
    return BackendConfig(url=BASE_URL, anon_key=ANON_KEY)


@pytest.fixture
async def http_client(backend):
    client = httpx.AsyncClient(transport=httpx.MockTransport(backend.handle))
    yield client
    await client.aclose()


@pytest.fixture
def gateway(backend_config, http_client) -> Gateway:
    return Gateway(backend_config, http_client)


@pytest.fixture
def memory_store() -> InMemorySessionStore:
    return InMemorySessionStore()
