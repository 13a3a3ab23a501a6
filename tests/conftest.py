"""
Shared test fixtures and helpers.
"""
from __future__ import annotations

import asyncio
from typing import Callable, Iterable, List, Optional

import httpx
import pytest
from fastapi import FastAPI

from authproxy.main import create_app
from authproxy.services.proxy_config import ProxyConfig


TEST_TOKEN = "secret123"
UPSTREAM_URL = "http://localhost:11434"
AUTH_HEADERS = {"Authorization": f"Bearer {TEST_TOKEN}"}


class ChunkStream(httpx.AsyncByteStream):
    """
    Upstream body that arrives in discrete chunks.
    Optionally raises `error` after the last chunk, like a dropped connection.
    """

    def __init__(self, chunks: Iterable[bytes], error: Optional[Exception] = None):
        self.chunks = list(chunks)
        self.error = error
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error

    async def aclose(self) -> None:
        self.closed = True


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """Create an upstream client whose transport is answered by `handler`."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def call_asgi(
    app: FastAPI,
    method: str,
    path: str,
    headers: Optional[List[tuple]] = None,
    disconnect_after: Optional[int] = None,
) -> List[dict]:
    """
    Drive the ASGI app directly and return every message it sent.
    Unlike TestClient, this keeps each body message separate.

    With `disconnect_after`, sending fails with OSError once that many body
    messages went out, the way a server reports a vanished client.
    """
    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": path.encode(),
        "query_string": b"",
        "root_path": "",
        "headers": headers or [],
        "client": ("127.0.0.1", 50000),
        "server": ("testserver", 80),
    }
    request_sent = False
    never = asyncio.Event()
    messages: List[dict] = []

    async def receive():
        nonlocal request_sent
        if not request_sent:
            request_sent = True
            return {"type": "http.request", "body": b"", "more_body": False}
        await never.wait()

    async def send(message):
        if disconnect_after is not None and message["type"] == "http.response.body":
            sent_bodies = sum(1 for m in messages if m["type"] == "http.response.body")
            if sent_bodies >= disconnect_after:
                raise OSError("client disconnected")
        messages.append(message)

    await app(scope, receive, send)
    return messages


@pytest.fixture
def test_token() -> str:
    return TEST_TOKEN


@pytest.fixture
def proxy_config() -> ProxyConfig:
    """Config from the documented example: local Ollama behind :8080."""
    return ProxyConfig(
        upstream_base_url=UPSTREAM_URL,
        auth_token=TEST_TOKEN,
        listen_address=":8080",
    )


@pytest.fixture
def temp_config_file(tmp_path) -> str:
    """Create a temporary config file for testing."""
    config_path = tmp_path / "config.conf"
    config_path.write_text(
        "ollama_server: http://localhost:11434\n"
        "auth_token: secret123\n"
        "listener_addr: :8080\n"
    )
    return str(config_path)


@pytest.fixture
def make_app(proxy_config) -> Callable[..., FastAPI]:
    """Factory building the proxy app around a given upstream client."""
    def _make(http_client: httpx.AsyncClient, config: Optional[ProxyConfig] = None) -> FastAPI:
        return create_app(config or proxy_config, http_client)
    return _make
