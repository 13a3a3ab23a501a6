"""
Proxy service - forwards authorized requests to the upstream server and
streams the response back.
"""
from __future__ import annotations

from typing import AsyncIterator, Iterable, List, Optional, Tuple

import httpx
from fastapi import HTTPException, Request
from fastapi.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from authproxy.logging import get_logger
from authproxy.state import ProxyContext

logger = get_logger(__name__)

# Upstream body is relayed in pieces of at most this many bytes
READ_BUFFER_SIZE = 4096
RESPONSE_MEDIA_TYPE = "application/json"
STREAM_FAILED_BODY = b"Request failed"

# Hop-by-hop headers (RFC 9110) apply to a single connection only
HOP_BY_HOP_HEADERS = frozenset({
    "connection", "keep-alive", "proxy-authenticate", "proxy-authorization",
    "te", "trailers", "transfer-encoding", "upgrade",
})

_SKIP_REQUEST_HEADERS = HOP_BY_HOP_HEADERS | {"authorization", "host"}
_SKIP_RESPONSE_HEADERS = HOP_BY_HOP_HEADERS | {"content-type", "content-length"}


def build_upstream_url(base_url: str, raw_path: str, query_string: str = "") -> str:
    """
    Concatenate the upstream base URL with the inbound path and query.

    Nothing is re-encoded or normalized: a base of "http://localhost:11434"
    and a path of "/api/tags" give "http://localhost:11434/api/tags".
    """
    url = f"{base_url}{raw_path}"
    if query_string:
        url = f"{url}?{query_string}"
    return url


def request_target(request: Request) -> Tuple[str, str]:
    """Return the inbound path and query string as they were received."""
    raw_path = request.scope.get("raw_path")
    if raw_path:
        path = raw_path.decode("latin-1").split("?", 1)[0]
    else:
        path = request.scope["path"]
    query = request.scope.get("query_string", b"").decode("latin-1")
    return path, query


def filter_request_headers(
    raw_headers: Iterable[Tuple[bytes, bytes]]
) -> List[Tuple[bytes, bytes]]:
    """Drop the client credential, Host and hop-by-hop headers, keeping duplicates."""
    return [
        (name, value) for name, value in raw_headers
        if name.decode("latin-1").lower() not in _SKIP_REQUEST_HEADERS
    ]


def filter_response_headers(headers: httpx.Headers) -> List[Tuple[bytes, bytes]]:
    """
    Filter upstream headers the proxy replaces or that are hop-by-hop.
    Repeated fields such as Set-Cookie stay separate entries.
    """
    return [
        (k.encode("latin-1"), v.encode("latin-1")) for k, v in headers.multi_items()
        if k.lower() not in _SKIP_RESPONSE_HEADERS
    ]


def request_body(request: Request) -> Optional[AsyncIterator[bytes]]:
    """
    Return the inbound body as a stream, or None when the request has no body.

    The stream is handed to httpx as-is so large uploads are never held in
    memory.
    """
    headers = request.headers
    if "content-length" not in headers and "transfer-encoding" not in headers:
        return None
    return request.stream()


async def iter_upstream_body(response: httpx.Response) -> AsyncIterator[bytes]:
    """Yield the raw upstream body as it arrives, at most READ_BUFFER_SIZE bytes at a time."""
    async for data in response.aiter_raw():
        if not data:
            break
        for start in range(0, len(data), READ_BUFFER_SIZE):
            yield data[start:start + READ_BUFFER_SIZE]


async def _read_first_chunk(body: AsyncIterator[bytes]) -> bytes:
    async for chunk in body:
        return chunk
    return b""


class RelayResponse(StreamingResponse):
    """
    Streaming response that releases the upstream response however sending
    ends: completion, a failed read, or the client going away mid-stream.
    """

    def __init__(self, content: AsyncIterator[bytes], upstream_response: httpx.Response, **kwargs):
        super().__init__(content, **kwargs)
        self.upstream_response = upstream_response

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.body_iterator.aclose()
            await self.upstream_response.aclose()


class Forwarder:
    """
    Relays one authorized request to the upstream server.

    The outbound request mirrors the inbound method, path, query, headers
    (minus the credential) and body stream. Every failure is terminal for
    the request: nothing is retried.
    """

    def __init__(self, context: ProxyContext):
        self.config = context.config
        self.client = context.http_client

    async def forward(self, request: Request) -> RelayResponse:
        """
        Forward `request` upstream and stream the response back.

        Raises:
            HTTPException: 400 if the outbound request cannot be built,
                           502 if the upstream cannot be reached or the body
                           fails before any byte is relayed
        """
        path, query = request_target(request)
        url = build_upstream_url(self.config.upstream_base_url, path, query)

        try:
            upstream_request = self.client.build_request(
                request.method,
                url,
                headers=filter_request_headers(request.headers.raw),
                content=request_body(request),
            )
        except httpx.InvalidURL as e:
            logger.error(f"Failed to create request: {e}")
            raise HTTPException(status_code=400, detail="Bad request")

        try:
            upstream_response = await self.client.send(upstream_request, stream=True)
        except httpx.RequestError as e:
            logger.error(f"Request to {url} failed: {e}")
            raise HTTPException(status_code=502, detail="Request failed")

        handed_off = False
        try:
            body = iter_upstream_body(upstream_response)
            try:
                first_chunk = await _read_first_chunk(body)
            except httpx.RequestError as e:
                logger.error(f"Request to {url} failed: {e}")
                raise HTTPException(status_code=502, detail="Request failed")

            response = RelayResponse(
                self._relay(url, upstream_response, first_chunk, body),
                upstream_response,
                status_code=upstream_response.status_code,
                media_type=RESPONSE_MEDIA_TYPE,
            )
            response.raw_headers.extend(filter_response_headers(upstream_response.headers))
            handed_off = True
            return response
        finally:
            if not handed_off:
                await upstream_response.aclose()

    async def _relay(
        self,
        url: str,
        upstream_response: httpx.Response,
        first_chunk: bytes,
        body: AsyncIterator[bytes],
    ) -> AsyncIterator[bytes]:
        # Each yielded piece becomes its own body message, flushed to the client.
        # Bytes already sent stay sent when a later read fails.
        try:
            if first_chunk:
                yield first_chunk
            async for chunk in body:
                yield chunk
        except httpx.RequestError as e:
            logger.error(f"Request to {url} failed while streaming: {e}")
            yield STREAM_FAILED_BODY
        finally:
            await body.aclose()
            await upstream_response.aclose()
