"""
Proxy router - authorizes every inbound request and forwards it upstream.
"""
from __future__ import annotations

from fastapi import HTTPException, Request
from starlette.routing import Route
from starlette.types import Receive, Scope, Send

from authproxy.logging import get_logger
from authproxy.services.proxy import Forwarder, RelayResponse
from authproxy.services.security import is_authorized
from authproxy.state import ProxyContext, get_context

logger = get_logger(__name__)


def client_address(request: Request) -> str:
    """Format the caller's network address for log lines."""
    if request.client is None:
        return "unknown"
    return f"{request.client.host}:{request.client.port}"


def authorize_request(request: Request, context: ProxyContext) -> None:
    """
    Reject the request unless it carries `Authorization: Bearer <token>`.

    Raises:
        HTTPException: 401 if the header is missing, malformed or wrong
    """
    remote = client_address(request)
    if not is_authorized(request.headers.get("authorization"), context.config.auth_token):
        logger.warning(f"Unauthorized request from {remote}")
        raise HTTPException(
            status_code=401,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    logger.info(f"Accepted request from {remote}")


async def proxy(request: Request) -> RelayResponse:
    """
    Forward any method and path to `upstream_base_url + path + query`.

    **Headers:**
    - `Authorization` (required): `Bearer <token>`; stripped before forwarding

    Raises:
        HTTPException: 401 unauthorized, 400 bad upstream URL, 502 upstream failure
    """
    context = get_context(request)
    authorize_request(request, context)
    return await Forwarder(context).forward(request)


class ProxyEndpoint:
    """
    ASGI endpoint for the catch-all route.

    Starlette limits plain function endpoints to GET unless methods are
    listed; an ASGI callable route with no methods accepts every verb,
    including WebDAV and custom ones.
    """

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        response = await proxy(request)
        await response(scope, receive, send)


routes = [Route("/{path:path}", ProxyEndpoint(), include_in_schema=False)]
