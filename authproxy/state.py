"""
Application state - the immutable context shared by every request.
"""
from __future__ import annotations

from dataclasses import dataclass

import httpx
from fastapi import Request

from authproxy.services.proxy_config import ProxyConfig


@dataclass(frozen=True)
class ProxyContext:
    """
    Proxy configuration plus the shared upstream HTTP client.
    Built once by create_app, injected into routes via FastAPI dependencies.
    """
    config: ProxyConfig
    http_client: httpx.AsyncClient


def get_context(request: Request) -> ProxyContext:
    """Dependency returning the context attached to the running application."""
    return request.app.state.context
