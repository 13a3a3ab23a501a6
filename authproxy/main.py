"""
authproxy - bearer-token authenticating reverse proxy.

Entry point for the FastAPI application.
"""
from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from dotenv import load_dotenv
from starlette.exceptions import HTTPException as StarletteHTTPException

from authproxy.logging import configure_logging, get_logger
from authproxy.state import ProxyContext
from authproxy.routers import proxy
from authproxy.services.proxy_config import (
    ConfigError,
    ProxyConfig,
    load_proxy_config,
    parse_listen_address,
    resolve_tls_files,
)
from authproxy.config import get_config

load_dotenv()

logger = get_logger(__name__)


def _init_http_client(timeout: Optional[float] = None) -> httpx.AsyncClient:
    """Create the shared HTTP client for upstream requests. No timeout unless given."""
    client = httpx.AsyncClient(timeout=timeout)
    logger.info("HTTP client initialized")
    return client


async def _shutdown_http_client(client: httpx.AsyncClient) -> None:
    """Close the shared HTTP client."""
    await client.aclose()
    logger.info("HTTP client closed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - closes the upstream client on shutdown."""
    yield

    await _shutdown_http_client(app.state.context.http_client)


async def plain_text_error(request: Request, exc: StarletteHTTPException) -> PlainTextResponse:
    """Render HTTP errors as bare text bodies such as "Unauthorized"."""
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code, headers=exc.headers)


def create_app(config: ProxyConfig, http_client: Optional[httpx.AsyncClient] = None) -> FastAPI:
    """
    Build the proxy application around an immutable context.

    Args:
        config: Loaded proxy configuration
        http_client: Client used for upstream requests; a default one is
                     created when omitted
    """
    if http_client is None:
        http_client = _init_http_client()

    # No docs or schema routes: every path belongs to the upstream
    app = FastAPI(
        title="authproxy",
        description="Bearer-token authenticating reverse proxy",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.context = ProxyContext(config=config, http_client=http_client)
    app.add_exception_handler(StarletteHTTPException, plain_text_error)
    app.router.routes.extend(proxy.routes)
    return app


def main() -> None:
    """Load configuration, then serve over HTTPS or HTTP until interrupted."""
    settings = get_config()
    configure_logging(settings.authproxy_log_level)

    try:
        config = load_proxy_config(settings.authproxy_config)
        host, port = parse_listen_address(config.listen_address)
        tls = resolve_tls_files(config)
    except ConfigError as e:
        logger.critical(f"Invalid configuration in {settings.authproxy_config}: {e}")
        sys.exit(1)

    app = create_app(config, _init_http_client(settings.authproxy_upstream_timeout))

    if tls is not None:
        logger.info(f"Starting HTTPS server on {config.listen_address}")
        uvicorn.run(
            app,
            host=host,
            port=port,
            ssl_keyfile=tls.key_path,
            ssl_certfile=tls.cert_path,
            log_level=settings.authproxy_log_level.lower(),
        )
    else:
        logger.info(f"Starting HTTP server on {config.listen_address}")
        uvicorn.run(app, host=host, port=port, log_level=settings.authproxy_log_level.lower())


if __name__ == "__main__":
    main()
