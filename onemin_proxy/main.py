"""Main FastAPI application for the 1min.ai proxy."""

import logging
import socket
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Mapping, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.routes import (
    add_token,
    chat_completions,
    delete_token,
    disable_token,
    enable_token,
    list_models,
    list_tokens,
    token_status,
    update_token_note,
)
from .config_loader import build_settings, load_config
from .context import AppContext, build_context
from .core.exceptions import ProxyError
from .credentials.store import KeyValueStore
from .logging import setup_logging

logger = logging.getLogger("onemin-proxy")


async def proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
    """Render every ProxyError as ``{"error": <message>}`` with its status."""
    if exc.status_code >= 500:
        logger.error(f"Request to {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"Request to {request.url.path} rejected ({exc.status_code}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def health() -> dict:
    """GET /health"""
    return {"status": "ok"}


def _log_startup(context: AppContext) -> None:
    settings = context.settings
    logger.info("1min.ai Proxy server starting up...")
    logger.info(f"Configured bind address {settings.host}:{settings.port}")
    if settings.host == "0.0.0.0":
        hostname = socket.gethostname()
        logger.info(f"Reachable on local network at http://{hostname}:{settings.port}")
    logger.info(f"OpenAI API endpoint: http://localhost:{settings.port}/v1/chat/completions")
    logger.info(f"Admin API endpoint: http://localhost:{settings.port}/admin/tokens")
    logger.info(f"Upstream: {settings.upstream_base_url}")
    logger.info(f"Auth secret configured: {settings.auth_secret_configured}")
    if not settings.auth_secret_configured:
        logger.warning("AUTH_SECRET is not set; the placeholder secret is in use")


def create_app(
    config: Optional[Mapping[str, Any]] = None,
    *,
    store: Optional[KeyValueStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Factory function to create the FastAPI application.

    Args:
        config: Parsed configuration; loaded from ONEMIN_CONFIG when omitted.
        store: Credential store override (tests pass an in-memory store).
        transport: httpx transport for upstream calls (tests pass a mock).

    Returns:
        The configured FastAPI application instance.
    """
    if config is None:
        config = load_config()
    settings = build_settings(config)
    context = build_context(settings, config.get("database"), store=store, transport=transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Start the expiry sweeper on startup; release the context on shutdown."""
        _log_startup(context)
        context.sweeper.start()
        logger.info("1min.ai Proxy server ready to handle requests")

        yield

        await context.aclose()

    app = FastAPI(title="1min.ai Proxy", lifespan=lifespan)
    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.add_exception_handler(ProxyError, proxy_error_handler)

    # Register routes
    app.post("/v1/chat/completions")(chat_completions)
    app.get("/v1/models")(list_models)
    app.get("/health")(health)

    app.post("/admin/tokens")(add_token)
    app.get("/admin/tokens")(list_tokens)
    app.post("/admin/tokens/{token}/disable")(disable_token)
    app.post("/admin/tokens/{token}/enable")(enable_token)
    app.put("/admin/tokens/{token}/note")(update_token_note)
    app.get("/admin/tokens/{token}/status")(token_status)
    app.delete("/admin/tokens/{token}")(delete_token)

    logger.info("FastAPI application created")
    return app


def run() -> None:
    """Serve the application with uvicorn using the configured bind address."""
    import uvicorn

    setup_logging()
    settings = build_settings(load_config())
    uvicorn.run(
        "onemin_proxy.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
    )


__all__ = ["create_app", "run"]
