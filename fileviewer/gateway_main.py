# fileviewer/gateway_main.py - FastAPI application for the gateway in front of all file nodes

import os
import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import Optional

import httpx
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .api.gateway import router
from .core.config import GatewaySettings, load_gateway_settings
from .core.errors import ErrorKind
from .core.node_registry import NodeRegistry
from .core.proxy import RequestProxy

# --- Logging Setup ---
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


# --- Lifespan Context Manager ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: GatewaySettings = app.state.settings
    logger.info(f"Gateway startup with {len(settings.nodes)} configured nodes...")

    client = httpx.AsyncClient(timeout=settings.request_timeout, transport=app.state.transport)
    registry = NodeRegistry(settings, client)
    app.state.registry = registry
    app.state.proxy = RequestProxy(registry, client)

    # Health is known before the first request is served
    await registry.refresh()

    refresher = None
    if settings.health_check_interval > 0:
        refresher = asyncio.create_task(registry.run_periodic_refresh())
    try:
        yield
    finally:
        logger.info("Gateway shutdown...")
        if refresher:
            refresher.cancel()
            with suppress(asyncio.CancelledError):
                await refresher
        await client.aclose()


def create_app(settings: Optional[GatewaySettings] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> FastAPI:
    """
    Builds the gateway app. Settings are loaded from the environment when not given.

    `transport` replaces the network transport of the outbound HTTP client,
    which lets tests stand in for the nodes.
    """
    settings = settings or load_gateway_settings()

    app = FastAPI(
        title="File Viewer Gateway",
        description="Single entry point for browsing and searching log files across file servers.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.transport = transport

    @app.exception_handler(Exception)
    async def unhandled_exception(request: Request, exc: Exception):
        logger.error(f"Unhandled error for {request.method} {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "errorMessage": "An internal error occurred processing your request.",
                "errorKind": ErrorKind.INTERNAL_ERROR.value,
                "serverId": request.path_params.get("node_id", ""),
            },
        )

    app.include_router(router)
    return app


def main():
    import uvicorn
    host = os.getenv("FILEVIEWER_HOST", "0.0.0.0")
    port = int(os.getenv("FILEVIEWER_PORT", 8000))
    logger.info(f"Starting gateway on {host}:{port}...")
    uvicorn.run("fileviewer.gateway_main:create_app", factory=True, host=host, port=port)


# --- Main execution block ---
if __name__ == "__main__":
    main()
