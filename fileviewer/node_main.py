# fileviewer/node_main.py - FastAPI application for a file-serving node

import os
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .api.node import router
from .core.config import NodeSettings, load_node_settings
from .core.listing import DirectoryLister
from .core.reader import EncodingDetector, FileReader
from .core.sandbox import PathSandbox, RootRegistry
from .core.search import ContentSearchEngine

# --- Logging Setup ---
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


# --- Lifespan Context Manager ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: NodeSettings = app.state.settings
    logger.info("File node startup...")
    for name, path in settings.roots.items():
        if os.path.isdir(path):
            logger.info(f"Serving root '{name}' from {path}")
        else:
            logger.warning(f"Root '{name}' points to missing directory {path}")
    yield
    logger.info("File node shutdown...")


def create_app(settings: Optional[NodeSettings] = None) -> FastAPI:
    """Builds a node app. Settings are loaded from the environment when not given."""
    settings = settings or load_node_settings()

    app = FastAPI(
        title="File Viewer Node",
        description="Browse, read and search log files below the configured root directories.",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Components share one sandbox and one immutable settings object
    sandbox = PathSandbox(RootRegistry(settings.roots))
    detector = EncodingDetector(settings.fallback_encoding)
    app.state.settings = settings
    app.state.lister = DirectoryLister(sandbox, settings.allowed_extensions)
    app.state.reader = FileReader(sandbox, detector, settings.allowed_extensions, settings.max_file_size_bytes)
    app.state.search_engine = ContentSearchEngine(
        sandbox, detector, settings.allowed_extensions, settings.max_file_size_bytes, settings.search_workers
    )

    @app.exception_handler(Exception)
    async def unhandled_exception(request: Request, exc: Exception):
        logger.error(f"Unhandled error for {request.method} {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "An error occurred processing your request."},
        )

    app.include_router(router)
    return app


def main():
    import uvicorn
    host = os.getenv("FILEVIEWER_HOST", "0.0.0.0")
    port = int(os.getenv("FILEVIEWER_PORT", 5001))
    logger.info(f"Starting file node on {host}:{port}...")
    uvicorn.run("fileviewer.node_main:create_app", factory=True, host=host, port=port)


# --- Main execution block ---
if __name__ == "__main__":
    main()
