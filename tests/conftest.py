# tests/conftest.py - Shared fixtures: a real log directory tree and in-process nodes

import httpx
import pytest

from fileviewer.core.config import NodeSettings
from fileviewer.core.listing import DirectoryLister
from fileviewer.core.reader import EncodingDetector, FileReader
from fileviewer.core.sandbox import PathSandbox, RootRegistry
from fileviewer.core.search import ContentSearchEngine
from fileviewer.node_main import create_app as create_node_app

NODE_API_KEY = "node-secret"


@pytest.fixture
def log_root(tmp_path):
    """
    A root directory shaped like a small log share:

        app.log, beta.txt, notes.TXT, image.png, alpha/inner.log, Zeta/
    """
    root = tmp_path / "logs"
    root.mkdir()
    (root / "app.log").write_text("2024-01-01 INFO started\n2024-01-01 INFO ready\n", encoding="utf-8")
    (root / "beta.txt").write_text("beta notes\n", encoding="utf-8")
    (root / "notes.TXT").write_text("upper-case extension\n", encoding="utf-8")
    (root / "image.png").write_bytes(b"\x89PNG needle")
    (root / "alpha").mkdir()
    (root / "alpha" / "inner.log").write_text("inner line\n", encoding="utf-8")
    (root / "Zeta").mkdir()
    return root


@pytest.fixture
def archive_root(tmp_path):
    root = tmp_path / "archive"
    root.mkdir()
    (root / "old.log").write_text("archived\n", encoding="utf-8")
    return root


@pytest.fixture
def node_settings(log_root, archive_root):
    return NodeSettings(
        roots={"logs": str(log_root), "archive": str(archive_root)},
        search_workers=4,
        fallback_encoding="latin-1",
    )


@pytest.fixture
def sandbox(node_settings):
    return PathSandbox(RootRegistry(node_settings.roots))


@pytest.fixture
def detector(node_settings):
    return EncodingDetector(node_settings.fallback_encoding)


@pytest.fixture
def lister(sandbox, node_settings):
    return DirectoryLister(sandbox, node_settings.allowed_extensions)


@pytest.fixture
def reader(sandbox, detector, node_settings):
    return FileReader(sandbox, detector, node_settings.allowed_extensions, node_settings.max_file_size_bytes)


@pytest.fixture
def engine(sandbox, detector, node_settings):
    return ContentSearchEngine(
        sandbox, detector, node_settings.allowed_extensions, node_settings.max_file_size_bytes, node_settings.search_workers
    )


class RoutingTransport(httpx.AsyncBaseTransport):
    """
    Sends gateway requests to in-process node apps by host name.

    Hosts without an app behave like a node that is down.
    """

    def __init__(self, apps):
        self.transports = {host: httpx.ASGITransport(app=app) for host, app in apps.items()}
        self.requests = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        transport = self.transports.get(request.url.host)
        if transport is None:
            raise httpx.ConnectError(f"Connection refused: {request.url.host}", request=request)
        return await transport.handle_async_request(request)


@pytest.fixture
def secured_node_app(node_settings):
    settings = node_settings.model_copy(update={"api_key": NODE_API_KEY})
    return create_node_app(settings)
