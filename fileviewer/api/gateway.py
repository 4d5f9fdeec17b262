# fileviewer/api/gateway.py - API Router for the gateway in front of all nodes

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, Request, status

from ..core.node_registry import NodeRegistry
from ..core.proxy import RequestProxy
from ..models.files import FileItem, FileReadResult, RootDirectory, SearchQuery
from ..models.nodes import Envelope, NodeSummary, SearchEnvelope

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Gateway"])


# --- Dependencies ---
def get_registry(request: Request) -> NodeRegistry:
    return request.app.state.registry


def get_proxy(request: Request) -> RequestProxy:
    return request.app.state.proxy


# --- API Endpoints ---

@router.get(
    "/servers",
    response_model=List[NodeSummary],
    summary="List file servers",
    description="Checks the health of every configured file server and lists them. Internal URLs and keys are never returned.",
)
async def list_servers(registry: NodeRegistry = Depends(get_registry)):
    nodes = await registry.refresh()
    return [NodeSummary.from_descriptor(node) for node in nodes]


@router.get("/browse/{node_id}", response_model=Envelope[List[FileItem]], summary="Browse a directory on a server")
async def browse(
    node_id: str,
    root_name: str = Query(..., alias="rootName"),
    path: str = Query(""),
    proxy: RequestProxy = Depends(get_proxy),
):
    return await proxy.browse(node_id, root_name, path)


@router.get("/file/{node_id}", response_model=Envelope[FileReadResult], summary="Read a file on a server")
async def read_file(
    node_id: str,
    root_name: str = Query(..., alias="rootName"),
    path: str = Query(...),
    proxy: RequestProxy = Depends(get_proxy),
):
    return await proxy.file_contents(node_id, root_name, path)


@router.get("/roots/{node_id}", response_model=Envelope[List[RootDirectory]], summary="List root directories of a server")
async def list_roots(node_id: str, proxy: RequestProxy = Depends(get_proxy)):
    return await proxy.roots(node_id)


@router.post("/{node_id}/search", response_model=SearchEnvelope, summary="Search file contents on a server")
async def search(node_id: str, query: SearchQuery, proxy: RequestProxy = Depends(get_proxy)):
    return await proxy.search(node_id, query)


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check(registry: NodeRegistry = Depends(get_registry)):
    """Gateway liveness plus the healthy node count from the last check."""
    nodes = registry.nodes()
    return {"status": "ok", "nodes": len(nodes), "healthy_nodes": sum(1 for node in nodes if node.is_healthy)}
