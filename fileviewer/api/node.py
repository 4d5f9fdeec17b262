# fileviewer/api/node.py - API Router for a file-serving node

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from starlette.concurrency import run_in_threadpool

from ..core.errors import ErrorKind, Failure
from ..core.listing import DirectoryLister
from ..core.reader import FileReader
from ..core.search import ContentSearchEngine
from ..models.files import FileItem, FileReadResult, RootDirectory, SearchQuery, SearchResponse
from .security import require_api_key

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["Files"],
    dependencies=[Depends(require_api_key)], # Every node endpoint needs the shared secret
)

# Failures that end a request with an HTTP error rather than a result body
FAILURE_STATUS = {
    ErrorKind.INVALID_ROOT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.PATH_ESCAPE: status.HTTP_403_FORBIDDEN,
    ErrorKind.ACCESS_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.UNSUPPORTED_SEARCH_MODE: status.HTTP_400_BAD_REQUEST,
}


def failure_to_http(failure: Failure) -> HTTPException:
    return HTTPException(
        status_code=FAILURE_STATUS.get(failure.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail={"errorMessage": failure.message, "errorKind": failure.kind.value},
    )


# --- Dependencies ---
def get_lister(request: Request) -> DirectoryLister:
    return request.app.state.lister


def get_reader(request: Request) -> FileReader:
    return request.app.state.reader


def get_search_engine(request: Request) -> ContentSearchEngine:
    return request.app.state.search_engine


# --- API Endpoints ---

@router.get(
    "/roots",
    response_model=List[RootDirectory],
    summary="List root directories",
)
async def list_roots(lister: DirectoryLister = Depends(get_lister)):
    """Lists the root directories this node exposes."""
    return lister.roots()


@router.get(
    "/browse",
    response_model=List[FileItem],
    summary="List directory contents",
    description="Lists subdirectories and allow-listed files directly inside a directory of a root.",
)
async def browse(
    root_name: str = Query(..., alias="rootName", description="Name of a configured root."),
    path: str = Query("", description="Directory path relative to the root. Defaults to the root itself."),
    lister: DirectoryLister = Depends(get_lister),
):
    result = await run_in_threadpool(lister.browse, root_name, path)
    if isinstance(result, Failure):
        logger.warning(f"Browse failed for root '{root_name}', path '{path}': {result}")
        raise failure_to_http(result)
    return result


@router.get(
    "/file",
    response_model=FileReadResult,
    response_model_exclude_none=True,
    summary="Read file content",
    description="Reads an allow-listed file below the size limit. Unsupported, oversized or undecodable files return success=false.",
)
async def read_file(
    root_name: str = Query(..., alias="rootName", description="Name of a configured root."),
    path: str = Query(..., description="File path relative to the root."),
    reader: FileReader = Depends(get_reader),
):
    result = await run_in_threadpool(reader.read, root_name, path)
    if not result.success and result.error_kind in FAILURE_STATUS:
        logger.warning(f"Read failed for root '{root_name}', path '{path}': {result.error_message}")
        raise failure_to_http(Failure(result.error_kind, result.error_message))
    return result


@router.post(
    "/search",
    response_model=SearchResponse,
    summary="Search file contents",
    description="Finds the first line containing the search term (case-insensitive) in every allow-listed file under a directory.",
)
async def search(query: SearchQuery, engine: ContentSearchEngine = Depends(get_search_engine)):
    try:
        outcome = await run_in_threadpool(engine.search, query)
    except Exception as e:
        logger.error(f"Error searching files with pattern '{query.search_term}': {e}", exc_info=True)
        return SearchResponse(success=False, error="An unexpected server error occurred while searching.", error_kind=ErrorKind.INTERNAL_ERROR)

    if isinstance(outcome, Failure):
        logger.warning(f"Search rejected for root '{query.root_name}', path '{query.path}': {outcome}")
        return SearchResponse(success=False, error=outcome.message, error_kind=outcome.kind)
    return SearchResponse(success=True, results=outcome.hits, timed_out=outcome.timed_out)


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check(lister: DirectoryLister = Depends(get_lister)):
    """Liveness probe used by the gateway."""
    return {"status": "ok", "roots": len(lister.roots())}
