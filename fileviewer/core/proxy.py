# fileviewer/core/proxy.py - Forwards gateway calls to nodes and wraps every outcome in an Envelope

import logging
from typing import Any, List, Optional, Type

import httpx
from pydantic import TypeAdapter, ValidationError

from .config import API_KEY_HEADER
from .errors import ErrorKind, Failure
from .node_registry import NodeRegistry
from ..models.files import FileItem, FileReadResult, RootDirectory, SearchQuery, SearchResponse
from ..models.nodes import Envelope, NodeDescriptor, SearchEnvelope

logger = logging.getLogger(__name__)


def _node_failure(response: httpx.Response) -> Failure:
    """Turns a node's error response into a Failure, keeping the node's error kind when it sent one."""
    fallback = Failure(ErrorKind.TRANSPORT_ERROR, response.text[:200] or response.reason_phrase)
    try:
        body = response.json()
    except ValueError:
        return fallback
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, dict) and detail.get("errorMessage"):
        try:
            kind = ErrorKind(detail.get("errorKind"))
        except ValueError:
            kind = ErrorKind.TRANSPORT_ERROR
        return Failure(kind, str(detail["errorMessage"]))
    if detail:
        return Failure(ErrorKind.TRANSPORT_ERROR, str(detail))
    if isinstance(body, dict) and body.get("error"):
        return Failure(ErrorKind.TRANSPORT_ERROR, str(body["error"]))
    return fallback


class RequestProxy:
    """
    Gateway side of the node API.

    Every public method returns an Envelope. Transport faults, bad payloads
    and unknown nodes all become `success=False`; nothing is raised to the
    caller.
    """

    def __init__(self, registry: NodeRegistry, client: httpx.AsyncClient):
        self.registry = registry
        self.client = client

    async def roots(self, node_id: str) -> Envelope[List[RootDirectory]]:
        return await self._forward(node_id, List[RootDirectory], "GET", "/roots")

    async def browse(self, node_id: str, root_name: str, path: str = "") -> Envelope[List[FileItem]]:
        return await self._forward(node_id, List[FileItem], "GET", "/browse", params={"rootName": root_name, "path": path or ""})

    async def file_contents(self, node_id: str, root_name: str, path: str) -> Envelope[FileReadResult]:
        return await self._forward(node_id, FileReadResult, "GET", "/file", params={"rootName": root_name, "path": path})

    async def search(self, node_id: str, query: SearchQuery) -> SearchEnvelope:
        envelope = await self._forward(
            node_id, SearchResponse, "POST", "/search",
            json=query.model_dump(mode="json", by_alias=True, exclude_none=True),
        )
        if not envelope.success:
            return SearchEnvelope(success=False, error_message=envelope.error_message, error_kind=envelope.error_kind, server_id=node_id)

        result: SearchResponse = envelope.data
        if not result.success:
            return SearchEnvelope.fail(node_id, Failure(result.error_kind or ErrorKind.INTERNAL_ERROR, result.error or "Error performing search"))
        if result.timed_out:
            logger.warning(f"Search on node '{node_id}' timed out; returning {len(result.results)} partial hits")
        return SearchEnvelope(success=True, data=result.results, server_id=node_id, timed_out=result.timed_out)

    async def _forward(
        self,
        node_id: str,
        data_type: Type[Any],
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> Envelope:
        envelope_type = Envelope[data_type]
        try:
            node = self.registry.lookup(node_id)
            if isinstance(node, Failure):
                return envelope_type.fail(node_id, node)
            if not node.is_healthy and node.last_checked is not None:
                return envelope_type.fail(node_id, Failure(
                    ErrorKind.NODE_UNREACHABLE,
                    f"Server '{node.name}' is unreachable (last health check failed at {node.last_checked.isoformat()})",
                ))

            outcome = await self._send(node, method, path, params, json)
            if isinstance(outcome, Failure):
                return envelope_type.fail(node_id, outcome)

            try:
                data = TypeAdapter(data_type).validate_python(outcome)
            except ValidationError as e:
                logger.error(f"Unexpected payload from node '{node_id}' for {method} {path}: {e}")
                return envelope_type.fail(node_id, Failure(ErrorKind.TRANSPORT_ERROR, "Invalid response from file server"))
            return envelope_type.ok(node_id, data)

        except Exception as e:
            logger.error(f"Unexpected error proxying {method} {path} to node '{node_id}': {e}", exc_info=True)
            return envelope_type.fail(node_id, Failure(ErrorKind.INTERNAL_ERROR, "An unexpected server error occurred."))

    async def _send(self, node: NodeDescriptor, method: str, path: str, params: Optional[dict], json: Optional[dict]):
        """Single attempt, no retries. Returns the decoded JSON body or a Failure."""
        url = f"{node.internal_url}{path}"
        try:
            response = await self.client.request(method, url, params=params, json=json, headers={API_KEY_HEADER: node.api_key})
        except (httpx.ConnectError, httpx.TimeoutException) as e:
            logger.error(f"Node '{node.id}' unreachable for {method} {path}: {e!r}")
            return Failure(ErrorKind.NODE_UNREACHABLE, f"Error communicating with file server: server '{node.name}' is unreachable")
        except httpx.HTTPError as e:
            logger.error(f"Transport error calling node '{node.id}' for {method} {path}: {e!r}")
            return Failure(ErrorKind.TRANSPORT_ERROR, "Error communicating with file server")

        if not response.is_success:
            failure = _node_failure(response)
            logger.warning(f"Node '{node.id}' returned HTTP {response.status_code} for {method} {path}: {failure}")
            return failure

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Node '{node.id}' returned a non-JSON body for {method} {path}: {e}")
            return Failure(ErrorKind.TRANSPORT_ERROR, "Invalid response from file server")
