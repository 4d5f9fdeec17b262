# fileviewer/client.py - Small synchronous client for the gateway API

import logging
from typing import Any, Dict, List, Optional

import requests

from .models.files import FileItem, FileReadResult, RootDirectory, SearchMode, SearchQuery
from .models.nodes import Envelope, NodeSummary, SearchEnvelope

logger = logging.getLogger(__name__)


class GatewayClientError(Exception):
    """The gateway could not be reached or answered with an HTTP error."""


class GatewayClient:
    """
    Talks to the gateway over HTTP and returns typed models.

    Envelope failures are returned as-is; only transport problems with the
    gateway itself raise GatewayClientError.
    """

    def __init__(self, base_url: str, timeout: float = 70.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _call(self, method: str, endpoint: str, **kwargs) -> Any:
        url = f"{self.base_url}{endpoint}"
        logger.debug(f"Gateway call {method} {url}")
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.HTTPError as e:
            detail = e.response.text[:200] if e.response is not None else str(e)
            raise GatewayClientError(f"Gateway returned an error for {method} {endpoint}: {detail}") from e
        except requests.exceptions.JSONDecodeError as e:
            raise GatewayClientError(f"Gateway returned a non-JSON response for {method} {endpoint}") from e
        except requests.exceptions.RequestException as e:
            raise GatewayClientError(f"Request to gateway failed: {e}") from e

    def servers(self) -> List[NodeSummary]:
        return [NodeSummary.model_validate(item) for item in self._call("GET", "/servers")]

    def roots(self, server_id: str) -> Envelope[List[RootDirectory]]:
        return Envelope[List[RootDirectory]].model_validate(self._call("GET", f"/roots/{server_id}"))

    def browse(self, server_id: str, root_name: str, path: str = "") -> Envelope[List[FileItem]]:
        params: Dict[str, str] = {"rootName": root_name, "path": path}
        return Envelope[List[FileItem]].model_validate(self._call("GET", f"/browse/{server_id}", params=params))

    def read_file(self, server_id: str, root_name: str, path: str) -> Envelope[FileReadResult]:
        params = {"rootName": root_name, "path": path}
        return Envelope[FileReadResult].model_validate(self._call("GET", f"/file/{server_id}", params=params))

    def search(self, server_id: str, root_name: str, term: str, path: str = "", timeout_seconds: Optional[float] = None) -> SearchEnvelope:
        query = SearchQuery(root_name=root_name, path=path, search_term=term, search_mode=SearchMode.LITERAL, timeout_seconds=timeout_seconds)
        payload = query.model_dump(mode="json", by_alias=True, exclude_none=True)
        return SearchEnvelope.model_validate(self._call("POST", f"/{server_id}/search", json=payload))
