# fileviewer/core/node_registry.py - Known nodes and their last health check

import asyncio
import logging
from datetime import datetime, timezone
from types import MappingProxyType
from typing import List, Mapping, Optional, Union

import httpx

from .config import API_KEY_HEADER, GatewaySettings
from .errors import ErrorKind, Failure
from ..models.nodes import NodeDescriptor

logger = logging.getLogger(__name__)

HEALTH_PATH = "/health"


class NodeRegistry:
    """
    Holds an immutable snapshot of the configured nodes.

    The snapshot is built from configuration on construction, so lookups are
    valid before the first health check. `refresh` builds a complete new
    snapshot and swaps it in with a single assignment; readers never see a
    partially updated list.
    """

    def __init__(self, settings: GatewaySettings, client: httpx.AsyncClient):
        self.settings = settings
        self.client = client
        self._snapshot: Mapping[str, NodeDescriptor] = self._build_snapshot(
            NodeDescriptor(id=node.id, name=node.name, internal_url=node.internal_url, api_key=node.api_key)
            for node in settings.nodes
        )
        self._refresh_lock = asyncio.Lock()

    @staticmethod
    def _build_snapshot(nodes) -> Mapping[str, NodeDescriptor]:
        return MappingProxyType({node.id: node for node in nodes})

    def nodes(self) -> List[NodeDescriptor]:
        return list(self._snapshot.values())

    def lookup(self, node_id: str) -> Union[NodeDescriptor, Failure]:
        node = self._snapshot.get(node_id)
        if node is None:
            return Failure(ErrorKind.NODE_NOT_FOUND, f"Server not found: {node_id}")
        return node

    async def refresh(self) -> List[NodeDescriptor]:
        """Probes every node concurrently and publishes the results as the new snapshot."""
        async with self._refresh_lock: # Overlapping refreshes would race on the swap
            current = self.nodes()
            checked = await asyncio.gather(*(self._probe(node) for node in current))
            self._snapshot = self._build_snapshot(checked)
        healthy = sum(1 for node in checked if node.is_healthy)
        logger.info(f"Health check complete: {healthy}/{len(checked)} nodes healthy")
        return list(checked)

    async def _probe(self, node: NodeDescriptor) -> NodeDescriptor:
        healthy = await self.check_health(node)
        return node.model_copy(update={"is_healthy": healthy, "last_checked": datetime.now(timezone.utc)})

    async def check_health(self, node: NodeDescriptor) -> bool:
        """One liveness probe. Any failure or timeout counts as unhealthy."""
        try:
            response = await asyncio.wait_for(
                self.client.get(f"{node.internal_url}{HEALTH_PATH}", headers={API_KEY_HEADER: node.api_key}),
                timeout=self.settings.health_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Health check for node '{node.id}' timed out after {self.settings.health_timeout}s")
            return False
        except httpx.HTTPError as e:
            logger.error(f"Error checking health for node '{node.id}': {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error checking health for node '{node.id}': {e}", exc_info=True)
            return False

        if not response.is_success:
            logger.warning(f"Node '{node.id}' reported unhealthy: HTTP {response.status_code}")
        return response.is_success

    async def run_periodic_refresh(self, interval: Optional[float] = None) -> None:
        """Refreshes forever every `interval` seconds. Meant to run as a background task."""
        interval = interval if interval is not None else self.settings.health_check_interval
        while True:
            await asyncio.sleep(interval)
            try:
                await self.refresh()
            except Exception as e:
                logger.error(f"Background health refresh failed: {e}", exc_info=True)
