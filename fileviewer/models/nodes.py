# fileviewer/models/nodes.py - Pydantic models for the gateway API

from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import ConfigDict, Field

from ..core.errors import ErrorKind, Failure
from .files import ApiModel, SearchHit

T = TypeVar("T")


class NodeDescriptor(ApiModel):
    """A configured node and its last known health. Never sent to clients."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    internal_url: str
    api_key: str = Field("", repr=False)
    is_healthy: bool = False
    last_checked: Optional[datetime] = None


class NodeSummary(ApiModel):
    """The public view of a node: no URL, no key."""
    id: str
    name: str
    is_healthy: bool
    last_checked: Optional[datetime] = None

    @classmethod
    def from_descriptor(cls, node: NodeDescriptor) -> "NodeSummary":
        return cls(id=node.id, name=node.name, is_healthy=node.is_healthy, last_checked=node.last_checked)


class Envelope(ApiModel, Generic[T]):
    """Uniform wrapper around every proxied node response."""
    success: bool
    data: Optional[T] = None
    error_message: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    server_id: str

    @classmethod
    def ok(cls, server_id: str, data: T) -> "Envelope[T]":
        return cls(success=True, data=data, server_id=server_id)

    @classmethod
    def fail(cls, server_id: str, failure: Failure) -> "Envelope[T]":
        return cls(success=False, error_message=failure.message, error_kind=failure.kind, server_id=server_id)


class SearchEnvelope(Envelope[List[SearchHit]]):
    """Search envelope; `timed_out` marks a result set cut short by the node's deadline."""
    timed_out: bool = False
