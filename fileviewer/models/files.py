# fileviewer/models/files.py - Pydantic models for the node file API

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..core.errors import ErrorKind


class ApiModel(BaseModel):
    """Base for wire models: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RootDirectory(ApiModel):
    """A named directory exposed by a node."""
    name: str = Field(..., description="Configured root name.")
    path: str = Field(..., description="Absolute path of the root on the node.")


class FileItem(ApiModel):
    """Represents an entry (file or directory) in a directory listing."""
    name: str = Field(..., description="Name of the file or directory.")
    path: str = Field(..., description="Path relative to the root, using '/' separators.")
    is_directory: bool
    root_name: str
    last_modified: datetime
    size: int = Field(0, description="Size in bytes. Always 0 for directories.")


class FileReadResult(ApiModel):
    """Response model for reading file content."""
    success: bool
    contents: Optional[str] = None
    error_message: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    encoding: Optional[str] = Field(None, description="Name of the detected text encoding.")
    file_size_bytes: int = 0


class SearchMode(str, Enum):
    # Only LITERAL is implemented; the others are accepted by the schema and rejected by the engine.
    LITERAL = "literal"
    REGEX = "regex"
    MOBILE_NUMBER = "mobile_number"


class SearchQuery(ApiModel):
    """Request model for a recursive content search."""
    root_name: str
    path: str = Field("", description="Directory to search, relative to the root. Defaults to the root itself.")
    search_term: str = Field(..., min_length=1)
    search_mode: SearchMode = SearchMode.LITERAL
    timeout_seconds: Optional[float] = Field(None, gt=0, description="Stop scanning after this many seconds and return what was found.")


class SearchHit(ApiModel):
    """The first matching line of one file."""
    file_path: str
    file_name: str
    last_modified: datetime
    line_number: int
    matched_content: str = Field(..., description="Snippet of the matching line around the match.")


class SearchResponse(ApiModel):
    """Response model for searching a node."""
    success: bool
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    results: List[SearchHit] = Field(default_factory=list)
    timed_out: bool = False
