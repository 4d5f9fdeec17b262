# fileviewer/core/errors.py - Error kinds and failure values shared by node and gateway

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    """Every way a public operation can fail."""
    INVALID_ROOT = "InvalidRoot"
    PATH_ESCAPE = "PathEscape"
    NOT_FOUND = "NotFound"
    UNSUPPORTED_EXTENSION = "UnsupportedExtension"
    FILE_TOO_LARGE = "FileTooLarge"
    ENCODING_DETECTION_FAILURE = "EncodingDetectionFailure"
    UNSUPPORTED_SEARCH_MODE = "UnsupportedSearchMode"
    ACCESS_DENIED = "AccessDenied"
    NODE_NOT_FOUND = "NodeNotFound"
    NODE_UNREACHABLE = "NodeUnreachable"
    TRANSPORT_ERROR = "TransportError"
    INTERNAL_ERROR = "InternalError"


@dataclass(frozen=True)
class Failure:
    """
    A typed, expected failure of a single operation.

    Returned (not raised) by the core components so callers can branch on
    `kind` without exception-driven control flow.
    """
    kind: ErrorKind
    message: str

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class ConfigError(Exception):
    """Raised at startup when configuration cannot be loaded or validated."""
