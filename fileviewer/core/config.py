# fileviewer/core/config.py - Immutable settings for node and gateway processes

import os
import json
import locale
import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigError

logger = logging.getLogger(__name__)

# --- Defaults ---
DEFAULT_ALLOWED_EXTENSIONS = (".log", ".txt")
DEFAULT_MAX_FILE_SIZE_MB = 10
DEFAULT_REQUEST_TIMEOUT = 300.0 # Gateway -> node calls may read large files
DEFAULT_HEALTH_TIMEOUT = 5.0
DEFAULT_HEALTH_CHECK_INTERVAL = 60.0
API_KEY_HEADER = "X-API-Key"


class NodeSettings(BaseModel):
    """Settings for one file-serving node. Built once at startup, never mutated."""
    model_config = ConfigDict(frozen=True)

    roots: Dict[str, str] = Field(default_factory=dict, description="Root name -> absolute directory path.")
    allowed_extensions: Tuple[str, ...] = Field(DEFAULT_ALLOWED_EXTENSIONS, description="Lower-case file extensions that may be listed, read or searched.")
    max_file_size_bytes: int = Field(DEFAULT_MAX_FILE_SIZE_MB * 1024 * 1024, gt=0)
    api_key: Optional[str] = Field(None, description="Shared secret expected in the X-API-Key header. None disables the check.")
    search_workers: Optional[int] = Field(None, gt=0, description="Worker threads per search. Defaults to the CPU count.")
    fallback_encoding: str = Field(default_factory=lambda: locale.getpreferredencoding(False))

    @field_validator("allowed_extensions")
    @classmethod
    def normalize_extensions(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        normalized = []
        for ext in value:
            ext = ext.strip().lower()
            if not ext.startswith("."):
                ext = f".{ext}"
            normalized.append(ext)
        return tuple(normalized)

    @field_validator("roots")
    @classmethod
    def absolute_roots(cls, value: Dict[str, str]) -> Dict[str, str]:
        return {name: os.path.abspath(os.path.expanduser(path)) for name, path in value.items()}


class NodeConfig(BaseModel):
    """One node entry as configured on the gateway."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str
    internal_url: str = Field(..., description="Base URL of the node API, reachable from the gateway only.")
    api_key: str = ""

    @field_validator("internal_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class GatewaySettings(BaseModel):
    """Settings for the aggregating gateway."""
    model_config = ConfigDict(frozen=True)

    nodes: Tuple[NodeConfig, ...] = ()
    request_timeout: float = Field(DEFAULT_REQUEST_TIMEOUT, gt=0)
    health_timeout: float = Field(DEFAULT_HEALTH_TIMEOUT, gt=0)
    health_check_interval: float = Field(DEFAULT_HEALTH_CHECK_INTERVAL, ge=0, description="Seconds between background health refreshes. 0 disables.")

    @field_validator("nodes")
    @classmethod
    def unique_ids(cls, value: Tuple[NodeConfig, ...]) -> Tuple[NodeConfig, ...]:
        seen = set()
        for node in value:
            if node.id in seen:
                raise ValueError(f"Duplicate node id '{node.id}'")
            seen.add(node.id)
        return value


# --- Loading ---

def _read_config_file() -> dict:
    config_file = os.getenv("FILEVIEWER_CONFIG_FILE")
    if not config_file:
        return {}
    path = Path(config_file)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read config file '{path}': {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file '{path}' must contain a JSON object.")
    logger.info(f"Loaded configuration file: {path}")
    return data


def _env_json(name: str):
    raw = os.getenv(name)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Environment variable {name} is not valid JSON: {e}") from e


def _env_number(name: str, cast):
    raw = os.getenv(name)
    if raw is None or raw == "":
        return None
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigError(f"Environment variable {name} must be a number, got '{raw}'") from e


def load_node_settings() -> NodeSettings:
    """Builds NodeSettings from .env, an optional JSON file and FILEVIEWER_* variables."""
    load_dotenv()
    data = _read_config_file()

    roots = _env_json("FILEVIEWER_ROOTS")
    if roots is not None:
        data["roots"] = roots
    if os.getenv("FILEVIEWER_API_KEY"):
        data["api_key"] = os.getenv("FILEVIEWER_API_KEY")
    max_size_mb = _env_number("FILEVIEWER_MAX_FILE_SIZE_MB", float)
    if max_size_mb is not None:
        data["max_file_size_bytes"] = int(max_size_mb * 1024 * 1024)
    workers = _env_number("FILEVIEWER_SEARCH_WORKERS", int)
    if workers is not None:
        data["search_workers"] = workers
    if os.getenv("FILEVIEWER_FALLBACK_ENCODING"):
        data["fallback_encoding"] = os.getenv("FILEVIEWER_FALLBACK_ENCODING")

    try:
        settings = NodeSettings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid node configuration: {e}") from e

    if not settings.roots:
        logger.warning("No root directories configured. The node will expose nothing.")
    return settings


def load_gateway_settings() -> GatewaySettings:
    """Builds GatewaySettings from .env, an optional JSON file and FILEVIEWER_* variables."""
    load_dotenv()
    data = _read_config_file()

    nodes = _env_json("FILEVIEWER_NODES")
    if nodes is not None:
        data["nodes"] = nodes
    for env_name, field in (
        ("FILEVIEWER_REQUEST_TIMEOUT", "request_timeout"),
        ("FILEVIEWER_HEALTH_TIMEOUT", "health_timeout"),
        ("FILEVIEWER_HEALTH_CHECK_INTERVAL", "health_check_interval"),
    ):
        value = _env_number(env_name, float)
        if value is not None:
            data[field] = value

    try:
        settings = GatewaySettings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid gateway configuration: {e}") from e

    if not settings.nodes:
        logger.warning("No file nodes configured for the gateway.")
    return settings
