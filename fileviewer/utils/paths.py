# fileviewer/utils/paths.py - Helpers for converting between web paths and local paths

import os
import re

# NUL and other control characters are never valid in a path we accept
_CONTROL_CHARS = "".join(chr(c) for c in range(32))
_WINDOWS_INVALID = '<>"|?*' # ':' is handled separately because of drive letters

if os.name == "nt":
    _INVALID_PATH_CHARS = re.compile(f"[{re.escape(_CONTROL_CHARS + _WINDOWS_INVALID + ':')}]")
else:
    _INVALID_PATH_CHARS = re.compile(f"[{re.escape(_CONTROL_CHARS)}]")


def to_local_path(web_path: str) -> str:
    """Converts '/' and '\\' separators to the local separator and strips invalid characters."""
    if not web_path:
        return ""
    path = web_path.replace("/", os.sep).replace("\\", os.sep)
    return _INVALID_PATH_CHARS.sub("", path)


def to_web_path(local_path: str) -> str:
    """Converts a local relative path to '/' separators. The root itself is ''."""
    if local_path in ("", "."):
        return ""
    return local_path.replace(os.sep, "/")


def has_parent_segment(local_path: str) -> bool:
    return any(part == ".." for part in local_path.split(os.sep))


def extension_of(name: str) -> str:
    return os.path.splitext(name)[1].lower()


def is_allowed_file(name: str, allowed_extensions) -> bool:
    return extension_of(name) in allowed_extensions
