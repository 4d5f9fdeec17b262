# fileviewer/core/sandbox.py - Root registry and path containment checks

import os
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import List, Mapping, Optional, Union

from .errors import ErrorKind, Failure
from ..models.files import RootDirectory
from ..utils.paths import has_parent_segment, to_local_path, to_web_path

logger = logging.getLogger(__name__)


class RootRegistry:
    """Immutable map of root name -> absolute directory path for one node."""

    def __init__(self, roots: Mapping[str, str]):
        self._roots = MappingProxyType({name: os.path.abspath(path) for name, path in roots.items()})

    def get(self, name: str) -> Optional[str]:
        return self._roots.get(name)

    def roots(self) -> List[RootDirectory]:
        return [RootDirectory(name=name, path=path) for name, path in self._roots.items()]

    def __contains__(self, name: str) -> bool:
        return name in self._roots

    def __len__(self) -> int:
        return len(self._roots)


@dataclass(frozen=True)
class ResolvedPath:
    """An absolute, canonical path known to lie inside `root_path`."""
    root_name: str
    root_path: str
    absolute_path: str

    def web_path_of(self, child: str) -> str:
        """Root-relative web path ('/' separators) of a path under this root."""
        return to_web_path(os.path.relpath(child, self.root_path))

    @property
    def web_path(self) -> str:
        return self.web_path_of(self.absolute_path)


def _within(candidate: str, root: str) -> bool:
    # normcase folds case only where the platform filesystem does
    candidate_cmp = os.path.normcase(candidate)
    root_cmp = os.path.normcase(root)
    if candidate_cmp == root_cmp:
        return True
    prefix = root_cmp if root_cmp.endswith(os.sep) else root_cmp + os.sep
    return candidate_cmp.startswith(prefix)


class PathSandbox:
    """
    Resolves user-supplied relative paths against a configured root.

    This is the only place that turns request input into filesystem paths;
    every listing, read and search goes through `resolve` first.
    """

    def __init__(self, registry: RootRegistry):
        self.registry = registry

    def resolve(self, root_name: str, relative_path: Optional[str]) -> Union[ResolvedPath, Failure]:
        root = self.registry.get(root_name)
        if root is None:
            return Failure(ErrorKind.INVALID_ROOT, f"Invalid root directory: {root_name}")

        local_path = to_local_path(relative_path or "")
        if has_parent_segment(local_path):
            logger.warning(f"Path traversal attempt denied for root '{root_name}': '{relative_path}'")
            return Failure(ErrorKind.PATH_ESCAPE, "Access to this path is not allowed")

        # Always join beneath the root, even for paths like '/etc' or 'C:\\'
        local_path = os.path.splitdrive(local_path)[1].lstrip(os.sep)

        root_real = os.path.realpath(root)
        resolved = os.path.realpath(os.path.join(root_real, local_path))
        if not _within(resolved, root_real):
            logger.warning(f"Path '{relative_path}' under root '{root_name}' resolved outside the root to '{resolved}'")
            return Failure(ErrorKind.PATH_ESCAPE, "Access to this path is not allowed")

        logger.debug(f"Resolved path for root '{root_name}': '{relative_path}' -> '{resolved}'")
        return ResolvedPath(root_name=root_name, root_path=root_real, absolute_path=resolved)

    def contains(self, resolved: ResolvedPath, candidate: str) -> bool:
        """True if `candidate` (after following symlinks) still lies inside the resolved root."""
        return _within(os.path.realpath(candidate), resolved.root_path)
