# fileviewer/core/listing.py - Directory listings filtered by the extension allow-list

import os
import logging
from datetime import datetime, timezone
from typing import List, Union

from .errors import ErrorKind, Failure
from .sandbox import PathSandbox
from ..models.files import FileItem, RootDirectory
from ..utils.paths import is_allowed_file

logger = logging.getLogger(__name__)


class DirectoryLister:
    """Lists the immediate children of a sandboxed directory."""

    def __init__(self, sandbox: PathSandbox, allowed_extensions):
        self.sandbox = sandbox
        self.allowed_extensions = tuple(allowed_extensions)

    def roots(self) -> List[RootDirectory]:
        return self.sandbox.registry.roots()

    def browse(self, root_name: str, relative_path: str = "") -> Union[List[FileItem], Failure]:
        """
        Returns directories (unfiltered, size 0) and allow-listed files.

        Directories come first, then everything is ordered by name,
        case-insensitively.
        """
        resolved = self.sandbox.resolve(root_name, relative_path)
        if isinstance(resolved, Failure):
            return resolved
        if not os.path.isdir(resolved.absolute_path):
            return Failure(ErrorKind.NOT_FOUND, f"Directory not found: {relative_path or '/'}")

        items = []
        try:
            entries = os.scandir(resolved.absolute_path)
        except OSError as e:
            logger.error(f"Cannot list '{resolved.absolute_path}' in root '{root_name}': {e}")
            return Failure(ErrorKind.ACCESS_DENIED, f"Cannot open directory: {relative_path or '/'}")

        with entries:
            for entry in entries:
                try:
                    is_dir = entry.is_dir()
                    if not is_dir and not (entry.is_file() and is_allowed_file(entry.name, self.allowed_extensions)):
                        continue
                    if entry.is_symlink():
                        if not self.sandbox.contains(resolved, entry.path):
                            logger.warning(f"Skipping '{entry.path}': links outside root '{root_name}'")
                            continue
                        if not is_dir and not is_allowed_file(os.path.realpath(entry.path), self.allowed_extensions):
                            logger.warning(f"Skipping '{entry.path}': link target has a disallowed extension")
                            continue
                    stat = entry.stat()
                except OSError as e:
                    # Entry vanished or is unreadable; keep listing the rest
                    logger.warning(f"Skipping '{entry.path}' while listing root '{root_name}': {e}")
                    continue

                items.append(FileItem(
                    name=entry.name,
                    path=resolved.web_path_of(entry.path),
                    is_directory=is_dir,
                    root_name=root_name,
                    last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                    size=0 if is_dir else stat.st_size,
                ))

        items.sort(key=lambda item: (not item.is_directory, item.name.casefold(), item.name))
        return items
