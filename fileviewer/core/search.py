# fileviewer/core/search.py - Parallel first-match text search across a sandboxed tree

import os
import re
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Iterator, List, NamedTuple, Optional, Union

from .errors import ErrorKind, Failure
from .reader import EncodingDetector
from .sandbox import PathSandbox, ResolvedPath
from ..models.files import SearchHit, SearchMode, SearchQuery
from ..utils.paths import is_allowed_file

logger = logging.getLogger(__name__)

CHUNK_SIZE = 4096
SNIPPET_CONTEXT_BEFORE = 50
SNIPPET_WIDTH = 100
ELLIPSIS = "..."


def make_snippet(line: str, match_start: int) -> str:
    """
    Cuts up to SNIPPET_WIDTH characters of `line`, starting SNIPPET_CONTEXT_BEFORE
    characters before the match, and marks clipped ends with an ellipsis.
    """
    start = max(0, match_start - SNIPPET_CONTEXT_BEFORE)
    end = min(len(line), start + SNIPPET_WIDTH)
    snippet = line[start:end]
    if start > 0:
        snippet = ELLIPSIS + snippet
    if end < len(line):
        snippet = snippet + ELLIPSIS
    return snippet


class SearchOutcome(NamedTuple):
    hits: List[SearchHit]
    timed_out: bool = False


class _HitCollector:
    """Thread-safe, unordered accumulator for hits produced by worker threads."""

    def __init__(self):
        self._lock = threading.Lock()
        self._hits: List[SearchHit] = []

    def add(self, hit: SearchHit) -> None:
        with self._lock:
            self._hits.append(hit)

    def sorted_hits(self) -> List[SearchHit]:
        with self._lock:
            return sorted(self._hits, key=lambda hit: hit.file_path)


class ContentSearchEngine:
    """Finds the first line matching a term in every allow-listed file under a directory."""

    def __init__(
        self,
        sandbox: PathSandbox,
        detector: EncodingDetector,
        allowed_extensions,
        max_file_size_bytes: int,
        max_workers: Optional[int] = None,
    ):
        self.sandbox = sandbox
        self.detector = detector
        self.allowed_extensions = tuple(allowed_extensions)
        self.max_file_size_bytes = max_file_size_bytes
        self.max_workers = max_workers or os.cpu_count() or 1

    def search(self, query: SearchQuery, cancel_event: Optional[threading.Event] = None) -> Union[SearchOutcome, Failure]:
        """
        Searches every candidate file concurrently and returns hits sorted by path.

        Setting `cancel_event`, or exceeding `query.timeout_seconds`, stops the
        remaining scans; hits already found are returned with `timed_out=True`.
        """
        if query.search_mode != SearchMode.LITERAL:
            return Failure(ErrorKind.UNSUPPORTED_SEARCH_MODE, f"Search mode '{query.search_mode.value}' is not supported yet")

        resolved = self.sandbox.resolve(query.root_name, query.path)
        if isinstance(resolved, Failure):
            return resolved
        if not os.path.isdir(resolved.absolute_path):
            return Failure(ErrorKind.NOT_FOUND, f"Directory not found: {query.path or '/'}")

        pattern = re.compile(re.escape(query.search_term), re.IGNORECASE)
        cancel = cancel_event or threading.Event()
        deadline = None if query.timeout_seconds is None else time.monotonic() + query.timeout_seconds
        collector = _HitCollector()

        logger.info(f"Searching root '{query.root_name}' path '{query.path}' for '{query.search_term}' with {self.max_workers} workers")
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="fileviewer-search") as executor:
            futures = [
                executor.submit(self._scan_into, collector, resolved, path, pattern, cancel)
                for path in self._candidate_files(resolved, cancel, deadline)
            ]
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            _, not_done = wait(futures, timeout=remaining)
            if not_done:
                logger.warning(f"Search for '{query.search_term}' exceeded {query.timeout_seconds}s; cancelling {len(not_done)} file scans")
                cancel.set()
                for future in not_done:
                    future.cancel()

        hits = collector.sorted_hits()
        timed_out = cancel.is_set()
        logger.info(f"Search for '{query.search_term}' scanned {len(futures)} files, {len(hits)} hits{' (cancelled)' if timed_out else ''}")
        return SearchOutcome(hits=hits, timed_out=timed_out)

    def _candidate_files(self, resolved: ResolvedPath, cancel: threading.Event, deadline: Optional[float] = None) -> Iterator[str]:
        """Walks the tree, stopping early once `cancel` is set or `deadline` passes."""
        for dirpath, _dirnames, filenames in os.walk(resolved.absolute_path, onerror=self._log_walk_error):
            for filename in filenames:
                if self._should_stop(cancel, deadline):
                    logger.warning(f"Stopped listing files to search under '{resolved.absolute_path}'")
                    return
                if not is_allowed_file(filename, self.allowed_extensions):
                    continue
                path = os.path.join(dirpath, filename)
                if not self.sandbox.contains(resolved, path):
                    logger.warning(f"Skipping '{path}': links outside root '{resolved.root_name}'")
                    continue
                # A link's target must carry an allowed extension too
                if os.path.islink(path) and not is_allowed_file(os.path.realpath(path), self.allowed_extensions):
                    logger.warning(f"Skipping '{path}': link target has a disallowed extension")
                    continue
                yield path
            if self._should_stop(cancel, deadline):
                return

    @staticmethod
    def _should_stop(cancel: threading.Event, deadline: Optional[float]) -> bool:
        if deadline is not None and time.monotonic() >= deadline:
            cancel.set()
        return cancel.is_set()

    @staticmethod
    def _log_walk_error(error: OSError) -> None:
        logger.error(f"Cannot list directory during search: {error}")

    def _scan_into(self, collector: _HitCollector, resolved: ResolvedPath, path: str, pattern: re.Pattern, cancel: threading.Event) -> None:
        try:
            hit = self._scan_file(resolved, path, pattern, cancel)
        except (OSError, UnicodeError) as e:
            logger.error(f"Error searching file '{path}': {e}")
            return
        except Exception as e:
            logger.error(f"Unexpected error searching file '{path}': {e}", exc_info=True)
            return
        if hit is not None:
            collector.add(hit)

    def _scan_file(self, resolved: ResolvedPath, path: str, pattern: re.Pattern, cancel: threading.Event) -> Optional[SearchHit]:
        if cancel.is_set():
            return None

        stat = os.stat(path)
        if stat.st_size > self.max_file_size_bytes:
            logger.warning(f"Skipping large file: {path} ({stat.st_size} bytes)")
            return None

        encoding = self.detector.detect(path)
        line_number = 0
        pending = ""
        with open(path, "r", encoding=encoding.codec, errors="replace", newline="") as f:
            while True:
                if cancel.is_set():
                    return None
                chunk = f.read(CHUNK_SIZE)
                if not chunk:
                    break
                *lines, pending = (pending + chunk).split("\n")
                for line in lines:
                    line_number += 1
                    line = line.rstrip("\r")
                    match = pattern.search(line)
                    if match:
                        return self._hit(resolved, path, stat.st_mtime, line_number, line, match.start())

        # Last line without a trailing newline
        if pending:
            line_number += 1
            line = pending.rstrip("\r")
            match = pattern.search(line)
            if match:
                return self._hit(resolved, path, stat.st_mtime, line_number, line, match.start())
        return None

    @staticmethod
    def _hit(resolved: ResolvedPath, path: str, mtime: float, line_number: int, line: str, match_start: int) -> SearchHit:
        return SearchHit(
            file_path=resolved.web_path_of(path),
            file_name=os.path.basename(path),
            last_modified=datetime.fromtimestamp(mtime, tz=timezone.utc),
            line_number=line_number,
            matched_content=make_snippet(line, match_start),
        )
