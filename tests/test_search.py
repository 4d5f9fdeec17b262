# tests/test_search.py - Parallel content search

import os
import codecs
import threading
import time

import pytest

from fileviewer.core.errors import ErrorKind, Failure
from fileviewer.core.search import ContentSearchEngine, SearchOutcome, make_snippet
from fileviewer.models.files import SearchMode, SearchQuery
from fileviewer.utils.paths import is_allowed_file


def query(term, path="", root="logs", **kwargs):
    return SearchQuery(root_name=root, path=path, search_term=term, **kwargs)


@pytest.fixture
def haystack(log_root):
    """Twenty filler files and one file with 'needle' on its fifth line."""
    for i in range(20):
        (log_root / f"filler-{i:02d}.log").write_text("nothing to see\n" * 10, encoding="utf-8")
    lines = ["first", "second", "third", "fourth", "here is the Needle we want", "needle again"]
    (log_root / "alpha" / "target.log").write_text("\n".join(lines) + "\n", encoding="utf-8")
    return log_root


# --- Snippets ---

def test_snippet_short_line_is_unchanged():
    assert make_snippet("found needle here", 6) == "found needle here"


def test_snippet_clips_both_ends():
    line = "x" * 60 + "needle" + "y" * 100
    snippet = make_snippet(line, 60)
    assert snippet.startswith("...")
    assert snippet.endswith("...")
    assert "needle" in snippet
    assert snippet == "..." + line[10:110] + "..."


def test_snippet_match_near_start_has_no_leading_ellipsis():
    line = "needle" + "z" * 200
    snippet = make_snippet(line, 0)
    assert snippet == line[:100] + "..."


def test_snippet_match_near_end_has_no_trailing_ellipsis():
    line = "a" * 120 + "needle"
    snippet = make_snippet(line, 120)
    assert snippet == "..." + line[70:]


# --- Search ---

def test_single_hit_on_fifth_line(engine, haystack):
    outcome = engine.search(query("needle"))
    assert isinstance(outcome, SearchOutcome)
    assert not outcome.timed_out
    assert len(outcome.hits) == 1

    hit = outcome.hits[0]
    assert hit.line_number == 5
    assert "Needle" in hit.matched_content
    assert hit.file_path == "alpha/target.log"
    assert hit.file_name == "target.log"


def test_match_is_case_insensitive_and_literal(engine, log_root):
    (log_root / "regexy.log").write_text("a.b\nA+B (literal)\n", encoding="utf-8")
    hits = engine.search(query("a+b (LITERAL)")).hits
    assert [(hit.file_path, hit.line_number) for hit in hits] == [("regexy.log", 2)]


def test_hits_sorted_by_path(engine, log_root):
    for name in ("c.log", "a.log", "b.txt"):
        (log_root / name).write_text("shared token\n", encoding="utf-8")
    (log_root / "alpha" / "d.log").write_text("shared token\n", encoding="utf-8")

    paths = [hit.file_path for hit in engine.search(query("shared token")).hits]
    assert paths == ["a.log", "alpha/d.log", "b.txt", "c.log"]


def test_subdirectory_search_keeps_root_relative_paths(engine, haystack):
    hits = engine.search(query("needle", path="alpha")).hits
    assert [hit.file_path for hit in hits] == ["alpha/target.log"]


def test_disallowed_extensions_are_not_searched(engine):
    """image.png contains 'needle' but is never scanned."""
    assert engine.search(query("needle")).hits == []


def test_crlf_and_unterminated_last_line(engine, log_root):
    (log_root / "crlf.log").write_bytes(b"one\r\ntwo marker\r\n")
    (log_root / "tail.log").write_bytes(b"one\ntwo\nthree marker")

    hits = {hit.file_name: hit for hit in engine.search(query("marker")).hits}
    assert hits["crlf.log"].line_number == 2
    assert hits["crlf.log"].matched_content == "two marker"
    assert hits["tail.log"].line_number == 3


def test_line_spanning_chunks(engine, log_root):
    long_line = "q" * 5000 + "marker" + "q" * 5000
    (log_root / "long.log").write_text("short\n" + long_line + "\nafter marker\n", encoding="utf-8")

    hit = engine.search(query("marker")).hits[0]
    assert hit.line_number == 2
    assert hit.matched_content == "..." + "q" * 50 + "marker" + "q" * 44 + "..."


def test_utf16_file_is_searchable(engine, log_root):
    (log_root / "wide.log").write_bytes(codecs.BOM_UTF16_LE + "first\nwide marker\n".encode("utf-16-le"))
    hits = engine.search(query("wide marker")).hits
    assert [(hit.file_name, hit.line_number) for hit in hits] == [("wide.log", 2)]


def test_large_files_are_skipped(sandbox, detector, log_root):
    (log_root / "big.log").write_text("marker\n" * 100, encoding="utf-8")
    (log_root / "small.log").write_text("marker\n", encoding="utf-8")
    engine = ContentSearchEngine(sandbox, detector, (".log", ".txt"), max_file_size_bytes=50, max_workers=2)

    hits = engine.search(query("marker")).hits
    assert [hit.file_name for hit in hits] == ["small.log"]


def test_per_file_errors_are_isolated(engine, log_root, monkeypatch):
    (log_root / "broken.log").write_text("marker\n", encoding="utf-8")
    (log_root / "fine.log").write_text("marker\n", encoding="utf-8")
    real_detect = engine.detector.detect

    def flaky_detect(path):
        if path.endswith("broken.log"):
            raise PermissionError("denied")
        return real_detect(path)

    monkeypatch.setattr(engine.detector, "detect", flaky_detect)
    hits = engine.search(query("marker")).hits
    assert [hit.file_name for hit in hits] == ["fine.log"]


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")
def test_files_linked_outside_root_are_skipped(engine, log_root, tmp_path):
    outside = tmp_path / "outside.log"
    outside.write_text("marker\n", encoding="utf-8")
    os.symlink(outside, log_root / "link.log")
    assert engine.search(query("marker")).hits == []


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")
def test_links_to_disallowed_files_are_skipped(engine, reader, log_root):
    (log_root / "secret.png").write_text("password=hunter2 needle\n", encoding="utf-8")
    os.symlink(log_root / "secret.png", log_root / "alias.log")
    os.symlink(log_root / "app.log", log_root / "copy.log")

    assert engine.search(query("hunter2")).hits == []
    assert reader.read("logs", "alias.log").error_kind == ErrorKind.UNSUPPORTED_EXTENSION
    assert [hit.file_name for hit in engine.search(query("started")).hits] == ["app.log", "copy.log"]


def test_cancelled_search_returns_partial_results(engine, haystack):
    cancel = threading.Event()
    cancel.set()
    outcome = engine.search(query("needle"), cancel_event=cancel)
    assert outcome.timed_out
    assert outcome.hits == []


def test_deadline_bounds_file_enumeration(engine, haystack, monkeypatch):
    def slow_is_allowed(name, allowed_extensions):
        time.sleep(0.05)
        return is_allowed_file(name, allowed_extensions)

    monkeypatch.setattr("fileviewer.core.search.is_allowed_file", slow_is_allowed)
    started = time.monotonic()
    outcome = engine.search(query("needle", timeout_seconds=0.1))
    assert outcome.timed_out
    assert time.monotonic() - started < 1.0


def test_deadline_expires_during_scans(engine, haystack, monkeypatch):
    real_detect = engine.detector.detect

    def slow_detect(path):
        time.sleep(0.3)
        return real_detect(path)

    monkeypatch.setattr(engine.detector, "detect", slow_detect)
    started = time.monotonic()
    outcome = engine.search(query("needle", timeout_seconds=0.1))
    assert outcome.timed_out
    assert all("needle" in hit.matched_content.lower() for hit in outcome.hits)
    assert time.monotonic() - started < 1.5


def test_timeout_is_optional(engine, haystack):
    outcome = engine.search(query("needle", timeout_seconds=30))
    assert not outcome.timed_out
    assert len(outcome.hits) == 1


@pytest.mark.parametrize("mode", [SearchMode.REGEX, SearchMode.MOBILE_NUMBER])
def test_other_search_modes_are_not_supported(engine, mode):
    result = engine.search(query("needle", search_mode=mode))
    assert isinstance(result, Failure)
    assert result.kind == ErrorKind.UNSUPPORTED_SEARCH_MODE


def test_search_failures(engine):
    assert engine.search(query("x", root="nope")).kind == ErrorKind.INVALID_ROOT
    assert engine.search(query("x", path="../archive")).kind == ErrorKind.PATH_ESCAPE
    assert engine.search(query("x", path="missing")).kind == ErrorKind.NOT_FOUND
    assert engine.search(query("x", path="app.log")).kind == ErrorKind.NOT_FOUND
