# fileviewer/core/reader.py - Encoding detection and bounded file reads

import os
import codecs
import logging
from typing import NamedTuple

from .errors import ErrorKind, Failure
from .sandbox import PathSandbox
from ..models.files import FileReadResult
from ..utils.paths import extension_of

logger = logging.getLogger(__name__)

SAMPLE_SIZE = 4096

# Longest signatures first: UTF-32LE shares its first two bytes with UTF-16LE
_BOMS = (
    (codecs.BOM_UTF32_LE, "utf-32le", "utf-32"),
    (codecs.BOM_UTF32_BE, "utf-32be", "utf-32"),
    (codecs.BOM_UTF8, "utf-8", "utf-8-sig"),
    (b"+/v", "utf-7", "utf-7"),
    (codecs.BOM_UTF16_LE, "utf-16le", "utf-16"),
    (codecs.BOM_UTF16_BE, "utf-16be", "utf-16"),
)


class DetectedEncoding(NamedTuple):
    name: str  # reported to callers
    codec: str # passed to open(); BOM-aware where a BOM was found


class EncodingDetector:
    """Detects a text file's encoding from its byte-order mark or a UTF-8 sample."""

    def __init__(self, fallback_encoding: str):
        codec_info = codecs.lookup(fallback_encoding) # LookupError for unknown names
        self.fallback = DetectedEncoding(codec_info.name, codec_info.name)

    def detect(self, path: str) -> DetectedEncoding:
        with open(path, "rb") as f:
            sample = f.read(SAMPLE_SIZE)

        head = sample[:4]
        for bom, name, codec in _BOMS:
            if head.startswith(bom):
                return DetectedEncoding(name, codec)

        decoder = codecs.getincrementaldecoder("utf-8")()
        try:
            # A multi-byte sequence cut by the sample boundary is not an error
            decoder.decode(sample, final=len(sample) < SAMPLE_SIZE)
        except UnicodeDecodeError:
            return self.fallback
        return DetectedEncoding("utf-8", "utf-8")


class FileReader:
    """Reads whole allow-listed files below a size ceiling."""

    def __init__(self, sandbox: PathSandbox, detector: EncodingDetector, allowed_extensions, max_file_size_bytes: int):
        self.sandbox = sandbox
        self.detector = detector
        self.allowed_extensions = tuple(allowed_extensions)
        self.max_file_size_bytes = max_file_size_bytes

    @staticmethod
    def _failure(failure: Failure, size: int = 0) -> FileReadResult:
        return FileReadResult(success=False, error_message=failure.message, error_kind=failure.kind, file_size_bytes=size)

    def read(self, root_name: str, relative_path: str) -> FileReadResult:
        resolved = self.sandbox.resolve(root_name, relative_path)
        if isinstance(resolved, Failure):
            return self._failure(resolved)

        path = resolved.absolute_path
        if not os.path.isfile(path):
            return self._failure(Failure(ErrorKind.NOT_FOUND, f"File not found: {relative_path}"))

        extension = extension_of(path)
        if extension not in self.allowed_extensions:
            return self._failure(Failure(ErrorKind.UNSUPPORTED_EXTENSION, f"File type not allowed: {extension or '(none)'}"))

        size = os.path.getsize(path)
        if size > self.max_file_size_bytes:
            limit_mb = self.max_file_size_bytes / (1024 * 1024)
            return self._failure(
                Failure(ErrorKind.FILE_TOO_LARGE, f"File is too large. Maximum size is {limit_mb:g}MB."),
                size,
            )

        try:
            encoding = self.detector.detect(path)
        except OSError as e:
            logger.error(f"Could not detect encoding of '{path}': {e}", exc_info=True)
            return self._failure(Failure(ErrorKind.ENCODING_DETECTION_FAILURE, f"Could not detect file encoding: {e}"), size)

        try:
            with open(path, "r", encoding=encoding.codec, errors="replace", newline="") as f:
                contents = f.read()
        except (OSError, UnicodeError) as e:
            logger.error(f"Error reading file '{path}': {e}", exc_info=True)
            return self._failure(Failure(ErrorKind.NOT_FOUND if isinstance(e, FileNotFoundError) else ErrorKind.INTERNAL_ERROR, f"Error reading file: {e}"), size)

        logger.info(f"Read '{resolved.web_path}' from root '{root_name}' ({size} bytes, {encoding.name})")
        return FileReadResult(success=True, contents=contents, encoding=encoding.name, file_size_bytes=size)
