# rrr/__init__.py
"""
rrr
===

Schema-driven reader for self-describing binary records: a textual header
carrying the payload size and the schema, followed by a payload decoded
field by field into JSON. Zero-copy mmap input, located diagnostics and rich
console reporting.
"""
from __future__ import annotations

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version

from loguru import logger

from rrr.decoding.decoder import decode
from rrr.decoding.value import ArrayValue, Scalar, ScalarKind, StructValue, to_python
from rrr.diagnostics import (
    ByteOffset,
    DecodeError,
    DecodeErrorKind,
    Diagnostic,
    HeaderError,
    HeaderErrorKind,
    RecordError,
    SchemaError,
    SchemaErrorKind,
    SourceError,
    SourceErrorKind,
    TextPosition,
)
from rrr.formats.header import BinaryHeaderLayout, Header, TextHeaderLayout, decode_header
from rrr.io.file_reader import BufferSource, LocalFileSource
from rrr.reader import ReaderOptions, Record, RecordReader
from rrr.reporting.json_reporter import escape_str, header_to_json, to_json
from rrr.schema.compiler import compile_schema
from rrr.schema.types import Schema

__all__ = [
    "__version__",
    "ArrayValue",
    "BinaryHeaderLayout",
    "BufferSource",
    "ByteOffset",
    "DecodeError",
    "DecodeErrorKind",
    "Diagnostic",
    "Header",
    "HeaderError",
    "HeaderErrorKind",
    "LocalFileSource",
    "ReaderOptions",
    "Record",
    "RecordError",
    "RecordReader",
    "Scalar",
    "ScalarKind",
    "Schema",
    "SchemaError",
    "SchemaErrorKind",
    "SourceError",
    "SourceErrorKind",
    "StructValue",
    "TextHeaderLayout",
    "TextPosition",
    "compile_schema",
    "decode",
    "decode_header",
    "escape_str",
    "header_to_json",
    "to_json",
    "to_python",
]

# silent as a library; configure_logging() turns it back on
logger.disable("rrr")

try:
    # Read version dynamically from installed package metadata
    __version__: str = _pkg_version("rrr")
except PackageNotFoundError:  # pragma: no cover - fallback for development environments
    __version__ = "0.0.0-dev"
