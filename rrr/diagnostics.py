# rrr/diagnostics.py
"""
Located diagnostics and the error taxonomy shared by every component.

Positions are either a line/column in schema text or a byte offset in record
data. Each error raised by the library carries a `Diagnostic` so that the
position is never lost on the way up to the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union


@dataclass(frozen=True)
class TextPosition:
    """Position of a token in schema text (1-based line and column)."""

    line: int
    column: int
    offset: int = 0  # 0-based character offset into the text
    length: int = 1

    def __str__(self) -> str:
        return f"line {self.line}, column {self.column}"


@dataclass(frozen=True)
class ByteOffset:
    """Position of a byte in record data."""

    offset: int

    def __str__(self) -> str:
        return f"byte offset {self.offset}"


Position = Union[TextPosition, ByteOffset]


@dataclass(frozen=True)
class Diagnostic:
    position: Optional[Position]
    message: str
    cause: Optional[BaseException] = None

    def causes(self) -> List[str]:
        """Messages of the cause chain, outermost first."""
        out: List[str] = []
        exc = self.cause
        while exc is not None:
            out.append(str(exc) or type(exc).__name__)
            exc = exc.__cause__
        return out

    def render(self) -> str:
        head = f"{self.position}: {self.message}" if self.position else self.message
        lines = [head]
        lines.extend(f"caused by: {c}" for c in self.causes())
        return "\n".join(lines)


def locate(
    position: Optional[Position], message: str, cause: Optional[BaseException] = None
) -> Diagnostic:
    """Attach a position (and optionally the underlying exception) to a message."""
    return Diagnostic(position=position, message=message, cause=cause)


class SchemaErrorKind(str, Enum):
    UNKNOWN_TOKEN = "unknown token found"
    UNEXPECTED_TOKEN = "unexpected token found"
    UNEXPECTED_EOF = "unexpected end of the schema reached"
    EMPTY_SCHEMA = "schema declares no struct"
    UNKNOWN_TYPE = "unknown type reference"
    DUPLICATE_FIELD = "duplicate field name"
    DUPLICATE_STRUCT = "duplicate struct name"
    MALFORMED_LITERAL = "malformed width or length"
    MISPLACED_INFINITE_ARRAY = "infinite array not in trailing position"
    NESTED_INFINITE_ARRAY = "unbounded type used as an array element"
    ZERO_WIDTH_ELEMENT = "array of zero-width elements"
    CYCLIC_REFERENCE = "cyclic struct reference"
    UNKNOWN_ROOT = "unknown root struct"


class HeaderErrorKind(str, Enum):
    NOT_RECOGNIZED = "header not recognized"
    MALFORMED = "malformed header"
    TRUNCATED_HEADER = "truncated header"
    TRUNCATED_PAYLOAD = "truncated payload"


class DecodeErrorKind(str, Enum):
    TRUNCATED = "truncated data"
    INVALID_ENCODING = "invalid text encoding"
    CORRUPT_COMPRESSION = "corrupt compressed payload"


class SourceErrorKind(str, Enum):
    UNREADABLE = "cannot read source"


class RecordError(Exception):
    """Base class of every error raised by rrr.

    The `.kind` attribute is one of the *ErrorKind enums above and
    `.diagnostic` holds the position and cause.
    """

    def __init__(self, kind: Enum, diagnostic: Diagnostic, detail: str = "") -> None:
        super().__init__(diagnostic.render())
        self.kind = kind
        self.diagnostic = diagnostic
        self.detail = detail

    @classmethod
    def at(
        cls,
        kind: Enum,
        position: Optional[Position],
        message: str = "",
        cause: Optional[BaseException] = None,
    ) -> "RecordError":
        text = f"{kind.value}: {message}" if message else kind.value
        return cls(kind, locate(position, text, cause), message)

    @property
    def position(self) -> Optional[Position]:
        return self.diagnostic.position


class SchemaError(RecordError):
    """Raised when schema text cannot be compiled.

    Readers that compile a schema taken from a record set `schema_text` so the
    offending line can be shown.
    """

    schema_text: Optional[str] = None


class HeaderError(RecordError):
    """Raised when a record header is not recognized or is malformed.

    For NOT_RECOGNIZED errors `mismatches` lists why each layout was rejected.
    """

    mismatches: tuple = ()


class DecodeError(RecordError):
    """Raised when a payload does not match its schema."""


class SourceError(RecordError):
    """Raised when the byte source itself fails (the OS error is the cause)."""


SNIPPET_MARGIN = 32


def render_snippet(text: str, position: TextPosition) -> str:
    """Render the offending schema line with a caret marker under the token.

    Long lines are clipped to SNIPPET_MARGIN characters on each side of the
    token, with `..` marking the clipped ends.
    """
    lines = text.split("\n")
    line = lines[position.line - 1] if 0 < position.line <= len(lines) else ""
    start = position.column - 1
    end = start + max(position.length, 1)

    sstart = max(start, SNIPPET_MARGIN) - SNIPPET_MARGIN
    send = min(end + SNIPPET_MARGIN, len(line))
    prefix = "    " if sstart == 0 else " .. "
    suffix = "" if send >= len(line) else " .."
    padding = " " * (len(prefix) + start - sstart)
    return f"    {prefix}{line[sstart:send]}{suffix}\n    {padding}{'^' * (end - start)}\n"
