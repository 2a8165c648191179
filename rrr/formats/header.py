# rrr/formats/header.py
"""
Record header layouts and layout detection.

A header is read before any schema-guided decoding. Its only job for the
decoder is to say how many payload bytes follow (`data_size`); the text layout
also carries the schema itself in its `format` field.
"""

from __future__ import annotations

import re
import struct
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, Union

from loguru import logger

from rrr.diagnostics import ByteOffset, HeaderError, HeaderErrorKind

Buffer = Union[bytes, bytearray, memoryview]

COMPRESS_TYPES = ("gzip", "bzip2")

_DECIMAL_RE = re.compile(r"^[0-9]+$")

_SEARCH_CHUNK = 1 << 16


@dataclass(frozen=True)
class Header:
    """Decoded record header."""

    layout: str  # name of the layout that accepted the bytes
    data_size: int
    fields: Dict[str, str] = field(default_factory=dict)
    magic: bytes = b""
    version: Optional[int] = None

    @property
    def schema_text(self) -> Optional[str]:
        return self.fields.get("format")

    @property
    def compress_type(self) -> Optional[str]:
        return self.fields.get("compress_type")


@dataclass
class LayoutMismatch:
    """Why a specific header layout rejected the bytes."""

    layout: str
    reason: str


def _find(data: Buffer, needle: bytes, start: int = 0) -> int:
    """bytes.find over a buffer without copying all of it at once."""
    pos = start
    while pos < len(data):
        window = bytes(data[pos : pos + _SEARCH_CHUNK + len(needle) - 1])
        i = window.find(needle)
        if i != -1:
            return pos + i
        pos += _SEARCH_CHUNK
    return -1


@dataclass(frozen=True)
class TextHeaderLayout:
    """Line-oriented header.

    Layout::

        <optional preamble>WN\\n
        key=value\\n
        long_key=first part \\\\n
        second part\\n
        \\x04\\x1a
        <payload: data_size bytes>

    A backslash right before a newline joins the next line to the current one.
    """

    name: str = "text"
    start_magic: bytes = b"WN\n"
    separator: bytes = b"\x04\x1a"

    def decode(self, data: Buffer, start: int = 0) -> Tuple[Header, int]:
        magic_at = _find(data, self.start_magic, start)
        if magic_at == -1:
            raise HeaderError.at(
                HeaderErrorKind.NOT_RECOGNIZED, ByteOffset(start), f"no {self.start_magic!r} magic line"
            )
        off = magic_at + len(self.start_magic)
        fields: Dict[str, str] = {}
        sep_len = len(self.separator)

        while True:
            head = bytes(data[off : off + sep_len])
            if head == self.separator:
                off += sep_len
                break
            if len(head) < sep_len and self.separator.startswith(head):
                raise HeaderError.at(
                    HeaderErrorKind.TRUNCATED_HEADER, ByteOffset(off), "end of data before separator"
                )
            line_start = off
            line = b""
            while True:
                nl = _find(data, b"\n", off)
                if nl == -1:
                    raise HeaderError.at(
                        HeaderErrorKind.TRUNCATED_HEADER, ByteOffset(off), "unterminated header line"
                    )
                chunk = bytes(data[off:nl])
                off = nl + 1
                if chunk.endswith(b"\\"):
                    line += chunk[:-1]
                    continue
                line += chunk
                break

            key, eq, value = line.partition(b"=")
            if not eq:
                raise HeaderError.at(
                    HeaderErrorKind.MALFORMED, ByteOffset(line_start), f"field line without '=': {line[:40]!r}"
                )
            try:
                fields[key.decode("utf-8")] = value.decode("utf-8")
            except UnicodeDecodeError as e:
                raise HeaderError.at(
                    HeaderErrorKind.MALFORMED,
                    ByteOffset(line_start + e.start),
                    "header field is not valid UTF-8",
                    e,
                ) from e

        data_size = fields.get("data_size")
        if data_size is None:
            raise HeaderError.at(HeaderErrorKind.MALFORMED, ByteOffset(magic_at), "missing data_size field")
        if not _DECIMAL_RE.match(data_size):
            raise HeaderError.at(
                HeaderErrorKind.MALFORMED, ByteOffset(magic_at), f"data_size is not a decimal number: {data_size!r}"
            )
        compress = fields.get("compress_type")
        if compress is not None and compress not in COMPRESS_TYPES:
            raise HeaderError.at(
                HeaderErrorKind.MALFORMED, ByteOffset(magic_at), f"unsupported compress_type {compress!r}"
            )
        header = Header(
            layout=self.name,
            data_size=int(data_size),
            fields=fields,
            magic=self.start_magic,
        )
        return header, off - start


@dataclass(frozen=True)
class BinaryHeaderLayout:
    """Fixed-offset binary header.

    Attributes:
        magic: Bytes expected at offset 0.
        data_size_offset: Offset of the payload size field.
        data_size_format: `struct` format of the size field, e.g. ">I" or "<Q".
        size: Total header length; at least the end of the last field.
        version_offset: Optional offset of a version field.
        version_format: `struct` format of the version field.
    """

    magic: bytes
    data_size_offset: int
    data_size_format: str = ">I"
    size: int = 0
    version_offset: Optional[int] = None
    version_format: str = ">H"
    name: str = "binary"

    @property
    def header_size(self) -> int:
        ends = [self.size, len(self.magic), self.data_size_offset + struct.calcsize(self.data_size_format)]
        if self.version_offset is not None:
            ends.append(self.version_offset + struct.calcsize(self.version_format))
        return max(ends)

    def decode(self, data: Buffer, start: int = 0) -> Tuple[Header, int]:
        got = bytes(data[start : start + len(self.magic)])
        if got != self.magic:
            if len(got) < len(self.magic) and self.magic.startswith(got):
                raise HeaderError.at(
                    HeaderErrorKind.TRUNCATED_HEADER, ByteOffset(start + len(got)), "end of data inside magic"
                )
            raise HeaderError.at(
                HeaderErrorKind.NOT_RECOGNIZED, ByteOffset(start), f"expected magic {self.magic!r}, found {got!r}"
            )
        size = self.header_size
        if len(data) - start < size:
            raise HeaderError.at(
                HeaderErrorKind.TRUNCATED_HEADER,
                ByteOffset(len(data)),
                f"header needs {size} bytes, only {len(data) - start} available",
            )
        (data_size,) = struct.unpack_from(self.data_size_format, data, start + self.data_size_offset)
        if data_size < 0:
            raise HeaderError.at(
                HeaderErrorKind.MALFORMED, ByteOffset(start + self.data_size_offset), f"negative data_size {data_size}"
            )
        fields = {"data_size": str(data_size)}
        version = None
        if self.version_offset is not None:
            (version,) = struct.unpack_from(self.version_format, data, start + self.version_offset)
            fields["version"] = str(version)
        return Header(self.name, data_size, fields, magic=self.magic, version=version), size


HeaderLayout = Union[TextHeaderLayout, BinaryHeaderLayout]

DEFAULT_LAYOUTS: Tuple[HeaderLayout, ...] = (TextHeaderLayout(),)


def decode_header(
    data: Buffer, layouts: Sequence[HeaderLayout] = DEFAULT_LAYOUTS, *, start: int = 0
) -> Tuple[Header, int]:
    """Decode the header found at `start` in `data`.

    Layouts are tried in order. A layout that does not recognize the magic is
    skipped; any other failure of a layout that did recognize it is final.

    Returns:
        The header and the number of bytes it occupies, so that the payload
        starts at `start + consumed`. Error offsets are absolute in `data`.
    """
    mismatches: List[LayoutMismatch] = []
    for layout in layouts:
        try:
            header, consumed = layout.decode(data, start)
        except HeaderError as e:
            if e.kind is not HeaderErrorKind.NOT_RECOGNIZED:
                raise
            mismatches.append(LayoutMismatch(layout=layout.name, reason=e.detail))
            continue
        logger.debug(
            "{layout} header: data_size={size}, {n} byte(s)",
            layout=layout.name,
            size=header.data_size,
            n=consumed,
        )
        return header, consumed

    summary = "; ".join(f"{m.layout}: {m.reason}" for m in mismatches) or "no layouts given"
    err = HeaderError.at(HeaderErrorKind.NOT_RECOGNIZED, ByteOffset(start), summary)
    err.mismatches = tuple(mismatches)
    raise err
