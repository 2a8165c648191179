# rrr/reader.py
"""
Record reader: ties a byte source, the header decoder, the schema compiler and
the payload decoder together.
"""
from __future__ import annotations

import bz2
import gzip
import zlib
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Sequence, Tuple

from loguru import logger

from rrr.decoding.decoder import decode
from rrr.decoding.value import StructValue
from rrr.diagnostics import (
    ByteOffset,
    DecodeError,
    DecodeErrorKind,
    HeaderError,
    HeaderErrorKind,
    SchemaError,
)
from rrr.formats.header import DEFAULT_LAYOUTS, Header, HeaderLayout, decode_header
from rrr.io.file_reader import ByteSource
from rrr.observability import Timer
from rrr.schema.compiler import compile_schema
from rrr.schema.types import Schema

_DECOMPRESSORS = {
    "gzip": gzip.decompress,
    "bzip2": bz2.decompress,
}


@dataclass
class ReaderOptions:
    """Reader configuration.

    Attributes:
        read_body: Decode the payload; otherwise only header and schema are read.
        ignore_data_size: Decode up to the end of the source instead of
            `data_size` bytes.
        schema_text: Schema to use instead of the header's `format` field.
        root: Root struct name; defaults to the last declared struct.
        max_bytes: Only look at the first N bytes of the source.
        layouts: Header layouts to try, in order.
    """

    read_body: bool = True
    ignore_data_size: bool = False
    schema_text: Optional[str] = None
    root: Optional[str] = None
    max_bytes: Optional[int] = None
    layouts: Sequence[HeaderLayout] = DEFAULT_LAYOUTS


@dataclass
class Record:
    header: Header
    schema: Schema
    schema_text: str
    value: Optional[StructValue]
    offset: int  # where the record's header starts
    payload_offset: int

    @property
    def end(self) -> int:
        """Offset right after this record's payload."""
        return self.payload_offset + self.header.data_size

    @property
    def consumed(self) -> int:
        """Header plus payload bytes."""
        return self.end - self.offset


class RecordReader:
    """Reads records from a `ByteSource` that is already entered."""

    def __init__(self, source: ByteSource, options: Optional[ReaderOptions] = None):
        self.source = source
        self.options = options or ReaderOptions()
        self._schemas: Dict[Tuple[str, Optional[str]], Schema] = {}

    def _data(self) -> memoryview:
        return self.source.read(0, self.options.max_bytes)

    def _offset_of(self, data: memoryview, index: int) -> int:
        if index < 0:
            raise ValueError(f"record index must be >= 0, got {index}")
        off = 0
        for i in range(index):
            header, consumed = decode_header(data, self.options.layouts, start=off)
            off += consumed + header.data_size
            if off > len(data):
                raise HeaderError.at(
                    HeaderErrorKind.TRUNCATED_PAYLOAD,
                    ByteOffset(len(data)),
                    f"record {i} extends past the end of the data, record {index} not found",
                )
        return off

    def read(self, index: int = 0) -> Record:
        """Read the record at position `index` (0-based) in the source."""
        data = self._data()
        return self._read_at(data, self._offset_of(data, index))

    def read_header(self, index: int = 0) -> Header:
        """Only the header of record `index`; the schema is not compiled."""
        data = self._data()
        with Timer("header"):
            header, _ = decode_header(data, self.options.layouts, start=self._offset_of(data, index))
        return header

    def records(self) -> Iterator[Record]:
        """All records, one after the other, until the data is exhausted.

        Bytes after the last record that hold no header (zero padding, for
        instance) end the iteration.
        """
        data = self._data()
        off = 0
        while off < len(data):
            try:
                record = self._read_at(data, off)
            except HeaderError as e:
                if off == 0 or e.kind is not HeaderErrorKind.NOT_RECOGNIZED:
                    raise
                logger.debug("{n} trailing byte(s) after the last record", n=len(data) - off)
                return
            yield record
            off = record.end

    def _read_at(self, data: memoryview, off: int) -> Record:
        with Timer("header"):
            header, consumed = decode_header(data, self.options.layouts, start=off)
        payload_offset = off + consumed

        text = self.options.schema_text if self.options.schema_text is not None else header.schema_text
        if text is None:
            raise HeaderError.at(
                HeaderErrorKind.MALFORMED,
                ByteOffset(off),
                "header has no format field and no schema was given",
            )
        with Timer("schema"):
            schema = self._compile(text)

        value = None
        if self.options.read_body:
            with Timer("payload"):
                value = self._decode_payload(data, header, schema, payload_offset)
        return Record(
            header=header,
            schema=schema,
            schema_text=text,
            value=value,
            offset=off,
            payload_offset=payload_offset,
        )

    def _compile(self, text: str) -> Schema:
        key = (text, self.options.root)
        if key not in self._schemas:
            try:
                self._schemas[key] = compile_schema(text, root=self.options.root)
            except SchemaError as e:
                e.schema_text = text
                raise
        return self._schemas[key]

    def _decode_payload(
        self, data: memoryview, header: Header, schema: Schema, payload_offset: int
    ) -> StructValue:
        size = None if self.options.ignore_data_size else header.data_size
        if header.compress_type is None:
            return decode(schema, data, offset=payload_offset, data_size=size)

        available = len(data) - payload_offset
        if size is not None and available < size:
            raise HeaderError.at(
                HeaderErrorKind.TRUNCATED_PAYLOAD,
                ByteOffset(len(data)),
                f"data_size declares {size} byte(s), only {available} available",
            )
        end = len(data) if size is None else payload_offset + size
        raw = bytes(data[payload_offset:end])
        try:
            body = _DECOMPRESSORS[header.compress_type](raw)
        except (OSError, EOFError, ValueError, zlib.error) as e:
            raise DecodeError.at(
                DecodeErrorKind.CORRUPT_COMPRESSION,
                ByteOffset(payload_offset),
                f"{header.compress_type} payload of {len(raw)} byte(s)",
                e,
            ) from e
        logger.debug(
            "Decompressed {kind} payload: {n} -> {m} bytes",
            kind=header.compress_type,
            n=len(raw),
            m=len(body),
        )
        # offsets of errors in `body` refer to the decompressed stream
        return decode(schema, body)
