# rrr/decoding/decoder.py
"""
Schema-guided payload decoder.

The payload region is `[offset, offset + data_size)` of the given buffer. The
cursor never moves past the end of that region, whatever the buffer holds
beyond it.
"""

from __future__ import annotations

import struct
from typing import List, Optional, Union

from loguru import logger

from rrr.decoding.value import ArrayValue, Scalar, ScalarKind, StructValue, Value
from rrr.diagnostics import ByteOffset, DecodeError, DecodeErrorKind, HeaderError, HeaderErrorKind
from rrr.schema.types import ArrayType, Primitive, PrimitiveKind, Schema, StructRef, TypeSpec

Buffer = Union[bytes, bytearray, memoryview]

_FLOATS = {
    2: ("e", ScalarKind.FLOAT16),
    4: ("f", ScalarKind.FLOAT32),
    8: ("d", ScalarKind.FLOAT64),
}


class _Walk:
    """Cursor and field path of one decode call."""

    __slots__ = ("schema", "buf", "pos", "end", "path")

    def __init__(self, schema: Schema, buf: memoryview, pos: int, end: int):
        self.schema = schema
        self.buf = buf
        self.pos = pos
        self.end = end
        self.path: List[str] = [schema.root_struct.name]

    @property
    def remaining(self) -> int:
        return self.end - self.pos

    def where(self) -> str:
        return "".join(self.path)

    def take(self, n: int) -> memoryview:
        if n > self.remaining:
            raise DecodeError.at(
                DecodeErrorKind.TRUNCATED,
                ByteOffset(self.pos),
                f"{self.where()} needs {n} byte(s), {self.remaining} left in payload",
            )
        start = self.pos
        self.pos += n
        return self.buf[start : self.pos]

    def value(self, spec: TypeSpec) -> Value:
        if isinstance(spec, Primitive):
            return self.primitive(spec)
        if isinstance(spec, StructRef):
            return self.struct(spec)
        if spec.length is None:
            return self.infinite_array(spec)
        items = []
        for i in range(spec.length):
            self.path.append(f"[{i}]")
            items.append(self.value(spec.element))
            self.path.pop()
        return ArrayValue(items)

    def struct(self, ref: StructRef) -> StructValue:
        out = StructValue()
        for fld in self.schema.struct(ref).fields:
            self.path.append(f".{fld.name}")
            if self.schema.is_padding(fld.type):
                self.skip(fld.type)
            else:
                out.fields[fld.name] = self.value(fld.type)
            self.path.pop()
        return out

    def infinite_array(self, spec: ArrayType) -> ArrayValue:
        width = self.schema.width_of(spec.element)
        items = []
        while self.remaining > 0:
            if self.remaining < width:
                raise DecodeError.at(
                    DecodeErrorKind.TRUNCATED,
                    ByteOffset(self.pos),
                    f"{self.where()} ends with a partial element: "
                    f"{self.remaining} byte(s) left, element needs {width}",
                )
            self.path.append(f"[{len(items)}]")
            items.append(self.value(spec.element))
            self.path.pop()
        return ArrayValue(items)

    def skip(self, spec: TypeSpec) -> None:
        width = self.schema.width_of(spec)
        if width is None:
            unit = self.schema.width_of(spec.element)
            if self.remaining % unit:
                raise DecodeError.at(
                    DecodeErrorKind.TRUNCATED,
                    ByteOffset(self.end - self.remaining % unit),
                    f"{self.where()} ends with partial padding",
                )
            width = self.remaining
        self.take(width)

    def primitive(self, spec: Primitive) -> Scalar:
        start = self.pos
        raw = self.take(spec.width)
        kind = spec.kind
        if kind is PrimitiveKind.UINT or kind is PrimitiveKind.INT:
            n = int.from_bytes(raw, spec.byte_order, signed=kind is PrimitiveKind.INT)
            return Scalar(n, ScalarKind.INT)
        if kind is PrimitiveKind.FLOAT:
            fmt, skind = _FLOATS[spec.width]
            order = "<" if spec.byte_order == "little" else ">"
            return Scalar(struct.unpack(order + fmt, raw)[0], skind)
        if kind is PrimitiveKind.NSTR:
            try:
                return Scalar(bytes(raw).decode(spec.encoding), ScalarKind.STRING)
            except UnicodeDecodeError as e:
                raise DecodeError.at(
                    DecodeErrorKind.INVALID_ENCODING,
                    ByteOffset(start + e.start),
                    f"{self.where()} is not valid {spec.encoding}",
                    e,
                ) from e
        return Scalar(bytes(raw), ScalarKind.BYTES)


def decode(
    schema: Schema, data: Buffer, *, offset: int = 0, data_size: Optional[int] = None
) -> StructValue:
    """Decode one payload against the schema's root struct.

    Args:
        schema: Compiled schema.
        data: Buffer holding the payload; may extend beyond it.
        offset: Start of the payload within `data`.
        data_size: Payload length declared by the header. None decodes up to
            the end of `data`.

    Raises:
        HeaderError: TRUNCATED_PAYLOAD if `data` holds fewer than `data_size`
            bytes after `offset`.
        DecodeError: on truncation or invalid text inside the payload. Offsets
            are relative to the start of `data`.
    """
    view = data if isinstance(data, memoryview) else memoryview(data)
    available = max(len(view) - offset, 0)
    if data_size is None:
        end = len(view)
    elif available < data_size:
        raise HeaderError.at(
            HeaderErrorKind.TRUNCATED_PAYLOAD,
            ByteOffset(len(view)),
            f"data_size declares {data_size} byte(s), only {available} available",
        )
    else:
        end = offset + data_size

    walk = _Walk(schema, view, offset, end)
    value = walk.struct(StructRef(schema.root))
    if walk.remaining:
        logger.debug(
            "{n} payload byte(s) left unread after {root}",
            n=walk.remaining,
            root=schema.root_struct.name,
        )
    return value
