# rrr/schema/types.py
"""
Compiled schema structures.

Struct types live in an index-based table (`Schema.structs`); fields refer to
other structs through `StructRef(index)` so the compiled form never contains
reference cycles.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

from rrr.diagnostics import TextPosition


class PrimitiveKind(str, Enum):
    UINT = "U"
    INT = "I"
    FLOAT = "F"
    NSTR = "NSTR"
    BYTES = "BYTES"
    PAD = "PAD"


@dataclass(frozen=True)
class Primitive:
    kind: PrimitiveKind
    width: int
    byte_order: str = "big"  # 'big' | 'little'
    encoding: Optional[str] = None  # only for NSTR

    @property
    def keyword(self) -> str:
        if self.kind in (PrimitiveKind.UINT, PrimitiveKind.INT, PrimitiveKind.FLOAT):
            suffix = "LE" if self.byte_order == "little" else ""
            return f"{self.kind.value}{self.width * 8}{suffix}"
        if self.kind is PrimitiveKind.NSTR and self.encoding not in (None, "utf-8"):
            return f"NSTR<{self.width}, {self.encoding}>"
        return f"{self.kind.value}<{self.width}>"


@dataclass(frozen=True)
class StructRef:
    index: int


@dataclass(frozen=True)
class ArrayType:
    element: "TypeSpec"
    length: Optional[int]  # None = infinite, decoded until the region is exhausted

    @property
    def infinite(self) -> bool:
        return self.length is None


TypeSpec = Union[Primitive, StructRef, ArrayType]


@dataclass(frozen=True)
class Field:
    name: str
    type: TypeSpec
    position: TextPosition


@dataclass(frozen=True)
class StructType:
    name: str
    index: int
    fields: Tuple[Field, ...]
    width: Optional[int]  # None when the struct ends in an unbounded field
    position: TextPosition


@dataclass(frozen=True)
class Schema:
    """A compiled schema: the struct table and the root struct's index."""

    structs: Tuple[StructType, ...]
    root: int

    @property
    def root_struct(self) -> StructType:
        return self.structs[self.root]

    def struct(self, ref: StructRef) -> StructType:
        return self.structs[ref.index]

    def width_of(self, spec: TypeSpec) -> Optional[int]:
        """Static byte width of `spec`, or None if it is unbounded."""
        if isinstance(spec, Primitive):
            return spec.width
        if isinstance(spec, StructRef):
            return self.structs[spec.index].width
        if spec.length is None:
            return None
        inner = self.width_of(spec.element)
        return None if inner is None else inner * spec.length

    def is_padding(self, spec: TypeSpec) -> bool:
        """Padding fields (and arrays of padding) produce no value."""
        if isinstance(spec, Primitive):
            return spec.kind is PrimitiveKind.PAD
        if isinstance(spec, ArrayType):
            return self.is_padding(spec.element)
        return False
