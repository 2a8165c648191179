# rrr/decoding/value.py
"""
Decoded value tree.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Union


class ScalarKind(str, Enum):
    INT = "int"
    FLOAT16 = "float16"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    STRING = "string"
    BYTES = "bytes"


@dataclass(frozen=True)
class Scalar:
    value: Union[int, float, str, bytes]
    kind: ScalarKind


@dataclass
class StructValue:
    fields: Dict[str, "Value"] = field(default_factory=dict)  # declaration order


@dataclass
class ArrayValue:
    items: List["Value"] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.items)


Value = Union[Scalar, StructValue, ArrayValue]


def to_python(value: Value) -> Any:
    """Plain dict/list/scalar rendition of a value tree (bytes stay bytes)."""
    if isinstance(value, Scalar):
        return value.value
    if isinstance(value, StructValue):
        return {k: to_python(v) for k, v in value.fields.items()}
    return [to_python(v) for v in value.items]
