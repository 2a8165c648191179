# rrr/reporting/json_reporter.py
"""
JSON rendering of decoded values and headers.
"""

from __future__ import annotations

import json
import math
import struct
from typing import List, Optional

from rrr.decoding.value import Scalar, ScalarKind, StructValue, Value
from rrr.formats.header import Header

_PACK_FORMATS = {ScalarKind.FLOAT16: "<e", ScalarKind.FLOAT32: "<f"}


def escape_str(text: str) -> str:
    """JSON string escaping (without the surrounding quotes)."""
    return json.dumps(text, ensure_ascii=False)[1:-1]


def _narrow(x: float, fmt: str) -> Optional[float]:
    try:
        return struct.unpack(fmt, struct.pack(fmt, x))[0]
    except OverflowError:
        return None


def format_float(x: float, kind: ScalarKind = ScalarKind.FLOAT64) -> str:
    """Shortest decimal text that reads back as the same value at its width."""
    if math.isnan(x):
        return '"NaN"'
    if math.isinf(x):
        return '"Infinity"' if x > 0 else '"-Infinity"'
    fmt = _PACK_FORMATS.get(kind)
    if fmt is None:
        return repr(x)
    for digits in range(1, 18):
        candidate = float(f"{x:.{digits}g}")
        if _narrow(candidate, fmt) == x:
            return repr(candidate)
    return repr(x)


def format_scalar(s: Scalar) -> str:
    if s.kind is ScalarKind.INT:
        return str(s.value)
    if s.kind is ScalarKind.STRING:
        return f'"{escape_str(s.value)}"'
    if s.kind is ScalarKind.BYTES:
        return f'"{s.value.hex()}"'
    return format_float(s.value, s.kind)


def _write(value: Value, out: List[str], indent: Optional[int], level: int) -> None:
    if isinstance(value, Scalar):
        out.append(format_scalar(value))
        return

    if isinstance(value, StructValue):
        opening, closing = "{", "}"
        entries = list(value.fields.items())
    else:
        opening, closing = "[", "]"
        entries = [(None, v) for v in value.items]

    if not entries:
        out.append(opening + closing)
        return

    if indent is None:
        inner_sep, item_sep, key_sep, outer_sep = "", ",", ":", ""
    else:
        inner_sep = "\n" + " " * (indent * (level + 1))
        item_sep = "," + inner_sep
        key_sep = ": "
        outer_sep = "\n" + " " * (indent * level)

    out.append(opening + inner_sep)
    for i, (key, child) in enumerate(entries):
        if i:
            out.append(item_sep)
        if key is not None:
            out.append(f'"{escape_str(key)}"{key_sep}')
        _write(child, out, indent, level + 1)
    out.append(outer_sep + closing)


def to_json(value: Value, *, indent: Optional[int] = None) -> str:
    """Serialize a value tree.

    Struct fields keep declaration order. With `indent=None` the output has no
    whitespace at all.
    """
    out: List[str] = []
    _write(value, out, indent, 0)
    return "".join(out)


def header_to_json(header: Header) -> str:
    """Header fields as a JSON object sorted by key."""
    return json.dumps(dict(sorted(header.fields.items())), ensure_ascii=False, separators=(",", ":"))


def write_json(value: Value, path: str) -> None:
    """Write a value tree to a file as pretty JSON."""
    with open(path, "w", encoding="utf-8") as f:
        f.write(to_json(value, indent=2))
        f.write("\n")
