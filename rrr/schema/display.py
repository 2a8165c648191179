# rrr/schema/display.py
"""
Text rendering of compiled schemas.
"""

from __future__ import annotations

from typing import List

from rrr.schema.types import ArrayType, Primitive, Schema, StructRef, TypeSpec


def type_name(schema: Schema, spec: TypeSpec) -> str:
    """Schema-language spelling of a type, e.g. `Reading[4]` or `U8[+]`."""
    if isinstance(spec, Primitive):
        return spec.keyword
    if isinstance(spec, StructRef):
        return schema.struct(spec).name
    suffix = "+" if spec.length is None else str(spec.length)
    return f"{type_name(schema, spec.element)}[{suffix}]"


def format_schema(schema: Schema) -> str:
    """Canonical schema text; compiles back to a structurally equal schema."""
    blocks: List[str] = []
    for st in schema.structs:
        lines = [f"struct {st.name} {{"]
        lines.extend(f"    {f.name}: {type_name(schema, f.type)}" for f in st.fields)
        lines.append("}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks) + "\n"


def field_count(schema: Schema) -> int:
    """Number of lines the expanded tree view of the root struct needs."""

    def count(spec: TypeSpec) -> int:
        if isinstance(spec, StructRef):
            return 1 + sum(count(f.type) for f in schema.struct(spec).fields)
        if isinstance(spec, ArrayType) and isinstance(spec.element, StructRef):
            return count(spec.element)
        return 1

    return count(StructRef(schema.root))
