# rrr/reporting/console.py
"""
Console rendering: located error reports, layout reason matrix, schema tree.
"""
from __future__ import annotations

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from rrr.diagnostics import (
    HeaderError,
    RecordError,
    SchemaError,
    TextPosition,
    render_snippet,
)
from rrr.schema.display import type_name
from rrr.schema.types import ArrayType, Schema, StructRef

console = Console()
err_console = Console(stderr=True)


def _render_reason_matrix(err: HeaderError) -> None:
    """Render why each header layout rejected the data."""
    if not err.mismatches:
        return
    rt = Table(
        title="Reason Matrix (Header Layout Mismatch Explanations)",
        box=box.SIMPLE_HEAVY,
        show_lines=False,
    )
    rt.add_column("Layout", style="bold")
    rt.add_column("Reason")
    for entry in err.mismatches:
        rt.add_row(Text(entry.layout), Text(entry.reason))
    err_console.print(rt)


def render_error(err: RecordError) -> None:
    """Print a located error report to stderr."""
    headline = Text("error", style="bold red")
    if isinstance(err, SchemaError):
        headline.append(": failed to parse the schema")
    err_console.print(headline, soft_wrap=True)

    reason = Text("reason", style="bold yellow")
    reason.append(": ", style="bold")
    reason.append(err.diagnostic.message, style="bold")
    if err.position is not None:
        reason.append(f" (at {err.position})", style="dim")
    err_console.print(reason, soft_wrap=True)

    if isinstance(err, SchemaError) and err.schema_text is not None and isinstance(err.position, TextPosition):
        err_console.print()
        err_console.print(Text(render_snippet(err.schema_text, err.position)), end="", soft_wrap=True)

    for cause in err.diagnostic.causes():
        err_console.print(Text(f"caused by: {cause}", style="dim"), soft_wrap=True)

    if isinstance(err, HeaderError):
        _render_reason_matrix(err)


def build_schema_tree(schema: Schema) -> Tree:
    """Expanded tree of the root struct; struct-typed fields are unfolded."""
    root = schema.root_struct
    tree = Tree(Text(root.name, style="bold magenta"))

    def add(node: Tree, ref: StructRef) -> None:
        for f in schema.struct(ref).fields:
            label = Text(f.name, style="bold yellow")
            label.append(": ")
            label.append(type_name(schema, f.type), style="cyan")
            child = node.add(label)
            inner = f.type.element if isinstance(f.type, ArrayType) else f.type
            if isinstance(inner, StructRef):
                add(child, inner)

    add(tree, StructRef(root.index))
    return tree


def render_schema_tree(schema: Schema, *, paged: bool = False) -> None:
    tree = build_schema_tree(schema)
    if paged:
        with console.pager(styles=True):
            console.print(tree)
    else:
        console.print(tree)
