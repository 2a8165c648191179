# rrr/cli.py
"""
cli.py

Rich console CLI:
- dump:    decode a record and print its data as JSON.
- header:  print the header fields of a record as JSON.
- schema:  print the compiled schema, as text or as a tree.
- version: show the package version.
"""
from __future__ import annotations

import argparse
import os
import sys
from typing import List, Optional

from rich.markup import escape

from rrr import __version__
from rrr.diagnostics import RecordError, SourceError, SourceErrorKind
from rrr.io.file_reader import LocalFileSource
from rrr.logging import configure_logging
from rrr.reader import ReaderOptions, RecordReader
from rrr.reporting.console import console, err_console, render_error, render_schema_tree
from rrr.reporting.json_reporter import header_to_json, to_json, write_json
from rrr.schema.display import field_count, format_schema


def _count(text: str) -> int:
    """argparse type for record indexes and byte counts."""
    try:
        n = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: {text!r}") from None
    if n < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {n}")
    return n


def _add_common(sp: argparse.ArgumentParser) -> None:
    sp.add_argument("path", help="Path to the record file")
    sp.add_argument(
        "-r", "--record", type=_count, default=0, metavar="N",
        help="Read the N-th record (0-based) of a file holding several",
    )
    sp.add_argument("--debug", action="store_true", help="Enable debug logging")


def _add_schema_flags(sp: argparse.ArgumentParser) -> None:
    sp.add_argument(
        "--schema", type=str, default=None, metavar="FILE",
        help="Read the schema from FILE instead of the header's format field",
    )
    sp.add_argument(
        "--root", type=str, default=None, metavar="NAME",
        help="Root struct (defaults to the last declared struct)",
    )


def _add_bytes(sp: argparse.ArgumentParser) -> None:
    sp.add_argument(
        "-b", "--bytes", type=_count, default=None, metavar="N",
        help="Only look at the first N bytes of the file",
    )


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="rrr",
        description="Schema-driven reader for self-describing binary records.",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    sub = p.add_subparsers(dest="cmd", title="Available Commands", metavar="<command>")

    sp_dump = sub.add_parser("dump", help="Decode a record and print its data as JSON")
    _add_common(sp_dump)
    _add_schema_flags(sp_dump)
    sp_dump.add_argument(
        "--ignore-size", action="store_true",
        help="Decode up to the end of the file instead of data_size bytes",
    )
    sp_dump.add_argument("--pretty", action="store_true", help="Indent the JSON output")
    sp_dump.add_argument(
        "--json-out", type=str, default=None, metavar="FILE",
        help="Also write the indented JSON to FILE",
    )

    sp_header = sub.add_parser("header", help="Print the header fields of a record as JSON")
    _add_common(sp_header)
    _add_bytes(sp_header)

    sp_schema = sub.add_parser("schema", help="Print the compiled schema of a record")
    _add_common(sp_schema)
    _add_schema_flags(sp_schema)
    _add_bytes(sp_schema)
    sp_schema.add_argument(
        "-t", "--tree", action="store_true",
        help="Show the root struct as an expanded tree (paged when taller than the terminal)",
    )

    sub.add_parser("version", help="Show the version of rrr")

    return p


def _check_source(path: str) -> bool:
    if "://" in path:
        err_console.print(f"[red]Unsupported source:[/red] {escape(path)} (only local files are read)")
        return False
    if not os.path.exists(path):
        err_console.print(f"[red]File not found:[/red] {escape(path)}")
        return False
    return True


def _options(args: argparse.Namespace, **kw) -> ReaderOptions:
    opts = ReaderOptions(
        root=getattr(args, "root", None),
        max_bytes=getattr(args, "bytes", None),
        **kw,
    )
    schema_file = getattr(args, "schema", None)
    if schema_file:
        try:
            with open(schema_file, "r", encoding="utf-8") as f:
                opts.schema_text = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise SourceError.at(SourceErrorKind.UNREADABLE, None, schema_file, e) from e
    return opts


def _dump(args: argparse.Namespace) -> int:
    opts = _options(args, ignore_data_size=args.ignore_size)
    with LocalFileSource(args.path) as src:
        record = RecordReader(src, opts).read(args.record)
    # plain write: rich would wrap long JSON lines
    sys.stdout.write(to_json(record.value, indent=2 if args.pretty else None) + "\n")
    if args.json_out:
        write_json(record.value, args.json_out)
        err_console.print(f"[dim]Wrote JSON → {escape(args.json_out)}[/dim]")
    return 0


def _header(args: argparse.Namespace) -> int:
    opts = _options(args, read_body=False)
    with LocalFileSource(args.path) as src:
        header = RecordReader(src, opts).read_header(args.record)
    sys.stdout.write(header_to_json(header) + "\n")
    return 0


def _schema(args: argparse.Namespace) -> int:
    opts = _options(args, read_body=False)
    with LocalFileSource(args.path) as src:
        record = RecordReader(src, opts).read(args.record)
    if args.tree:
        paged = console.is_terminal and field_count(record.schema) > console.height
        render_schema_tree(record.schema, paged=paged)
    else:
        sys.stdout.write(format_schema(record.schema))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.cmd:
        parser.print_help()
        return 0

    if args.cmd == "version":
        console.print(f"rrr version {__version__}")
        return 0

    configure_logging(debug=args.debug)
    if not _check_source(args.path):
        return 2
    if getattr(args, "schema", None) and not os.path.exists(args.schema):
        err_console.print(f"[red]Schema file not found:[/red] {escape(args.schema)}")
        return 2

    commands = {"dump": _dump, "header": _header, "schema": _schema}
    try:
        return commands[args.cmd](args)
    except RecordError as e:
        render_error(e)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
