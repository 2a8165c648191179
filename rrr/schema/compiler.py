# rrr/schema/compiler.py
"""
Schema compiler: schema text -> `Schema`.

Compilation runs in three passes:

1. parse the token stream into raw struct declarations,
2. resolve struct names to indices in declaration order and reject cycles,
3. compute static widths and enforce the unbounded-type placement rules
   (an infinite array, or a struct ending in one, may only be the last field
   of a struct and may never be an array element).
"""

from __future__ import annotations

import codecs
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from loguru import logger

from rrr.diagnostics import SchemaError, SchemaErrorKind, TextPosition
from rrr.schema.lexer import T_EOF, T_IDENT, T_INT, Token, tokenize
from rrr.schema.types import (
    ArrayType,
    Field,
    Primitive,
    PrimitiveKind,
    Schema,
    StructRef,
    StructType,
    TypeSpec,
)

_NUMERIC_RE = re.compile(r"^([UIF])([0-9]+)(LE|BE)?$")

_NUMERIC_WIDTHS = {
    PrimitiveKind.UINT: (8, 16, 32, 64),
    PrimitiveKind.INT: (8, 16, 32, 64),
    PrimitiveKind.FLOAT: (16, 32, 64),
}

# Type names used by older schema documents.
ALIASES: Dict[str, str] = {
    "UINT8": "U8",
    "UINT16": "U16",
    "UINT32": "U32",
    "UINT64": "U64",
    "INT8": "I8",
    "INT16": "I16",
    "INT32": "I32",
    "INT64": "I64",
    "FLOAT32": "F32",
    "FLOAT64": "F64",
}

PARAMETERIZED = {
    "NSTR": PrimitiveKind.NSTR,
    "BYTES": PrimitiveKind.BYTES,
    "PAD": PrimitiveKind.PAD,
}


@dataclass
class _RawType:
    """A field type before struct names are resolved."""

    base: Union[Primitive, str]
    position: TextPosition
    length: Optional[int] = None
    is_array: bool = False
    suffix_position: Optional[TextPosition] = None


@dataclass
class _RawField:
    name: str
    position: TextPosition
    type: _RawType


@dataclass
class _RawStruct:
    name: str
    position: TextPosition
    fields: List[_RawField] = field(default_factory=list)


def is_builtin(name: str) -> bool:
    return name in ALIASES or name in PARAMETERIZED or _NUMERIC_RE.match(name) is not None


class _Parser:
    def __init__(self, text: str):
        self.tokens = tokenize(text)
        self.pos = 0

    def peek(self) -> Token:
        return self.tokens[self.pos]

    def next(self) -> Token:
        tok = self.tokens[self.pos]
        if tok.kind != T_EOF:
            self.pos += 1
        return tok

    def _unexpected(self, tok: Token, expected: str) -> SchemaError:
        if tok.kind == T_EOF:
            return SchemaError.at(SchemaErrorKind.UNEXPECTED_EOF, tok.position, f"expected {expected}")
        return SchemaError.at(
            SchemaErrorKind.UNEXPECTED_TOKEN, tok.position, f"expected {expected}, found {tok.text!r}"
        )

    def expect_punct(self, char: str) -> Token:
        tok = self.next()
        if not tok.is_punct(char):
            raise self._unexpected(tok, repr(char))
        return tok

    def expect_ident(self, what: str) -> Token:
        tok = self.next()
        if tok.kind != T_IDENT:
            raise self._unexpected(tok, what)
        return tok

    def parse(self) -> List[_RawStruct]:
        structs: List[_RawStruct] = []
        while self.peek().kind != T_EOF:
            structs.append(self.parse_struct())
        if not structs:
            raise SchemaError.at(SchemaErrorKind.EMPTY_SCHEMA, self.peek().position)
        return structs

    def parse_struct(self) -> _RawStruct:
        kw = self.next()
        if kw.kind != T_IDENT or kw.text != "struct":
            raise self._unexpected(kw, "'struct'")
        name = self.expect_ident("a struct name")
        if is_builtin(name.text):
            raise SchemaError.at(
                SchemaErrorKind.UNEXPECTED_TOKEN,
                name.position,
                f"{name.text!r} is a built-in type name",
            )
        self.expect_punct("{")
        st = _RawStruct(name=name.text, position=name.position)
        seen: Dict[str, TextPosition] = {}
        while not self.peek().is_punct("}"):
            fld = self.parse_field()
            if fld.name in seen:
                raise SchemaError.at(
                    SchemaErrorKind.DUPLICATE_FIELD,
                    fld.position,
                    f"{fld.name!r} already declared in struct {st.name!r} at {seen[fld.name]}",
                )
            seen[fld.name] = fld.position
            st.fields.append(fld)
            if self.peek().is_punct(",") or self.peek().is_punct(";"):
                self.next()
        self.expect_punct("}")
        return st

    def parse_field(self) -> _RawField:
        name = self.expect_ident("a field name or '}'")
        self.expect_punct(":")
        ftype = self.parse_type()
        if self.peek().is_punct("["):
            self.parse_array_suffix(ftype)
        return _RawField(name=name.text, position=name.position, type=ftype)

    def parse_type(self) -> _RawType:
        tok = self.expect_ident("a type")
        text = ALIASES.get(tok.text, tok.text)
        if text in PARAMETERIZED:
            return _RawType(base=self.parse_parameters(PARAMETERIZED[text], tok), position=tok.position)
        m = _NUMERIC_RE.match(text)
        if m is None:
            return _RawType(base=tok.text, position=tok.position)

        kind = PrimitiveKind(m.group(1))
        bits = int(m.group(2))
        if bits not in _NUMERIC_WIDTHS[kind]:
            raise SchemaError.at(
                SchemaErrorKind.MALFORMED_LITERAL,
                tok.position,
                f"{tok.text!r}: width must be one of {_NUMERIC_WIDTHS[kind]} bits",
            )
        order = "little" if m.group(3) == "LE" else "big"
        return _RawType(base=Primitive(kind, bits // 8, order), position=tok.position)

    def parse_parameters(self, kind: PrimitiveKind, keyword: Token) -> Primitive:
        self.expect_punct("<")
        width = self.parse_literal("a width")
        if width < 1:
            raise SchemaError.at(
                SchemaErrorKind.MALFORMED_LITERAL, keyword.position, f"{keyword.text} width must be positive"
            )
        encoding = None
        if self.peek().is_punct(","):
            self.next()
            enc = self.expect_ident("an encoding name")
            if kind is not PrimitiveKind.NSTR:
                raise SchemaError.at(
                    SchemaErrorKind.MALFORMED_LITERAL, enc.position, f"{keyword.text} takes no encoding"
                )
            try:
                info = codecs.lookup(enc.text)
            except LookupError as e:
                raise SchemaError.at(
                    SchemaErrorKind.MALFORMED_LITERAL, enc.position, f"unknown encoding {enc.text!r}", e
                ) from e
            # bytes.decode refuses bytes-to-bytes codecs such as base64 or zlib
            if not getattr(info, "_is_text_encoding", True):
                raise SchemaError.at(
                    SchemaErrorKind.MALFORMED_LITERAL, enc.position, f"{enc.text!r} is not a text encoding"
                )
            encoding = info.name
        elif kind is PrimitiveKind.NSTR:
            encoding = "utf-8"
        self.expect_punct(">")
        return Primitive(kind, width, encoding=encoding)

    def parse_literal(self, what: str) -> int:
        tok = self.next()
        if tok.kind == T_EOF:
            raise self._unexpected(tok, what)
        if tok.kind != T_INT:
            raise SchemaError.at(
                SchemaErrorKind.MALFORMED_LITERAL, tok.position, f"expected {what}, found {tok.text!r}"
            )
        return int(tok.text)

    def parse_array_suffix(self, ftype: _RawType) -> None:
        open_tok = self.expect_punct("[")
        ftype.is_array = True
        ftype.suffix_position = open_tok.position
        if self.peek().is_punct("+"):
            self.next()
            ftype.length = None
        else:
            ftype.length = self.parse_literal("an array length or '+'")
        self.expect_punct("]")


class _Resolver:
    def __init__(self, raw: List[_RawStruct]):
        self.raw = raw
        self.index: Dict[str, int] = {}
        for i, st in enumerate(raw):
            if st.name in self.index:
                first = raw[self.index[st.name]]
                raise SchemaError.at(
                    SchemaErrorKind.DUPLICATE_STRUCT,
                    st.position,
                    f"{st.name!r} already declared at {first.position}",
                )
            self.index[st.name] = i
        self.widths: Dict[int, Optional[int]] = {}

    def spec_of(self, rtype: _RawType) -> TypeSpec:
        if isinstance(rtype.base, Primitive):
            base: TypeSpec = rtype.base
        elif rtype.base in self.index:
            base = StructRef(self.index[rtype.base])
        else:
            raise SchemaError.at(SchemaErrorKind.UNKNOWN_TYPE, rtype.position, repr(rtype.base))
        if rtype.is_array:
            return ArrayType(element=base, length=rtype.length)
        return base

    def check_cycles(self, specs: List[List[TypeSpec]]) -> None:
        WHITE, GREY, BLACK = 0, 1, 2
        color = [WHITE] * len(self.raw)
        path: List[int] = []

        def refs(i: int):
            for fld, spec in zip(self.raw[i].fields, specs[i]):
                inner = spec.element if isinstance(spec, ArrayType) else spec
                if isinstance(inner, StructRef):
                    yield fld, inner.index

        def visit(i: int) -> None:
            color[i] = GREY
            path.append(i)
            for fld, j in refs(i):
                if color[j] == GREY:
                    cycle = path[path.index(j) :] + [j]
                    names = " -> ".join(self.raw[k].name for k in cycle)
                    raise SchemaError.at(SchemaErrorKind.CYCLIC_REFERENCE, fld.type.position, names)
                if color[j] == WHITE:
                    visit(j)
            path.pop()
            color[i] = BLACK

        for i in range(len(self.raw)):
            if color[i] == WHITE:
                visit(i)

    def width_of(self, spec: TypeSpec, specs: List[List[TypeSpec]]) -> Optional[int]:
        if isinstance(spec, Primitive):
            return spec.width
        if isinstance(spec, StructRef):
            return self.struct_width(spec.index, specs)
        if spec.length is None:
            return None
        inner = self.width_of(spec.element, specs)
        return None if inner is None else inner * spec.length

    def struct_width(self, i: int, specs: List[List[TypeSpec]]) -> Optional[int]:
        if i in self.widths:
            return self.widths[i]
        st = self.raw[i]
        total: Optional[int] = 0
        unbounded: Optional[_RawField] = None
        for fld, spec in zip(st.fields, specs[i]):
            if unbounded is not None:
                raise SchemaError.at(
                    SchemaErrorKind.MISPLACED_INFINITE_ARRAY,
                    fld.position,
                    f"field {fld.name!r} follows unbounded field {unbounded.name!r} in struct {st.name!r}",
                )
            if isinstance(spec, ArrayType):
                elem = self.width_of(spec.element, specs)
                if elem is None:
                    raise SchemaError.at(
                        SchemaErrorKind.NESTED_INFINITE_ARRAY,
                        fld.type.position,
                        f"element of {fld.name!r} has no fixed width",
                    )
                if elem == 0:
                    raise SchemaError.at(
                        SchemaErrorKind.ZERO_WIDTH_ELEMENT, fld.type.suffix_position, repr(fld.name)
                    )
            w = self.width_of(spec, specs)
            if w is None:
                unbounded = fld
                total = None
            else:
                total += w
        self.widths[i] = total
        return total

    def resolve(self, root: Optional[str]) -> Schema:
        specs = [[self.spec_of(f.type) for f in st.fields] for st in self.raw]
        self.check_cycles(specs)
        structs = []
        for i, st in enumerate(self.raw):
            width = self.struct_width(i, specs)
            fields = tuple(
                Field(name=f.name, type=spec, position=f.position) for f, spec in zip(st.fields, specs[i])
            )
            structs.append(
                StructType(name=st.name, index=i, fields=fields, width=width, position=st.position)
            )
        if root is None:
            root_index = len(structs) - 1
        elif root in self.index:
            root_index = self.index[root]
        else:
            raise SchemaError.at(SchemaErrorKind.UNKNOWN_ROOT, None, repr(root))
        return Schema(structs=tuple(structs), root=root_index)


def compile_schema(schema_text: str, *, root: Optional[str] = None) -> Schema:
    """Compile schema text into an immutable `Schema`.

    Args:
        schema_text: One or more `struct Name { field: TYPE ... }` declarations.
        root: Name of the struct describing a whole payload. Defaults to the
            last declared struct.

    Raises:
        SchemaError: with the line/column of the offending token.
    """
    raw = _Parser(schema_text).parse()
    schema = _Resolver(raw).resolve(root)
    logger.debug(
        "Compiled schema with {n} struct(s), root={root}",
        n=len(schema.structs),
        root=schema.root_struct.name,
    )
    return schema
