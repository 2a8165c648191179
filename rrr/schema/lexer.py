# rrr/schema/lexer.py
"""
Tokenizer for schema text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List

from rrr.diagnostics import SchemaError, SchemaErrorKind, TextPosition

# Token kinds
T_IDENT = "IDENT"
T_INT = "INT"
T_PUNCT = "PUNCT"
T_EOF = "EOF"

_TOKEN_RE = re.compile(
    r"(?P<ws>[ \t\r\n]+)"
    r"|(?P<comment>\#[^\n]*)"
    r"|(?P<ident>[A-Za-z_][A-Za-z0-9_\-]*)"
    r"|(?P<int>[0-9]+)"
    r"|(?P<punct>[{}:\[\]<>,;+])"
)


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    position: TextPosition

    def is_punct(self, char: str) -> bool:
        return self.kind == T_PUNCT and self.text == char


def tokenize(text: str) -> List[Token]:
    """Split schema text into tokens, ending with a single EOF token."""
    tokens: List[Token] = []
    line, line_start, off = 1, 0, 0
    while off < len(text):
        m = _TOKEN_RE.match(text, off)
        pos = TextPosition(line=line, column=off - line_start + 1, offset=off)
        if m is None:
            raise SchemaError.at(SchemaErrorKind.UNKNOWN_TOKEN, pos, repr(text[off]))
        group = m.lastgroup
        value = m.group()
        if group == "ident":
            tokens.append(Token(T_IDENT, value, _sized(pos, len(value))))
        elif group == "int":
            tokens.append(Token(T_INT, value, _sized(pos, len(value))))
        elif group == "punct":
            tokens.append(Token(T_PUNCT, value, pos))
        else:
            newlines = value.count("\n")
            if newlines:
                line += newlines
                line_start = off + value.rindex("\n") + 1
        off = m.end()
    eof = TextPosition(line=line, column=off - line_start + 1, offset=off)
    tokens.append(Token(T_EOF, "", eof))
    return tokens


def _sized(pos: TextPosition, length: int) -> TextPosition:
    return TextPosition(line=pos.line, column=pos.column, offset=pos.offset, length=length)
