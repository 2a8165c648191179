from __future__ import annotations

from rrr.diagnostics import (
    ByteOffset,
    DecodeError,
    DecodeErrorKind,
    SchemaError,
    SchemaErrorKind,
    TextPosition,
    locate,
    render_snippet,
)


def test_positions_render_human_readable():
    assert str(TextPosition(line=2, column=5)) == "line 2, column 5"
    assert str(ByteOffset(17)) == "byte offset 17"


def test_error_message_carries_position_and_kind():
    e = SchemaError.at(SchemaErrorKind.UNKNOWN_TYPE, TextPosition(2, 5), "'Foo'")
    assert e.kind is SchemaErrorKind.UNKNOWN_TYPE
    assert e.detail == "'Foo'"
    assert e.position == TextPosition(2, 5)
    assert str(e) == "line 2, column 5: unknown type reference: 'Foo'"


def test_error_without_position():
    e = SchemaError.at(SchemaErrorKind.UNKNOWN_ROOT, None, "'Nope'")
    assert e.position is None
    assert str(e) == "unknown root struct: 'Nope'"


def test_cause_chain_is_kept():
    try:
        try:
            raise OSError("disk gone")
        except OSError as inner:
            raise ValueError("bad read") from inner
    except ValueError as outer:
        cause = outer

    diag = locate(ByteOffset(3), "truncated data", cause)
    assert diag.causes() == ["bad read", "disk gone"]
    rendered = diag.render().splitlines()
    assert rendered[0] == "byte offset 3: truncated data"
    assert rendered[1:] == ["caused by: bad read", "caused by: disk gone"]

    err = DecodeError.at(DecodeErrorKind.TRUNCATED, ByteOffset(3), "x", cause)
    assert "caused by: disk gone" in str(err)


def test_snippet_marks_token():
    text = "struct A {\n    x: Foo\n}"
    out = render_snippet(text, TextPosition(line=2, column=8, length=3))
    first, second = out.splitlines()
    assert first == " " * 12 + "x: Foo"
    assert second == " " * 15 + "^^^"


def test_snippet_clips_long_lines():
    line = "a" * 100 + "BAD" + "b" * 100
    out = render_snippet(line, TextPosition(line=1, column=101, length=3))
    first, second = out.splitlines()
    assert first.startswith("     .. ")
    assert first.endswith(" ..")
    assert second.index("^") == first.index("BAD")
    assert second.strip() == "^^^"
