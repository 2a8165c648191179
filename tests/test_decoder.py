from __future__ import annotations

import math
import struct

import pytest

from rrr.decoding.decoder import decode
from rrr.decoding.value import ScalarKind, to_python
from rrr.diagnostics import ByteOffset, DecodeError, DecodeErrorKind, HeaderError, HeaderErrorKind
from rrr.reporting.json_reporter import to_json
from rrr.schema.compiler import compile_schema

ITEMS = compile_schema("struct R { items: U8[+] }")


def test_infinite_array_consumes_exactly_data_size():
    data = bytes([1, 2, 3, 4, 5, 6, 7])
    assert to_python(decode(ITEMS, data, data_size=7)) == {"items": [1, 2, 3, 4, 5, 6, 7]}
    assert to_python(decode(ITEMS, data, data_size=6)) == {"items": [1, 2, 3, 4, 5, 6]}


def test_short_data_is_a_truncation_error():
    with pytest.raises(HeaderError) as ei:
        decode(ITEMS, bytes([1, 2, 3, 4, 5]), data_size=7)
    assert ei.value.kind is HeaderErrorKind.TRUNCATED_PAYLOAD


def test_trailing_bytes_do_not_change_the_value():
    schema = compile_schema("struct R { a: U16 rest: U8[+] }")
    payload = b"\x01\x02\x03\x04"
    base = to_json(decode(schema, payload, data_size=4))
    assert to_json(decode(schema, payload + b"\xff" * 9, data_size=4)) == base
    assert base == '{"a":258,"rest":[3,4]}'


def test_decoding_is_deterministic():
    schema = compile_schema("struct P { x: F32 y: F32 }\nstruct R { ps: P[+] }")
    payload = struct.pack(">ffff", 0.1, 2.5, -1.0, 3.25)
    assert to_json(decode(schema, payload)) == to_json(decode(schema, payload))


def test_payload_offset_and_error_offsets_are_absolute():
    schema = compile_schema("struct R { a: U16 b: U32 }")
    data = b"HEAD" + b"\x00\x01" + b"\x00\x00"
    with pytest.raises(DecodeError) as ei:
        decode(schema, data, offset=4, data_size=4)
    err = ei.value
    assert err.kind is DecodeErrorKind.TRUNCATED
    assert err.position == ByteOffset(6)
    assert "R.b" in str(err)


def test_integers_signed_unsigned_and_byte_order():
    schema = compile_schema("struct R { a: U16 b: U16LE c: I8 d: I32 e: U64 }")
    payload = (
        b"\x01\x02"
        + b"\x01\x02"
        + b"\xff"
        + struct.pack(">i", -70000)
        + struct.pack(">Q", 2**64 - 1)
    )
    assert to_python(decode(schema, payload)) == {
        "a": 0x0102,
        "b": 0x0201,
        "c": -1,
        "d": -70000,
        "e": 2**64 - 1,
    }


def test_floats_keep_their_width():
    schema = compile_schema("struct R { h: F16 f: F32LE d: F64 }")
    payload = struct.pack(">e", 1.5) + struct.pack("<f", 0.1) + struct.pack(">d", math.inf)
    value = decode(schema, payload)
    kinds = [value.fields[k].kind for k in ("h", "f", "d")]
    assert kinds == [ScalarKind.FLOAT16, ScalarKind.FLOAT32, ScalarKind.FLOAT64]
    assert value.fields["h"].value == 1.5
    assert math.isinf(value.fields["d"].value)


def test_strings_bytes_and_padding():
    schema = compile_schema("struct R { tag: NSTR<3> pad: PAD<2> raw: BYTES<2> name: NSTR<2, latin-1> }")
    payload = b"abc" + b"\x00\x00" + b"\xde\xad" + b"\xe9t"
    value = decode(schema, payload)
    assert list(value.fields) == ["tag", "raw", "name"]
    assert to_python(value) == {"tag": "abc", "raw": b"\xde\xad", "name": "\xe9t"}


def test_invalid_string_encoding_is_located():
    schema = compile_schema("struct R { a: U8 s: NSTR<3> }")
    with pytest.raises(DecodeError) as ei:
        decode(schema, b"\x01ab\xff")
    assert ei.value.kind is DecodeErrorKind.INVALID_ENCODING
    assert ei.value.position == ByteOffset(3)
    assert isinstance(ei.value.__cause__, UnicodeDecodeError)


def test_partial_trailing_element_is_rejected():
    schema = compile_schema("struct R { xs: U16[+] }")
    with pytest.raises(DecodeError) as ei:
        decode(schema, b"\x00\x01\x00")
    assert ei.value.kind is DecodeErrorKind.TRUNCATED
    assert ei.value.position == ByteOffset(2)


def test_nested_structs_and_fixed_arrays():
    schema = compile_schema(
        "struct Loc { x: I8 y: I8 }\n"
        "struct Reading { loc: Loc v: U8 }\n"
        "struct R { count: U8 readings: Reading[2] tail: U8[+] }"
    )
    payload = b"\x02" + b"\x01\xff\x07" + b"\xfe\x02\x08" + b"\x09"
    assert to_python(decode(schema, payload)) == {
        "count": 2,
        "readings": [
            {"loc": {"x": 1, "y": -1}, "v": 7},
            {"loc": {"x": -2, "y": 2}, "v": 8},
        ],
        "tail": [9],
    }


def test_struct_ending_in_infinite_array_nested_in_root():
    schema = compile_schema("struct Tail { n: U8 xs: U8[+] }\nstruct R { h: U8 t: Tail }")
    assert to_python(decode(schema, b"\x01\x02\x03\x04")) == {"h": 1, "t": {"n": 2, "xs": [3, 4]}}


def test_empty_infinite_array():
    assert to_python(decode(ITEMS, b"", data_size=0)) == {"items": []}


def test_fixed_field_truncation_reports_path():
    schema = compile_schema("struct P { x: U8 y: U8 }\nstruct R { ps: P[2] }")
    with pytest.raises(DecodeError) as ei:
        decode(schema, b"\x01\x02\x03")
    assert "R.ps[1].y" in str(ei.value)
    assert ei.value.position == ByteOffset(3)


def test_unread_remainder_is_tolerated():
    schema = compile_schema("struct R { a: U8 }")
    assert to_python(decode(schema, b"\x01\x02\x03", data_size=3)) == {"a": 1}
