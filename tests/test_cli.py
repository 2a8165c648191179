from __future__ import annotations

import json

import pytest

from rrr.cli import main

SCHEMA = "struct Point { x: I16 y: I16 }\nstruct R { n: U8 points: Point[+] }"
PAYLOAD = b"\x02" + b"\x00\x01\x00\x02" + b"\xff\xff\x00\x03"
EXPECTED = {"n": 2, "points": [{"x": 1, "y": 2}, {"x": -1, "y": 3}]}


@pytest.fixture
def rec_file(tmp_path, record):
    path = tmp_path / "rec.bin"
    path.write_bytes(record(SCHEMA, PAYLOAD))
    return path


def test_dump_minimal_json(rec_file, capsys):
    assert main(["dump", str(rec_file)]) == 0
    out = capsys.readouterr().out
    assert out == '{"n":2,"points":[{"x":1,"y":2},{"x":-1,"y":3}]}\n'


def test_dump_pretty_and_json_out(rec_file, tmp_path, capsys):
    out_file = tmp_path / "out.json"
    assert main(["dump", str(rec_file), "--pretty", "--json-out", str(out_file)]) == 0
    out = capsys.readouterr().out
    assert "\n  " in out
    assert json.loads(out) == EXPECTED
    assert json.loads(out_file.read_text(encoding="utf-8")) == EXPECTED


def test_dump_with_schema_file_and_root(tmp_path, record, capsys):
    path = tmp_path / "rec.bin"
    path.write_bytes(record(None, b"\x01\x02"))
    schema = tmp_path / "rec.schema"
    schema.write_text("struct A { a: U8 }\nstruct B { a: U8 b: U8 }\n", encoding="utf-8")
    assert main(["dump", str(path), "--schema", str(schema), "--root", "A"]) == 0
    assert capsys.readouterr().out == '{"a":1}\n'


def test_dump_ignore_size(tmp_path, record, capsys):
    path = tmp_path / "rec.bin"
    path.write_bytes(record("struct R { xs: U8[+] }", b"\x01\x02", data_size="1"))
    assert main(["dump", str(path)]) == 0
    assert capsys.readouterr().out == '{"xs":[1]}\n'
    assert main(["dump", str(path), "--ignore-size"]) == 0
    assert capsys.readouterr().out == '{"xs":[1,2]}\n'


def test_dump_selects_record(tmp_path, record, capsys):
    path = tmp_path / "recs.bin"
    path.write_bytes(record("struct R { a: U8 }", b"\x01") + record("struct R { a: U8 }", b"\x02"))
    assert main(["dump", str(path), "-r", "1"]) == 0
    assert capsys.readouterr().out == '{"a":2}\n'


def test_header_command(rec_file, capsys):
    assert main(["header", str(rec_file)]) == 0
    fields = capsys.readouterr().out
    assert json.loads(fields) == {"data_size": str(len(PAYLOAD)), "format": SCHEMA.replace("\n", " ")}
    assert fields.index('"data_size"') < fields.index('"format"')


def test_header_reads_only_the_first_bytes(rec_file, capsys):
    header_len = rec_file.stat().st_size - len(PAYLOAD)
    assert main(["header", str(rec_file), "-b", str(header_len)]) == 0
    assert json.loads(capsys.readouterr().out)["data_size"] == str(len(PAYLOAD))


def test_schema_command(rec_file, capsys):
    assert main(["schema", str(rec_file)]) == 0
    assert capsys.readouterr().out == (
        "struct Point {\n"
        "    x: I16\n"
        "    y: I16\n"
        "}\n"
        "\n"
        "struct R {\n"
        "    n: U8\n"
        "    points: Point[+]\n"
        "}\n"
    )


def test_schema_tree(rec_file, capsys):
    assert main(["schema", str(rec_file), "--tree"]) == 0
    out = capsys.readouterr().out
    assert out.splitlines()[0].strip() == "R"
    assert "points: Point[+]" in out
    assert "x: I16" in out


def test_schema_error_is_located(tmp_path, record, capsys):
    path = tmp_path / "bad.bin"
    path.write_bytes(record("struct R { a: U8 b: Nope }", b"\x01\x02"))
    assert main(["dump", str(path)]) == 1
    err = capsys.readouterr().err
    assert "error: failed to parse the schema" in err
    assert "unknown type reference" in err
    assert "line 1, column 21" in err
    assert "^^^^" in err


def test_decode_error_exit_code(tmp_path, record, capsys):
    path = tmp_path / "short.bin"
    path.write_bytes(record("struct R { a: U32 }", b"\x01\x02"))
    assert main(["dump", str(path)]) == 1
    err = capsys.readouterr().err
    assert "truncated data" in err
    assert "byte offset" in err


def test_unrecognized_header_shows_reason_matrix(tmp_path, capsys):
    path = tmp_path / "junk.bin"
    path.write_bytes(b"not a record")
    assert main(["header", str(path)]) == 1
    err = capsys.readouterr().err
    assert "header not recognized" in err
    assert "Reason Matrix" in err


def test_missing_file(tmp_path, capsys):
    assert main(["dump", str(tmp_path / "missing.bin")]) == 2
    assert "File not found" in capsys.readouterr().err


def test_uri_is_unsupported(capsys):
    assert main(["header", "s3://bucket/key"]) == 2
    assert "Unsupported source" in capsys.readouterr().err


def test_version(capsys):
    assert main(["version"]) == 0
    assert "rrr version" in capsys.readouterr().out


@pytest.mark.parametrize("flag", [["-r", "-1"], ["--record=-3"]])
def test_negative_record_index_is_a_usage_error(tmp_path, record, capsys, flag):
    path = tmp_path / "recs.bin"
    path.write_bytes(record("struct R { a: U8 }", b"\x01") + record("struct R { a: U8 }", b"\x02"))
    with pytest.raises(SystemExit) as ei:
        main(["dump", str(path), *flag])
    assert ei.value.code == 2
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "must not be negative" in captured.err


def test_negative_byte_limit_is_a_usage_error(rec_file, capsys):
    with pytest.raises(SystemExit) as ei:
        main(["header", str(rec_file), "--bytes=-1"])
    assert ei.value.code == 2


def test_undecodable_schema_file_is_reported(tmp_path, record, capsys):
    path = tmp_path / "rec.bin"
    path.write_bytes(record(None, b"\x01"))
    schema = tmp_path / "bad.schema"
    schema.write_bytes(b"struct R { a: U8 }  #\xff\n")
    assert main(["dump", str(path), "--schema", str(schema)]) == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "cannot read source" in captured.err
    assert "caused by" in captured.err


def test_schema_path_that_is_a_directory_is_reported(tmp_path, record, capsys):
    path = tmp_path / "rec.bin"
    path.write_bytes(record(None, b"\x01"))
    assert main(["dump", str(path), "--schema", str(tmp_path)]) == 1
    assert "cannot read source" in capsys.readouterr().err
