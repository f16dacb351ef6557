import io
import struct
import zlib

import pytest

from clmn.column_types import ColumnType
from clmn.errors import EncodingError, SchemaError
from clmn.writer import (
    build_header,
    encode_block,
    pack_header,
    read_csv_columns,
    write_clmn_file,
    write_columns,
)


PEOPLE = {
    "id": ["1", "2"],
    "name": ["Alice", "Bob"],
    "age": ["30", "25"],
}


def write_to_bytes(columns, column_types=None, **kwargs):
    buf = io.BytesIO()
    header = write_columns(buf, columns, column_types, **kwargs)
    return header, buf.getvalue()


def test_worked_example_layout():
    header, data = write_to_bytes(PEOPLE)

    assert [c.column_type for c in header.columns] == [
        ColumnType.INT32, ColumnType.STRING, ColumnType.INT32,
    ]
    assert [c.uncompressed_size for c in header.columns] == [8, 12, 8]
    assert header.header_size == 18 + 21 + 23 + 22
    assert header[0].offset == header.header_size
    assert header[0].offset < header[1].offset < header[2].offset

    expected_blocks = [
        bytes.fromhex("0000000100000002"),
        b"\x00\x05Alice\x00\x03Bob",
        bytes.fromhex("0000001E00000019"),
    ]
    for schema, raw in zip(header.columns, expected_blocks):
        block = data[schema.offset:schema.end]
        assert zlib.decompress(block) == raw


def test_fixed_header_bytes():
    header, data = write_to_bytes(PEOPLE)
    magic, version, column_count, row_count = struct.unpack(">4sHIQ", data[:18])
    assert magic == b"CLMN"
    assert version == 1
    assert column_count == 3
    assert row_count == 2

    # first schema entry: "id", INT32, sizes, offset
    (name_len,) = struct.unpack(">H", data[18:20])
    assert data[20:20 + name_len] == b"id"
    type_code, raw, packed, offset = struct.unpack(">BIIQ", data[22:39])
    assert (type_code, raw, packed, offset) == (
        0x00, 8, header[0].compressed_size, header.header_size)


def test_blocks_are_contiguous_with_no_padding():
    header, data = write_to_bytes(PEOPLE)
    for prev, cur in zip(header.columns, header.columns[1:]):
        assert cur.offset == prev.offset + prev.compressed_size
    assert len(data) == header.file_size


def test_pack_header_matches_header_size():
    header, data = write_to_bytes(PEOPLE)
    packed = pack_header(header)
    assert len(packed) == header.header_size
    assert data.startswith(packed)


def test_declared_types_override_inference():
    header, _ = write_to_bytes(
        {"n": ["1", "2"]}, {"n": ColumnType.FLOAT64})
    assert header[0].column_type is ColumnType.FLOAT64
    assert header[0].uncompressed_size == 16


def test_parallel_encoding_matches_serial():
    columns = {f"c{i}": [str(i * r) for r in range(500)] for i in range(6)}
    _, serial = write_to_bytes(columns)
    _, parallel = write_to_bytes(columns, workers=4)
    assert serial == parallel


def test_build_header_offsets():
    blocks = [
        encode_block("a", ["1"], ColumnType.INT32),
        encode_block("bb", ["x"], ColumnType.STRING),
    ]
    header = build_header(1, blocks)
    assert header[0].offset == 18 + 20 + 21
    assert header[1].offset == header[0].offset + blocks[0].compressed_size


@pytest.mark.parametrize("columns", [
    {},
    {"a": []},
    {"a": ["1", "2"], "b": ["1"]},
])
def test_preconditions_fail_before_writing(columns):
    buf = io.BytesIO()
    with pytest.raises(ValueError):
        write_columns(buf, columns)
    assert buf.getvalue() == b""


def test_encoding_error_writes_nothing():
    buf = io.BytesIO()
    with pytest.raises(EncodingError) as exc:
        write_columns(buf, {"id": ["1", "2", "x"], "name": ["a", "b", "c"]})
    assert exc.value.column == "id"
    assert exc.value.row == 2
    assert buf.getvalue() == b""


def test_missing_declared_type():
    with pytest.raises(SchemaError):
        write_to_bytes({"a": ["1"], "b": ["2"]}, {"a": ColumnType.INT32})


def test_write_clmn_file_replaces_atomically(tmp_path):
    out = tmp_path / "people.clmn"
    out.write_bytes(b"previous contents")

    with pytest.raises(EncodingError):
        write_clmn_file(str(out), {"id": ["1", "oops"]}, {"id": ColumnType.INT32})
    assert out.read_bytes() == b"previous contents"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["people.clmn"]

    header = write_clmn_file(str(out), PEOPLE)
    assert out.stat().st_size == header.file_size


def test_read_csv_columns(tmp_path):
    path = tmp_path / "in.csv"
    path.write_text("id,name\n1,Alice\n2,\"Smith, Bob\"\n", encoding="utf-8")
    names, columns = read_csv_columns(str(path))
    assert names == ["id", "name"]
    assert columns == {"id": ["1", "2"], "name": ["Alice", "Smith, Bob"]}


def test_read_csv_columns_rejects_bad_input(tmp_path):
    ragged = tmp_path / "ragged.csv"
    ragged.write_text("a,b\n1,2\n3\n", encoding="utf-8")
    with pytest.raises(ValueError):
        read_csv_columns(str(ragged))

    dup = tmp_path / "dup.csv"
    dup.write_text("a,a\n1,2\n", encoding="utf-8")
    with pytest.raises(SchemaError):
        read_csv_columns(str(dup))

    header_only = tmp_path / "header_only.csv"
    header_only.write_text("a,b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        read_csv_columns(str(header_only))

    no_columns = tmp_path / "no_columns.csv"
    no_columns.write_text("\n\n", encoding="utf-8")
    with pytest.raises(ValueError, match="no columns"):
        read_csv_columns(str(no_columns))


def test_ragged_row_reports_physical_line(tmp_path):
    # the quoted field spans lines 2-3, so the short record ends on line 4
    path = tmp_path / "multiline.csv"
    path.write_text('a,b\n"x\ny",1\n3\n', encoding="utf-8")
    with pytest.raises(ValueError, match="line 4"):
        read_csv_columns(str(path))
