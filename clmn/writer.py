import csv
import os
import tempfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import BinaryIO, Dict, List, Mapping, Optional, Sequence, Tuple

from .column_codec import encode_column
from .column_types import ColumnType, infer_column_types
from .compression import DEFAULT_LEVEL, compress
from .errors import EncodingError, SchemaError
from .schema import (
    ENTRY_TAIL,
    FIXED_HEADER,
    MAGIC,
    MAX_BLOCK_SIZE,
    NAME_LENGTH,
    VERSION,
    ColumnSchema,
    FileHeader,
    header_size,
)


@dataclass(frozen=True)
class ColumnBlock:
    """One column after pass 1: serialized, compressed, not yet placed in the file."""
    name: str
    column_type: ColumnType
    uncompressed_size: int
    data: bytes

    @property
    def compressed_size(self) -> int:
        return len(self.data)


# ---------- PASS 1: ENCODE + COMPRESS ----------

def encode_block(name: str, values: Sequence[Optional[str]], column_type: ColumnType,
                 level: int = DEFAULT_LEVEL) -> ColumnBlock:
    raw = encode_column(values, column_type, column=name)
    if len(raw) > MAX_BLOCK_SIZE:
        raise EncodingError(f"Column data of {len(raw)} bytes exceeds the 4 GiB block limit",
                            column=name)
    packed = compress(raw, level)
    if len(packed) > MAX_BLOCK_SIZE:
        raise EncodingError(f"Compressed block of {len(packed)} bytes exceeds the 4 GiB block limit",
                            column=name)
    return ColumnBlock(name=name, column_type=column_type,
                       uncompressed_size=len(raw), data=packed)


# ---------- PASS 2: OFFSETS + HEADER ----------

def build_header(row_count: int, blocks: Sequence[ColumnBlock]) -> FileHeader:
    """
    Place the blocks contiguously after the header, in the given order.
    Only called once every block's compressed size is known.
    """
    offset = header_size([b.name for b in blocks])
    schemas: List[ColumnSchema] = []
    for block in blocks:
        schemas.append(ColumnSchema(
            name=block.name,
            column_type=block.column_type,
            uncompressed_size=block.uncompressed_size,
            compressed_size=block.compressed_size,
            offset=offset,
        ))
        offset += block.compressed_size
    return FileHeader(row_count=row_count, columns=tuple(schemas))


def pack_header(header: FileHeader) -> bytes:
    buf = bytearray()
    buf += FIXED_HEADER.pack(MAGIC, VERSION, header.column_count, header.row_count)
    for col in header.columns:
        name_bytes = col.name.encode("utf-8")
        buf += NAME_LENGTH.pack(len(name_bytes))
        buf += name_bytes
        buf += ENTRY_TAIL.pack(col.column_type.code, col.uncompressed_size,
                               col.compressed_size, col.offset)
    return bytes(buf)


# ---------- WRITER API ----------

def _check_columns(columns: Mapping[str, Sequence[Optional[str]]]) -> int:
    if not columns:
        raise ValueError("At least one column is required")
    lengths = {name: len(values) for name, values in columns.items()}
    row_count = next(iter(lengths.values()))
    for name, length in lengths.items():
        if length != row_count:
            raise ValueError(
                f"Column {name!r} has {length} values, expected {row_count} like the first column")
    if row_count < 1:
        raise ValueError("At least one row is required")
    return row_count


def encode_blocks(columns: Mapping[str, Sequence[Optional[str]]],
                  column_types: Mapping[str, ColumnType],
                  level: int = DEFAULT_LEVEL,
                  workers: int = 1) -> List[ColumnBlock]:
    names = list(columns)
    for name in names:
        if name not in column_types:
            raise SchemaError(f"No type given for column {name!r}", column=name)

    if workers > 1 and len(names) > 1:
        # zlib releases the GIL, so compression overlaps across threads
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(encode_block, n, columns[n], column_types[n], level)
                       for n in names]
            return [f.result() for f in futures]
    return [encode_block(n, columns[n], column_types[n], level) for n in names]


def write_columns(f: BinaryIO, columns: Mapping[str, Sequence[Optional[str]]],
                  column_types: Optional[Mapping[str, ColumnType]] = None,
                  level: int = DEFAULT_LEVEL, workers: int = 1) -> FileHeader:
    """
    Write a complete CLMN file to an open binary handle.

    :param columns: ordered mapping column name -> textual values
    :param column_types: declared types; inferred from the first row when omitted
    :return: the FileHeader that was written
    """
    row_count = _check_columns(columns)
    if column_types is None:
        column_types = infer_column_types(columns)

    blocks = encode_blocks(columns, column_types, level=level, workers=workers)
    header = build_header(row_count, blocks)

    f.write(pack_header(header))
    for block in blocks:
        f.write(block.data)
    return header


def write_clmn_file(out_path: str, columns: Mapping[str, Sequence[Optional[str]]],
                    column_types: Optional[Mapping[str, ColumnType]] = None,
                    level: int = DEFAULT_LEVEL, workers: int = 1) -> FileHeader:
    """
    Write to a temporary file next to out_path and rename it into place,
    so out_path only ever holds a complete file.
    """
    directory = os.path.dirname(os.path.abspath(out_path))
    fd, tmp_path = tempfile.mkstemp(prefix=".clmn-", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "wb") as f:
            header = write_columns(f, columns, column_types, level=level, workers=workers)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, out_path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise
    return header


# ---------- CSV -> CLMN ----------

def read_csv_columns(csv_path: str) -> Tuple[List[str], Dict[str, List[str]]]:
    """
    Reads CSV into column-wise structure.
    Returns: (column_names, {col_name: [values...]})
    Assumptions:
      - First row is header
      - Every row has as many fields as the header
    """
    with open(csv_path, "r", newline="", encoding="utf-8") as f:
        reader = csv.reader(f)
        header = next(reader, None)
        if header is None:
            raise ValueError(f"Empty CSV: {csv_path}")
        if not header:
            raise ValueError(f"CSV header has no columns: {csv_path}")

        columns: Dict[str, List[str]] = {}
        for name in header:
            if name in columns:
                raise SchemaError(f"Duplicate column name in CSV header: {name!r}", column=name)
            columns[name] = []

        row_count = 0
        for row in reader:
            if len(row) != len(header):
                # line_num is the physical line the record ended on
                raise ValueError(
                    f"Row ending on line {reader.line_num} has {len(row)} fields, "
                    f"expected {len(header)}")
            for name, value in zip(header, row):
                columns[name].append(value)
            row_count += 1

    if row_count == 0:
        raise ValueError(f"CSV has no data rows: {csv_path}")

    return header, columns


def csv_to_clmn(csv_path: str, out_path: str, level: int = DEFAULT_LEVEL,
                workers: int = 1) -> FileHeader:
    col_names, col_data = read_csv_columns(csv_path)
    column_types = infer_column_types(col_data)

    print(f"Read {csv_path}: {len(col_data[col_names[0]])} rows, {len(col_names)} columns")
    for name in col_names:
        print(f"  - {name}: {column_types[name]}")

    header = write_clmn_file(out_path, col_data, column_types, level=level, workers=workers)

    print(f"Wrote {out_path}")
    print(header.describe())
    return header
