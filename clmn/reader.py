import csv
from concurrent.futures import ThreadPoolExecutor
from typing import BinaryIO, Dict, List, Optional, Sequence, Tuple

from .column_codec import decode_column
from .column_types import type_from_code
from .compression import DEFAULT_CHUNK_SIZE, decompress
from .errors import ClmnError, CorruptDataError, FormatError, SchemaError
from .schema import (
    ENTRY_TAIL,
    FIXED_HEADER,
    FIXED_HEADER_SIZE,
    MAGIC,
    NAME_LENGTH,
    VERSION,
    ColumnSchema,
    FileHeader,
)


# ---------- HEADER PARSING ----------

def _read_exact(f: BinaryIO, size: int, what: str, column: Optional[str] = None) -> bytes:
    data = f.read(size)
    if len(data) != size:
        raise CorruptDataError(
            f"Unexpected end of file while reading {what}: wanted {size} bytes, got {len(data)}",
            column=column,
        )
    return data


def read_fixed_header(f) -> Tuple[int, int]:
    """
    Reads and validates the fixed 18-byte header.
    Returns: (column_count, row_count)
    """
    fixed = f.read(FIXED_HEADER_SIZE)
    if len(fixed) != FIXED_HEADER_SIZE:
        raise FormatError(f"File too small to be a CLMN file ({len(fixed)} bytes)")

    magic, version, column_count, row_count = FIXED_HEADER.unpack(fixed)
    if magic != MAGIC:
        raise FormatError(f"Invalid magic {magic!r} (expected {MAGIC!r}), not a CLMN file",
                          offset=0)
    if version != VERSION:
        raise FormatError(f"Unsupported version: {version} (this reader supports {VERSION})",
                          offset=4)
    return column_count, row_count


def read_column_metadata(f, column_count: int) -> List[ColumnSchema]:
    columns: List[ColumnSchema] = []

    for index in range(column_count):
        what = f"schema entry {index}"
        (name_len,) = NAME_LENGTH.unpack(_read_exact(f, NAME_LENGTH.size, what))
        name_bytes = _read_exact(f, name_len, what)
        try:
            name = name_bytes.decode("utf-8")
        except UnicodeDecodeError as e:
            raise SchemaError(f"Column name of {what} is not valid UTF-8") from e

        type_code, uncompressed_size, compressed_size, offset = ENTRY_TAIL.unpack(
            _read_exact(f, ENTRY_TAIL.size, what, column=name))

        columns.append(ColumnSchema(
            name=name,
            column_type=type_from_code(type_code, column=name),
            uncompressed_size=uncompressed_size,
            compressed_size=compressed_size,
            offset=offset,
        ))

    return columns


def read_header(f: BinaryIO) -> FileHeader:
    """Parse and validate the complete header; leaves f positioned after it."""
    f.seek(0)
    column_count, row_count = read_fixed_header(f)
    if column_count == 0:
        raise SchemaError("Header declares zero columns", expected=">= 1", actual=0)
    columns = read_column_metadata(f, column_count)
    header = FileHeader(row_count=row_count, columns=tuple(columns))
    header.validate(expected_column_count=column_count)
    return header


# ---------- COLUMN BLOCKS ----------

def read_column(f: BinaryIO, header: FileHeader, schema: ColumnSchema,
                chunk_size: int = DEFAULT_CHUNK_SIZE) -> List[str]:
    """Seek to one block, inflate it and decode header.row_count values."""
    try:
        f.seek(schema.offset)
        packed = _read_exact(f, schema.compressed_size, "column block")
        raw = decompress(packed, schema.uncompressed_size, chunk_size=chunk_size)
        return decode_column(raw, schema.column_type, header.row_count, column=schema.name)
    except ClmnError as e:
        raise e.add_context(column=schema.name, offset=schema.offset)


def read_all(f: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Tuple[FileHeader, Dict[str, List[str]]]:
    header = read_header(f)
    data: Dict[str, List[str]] = {}
    for schema in header.columns:
        data[schema.name] = read_column(f, header, schema, chunk_size)
    return header, data


def read_columns(f: BinaryIO, names: Sequence[str],
                 chunk_size: int = DEFAULT_CHUNK_SIZE) -> Dict[str, List[str]]:
    """
    Read only the named columns, in the requested order.

    Every name is resolved before any block is touched, so an unknown name
    fails with ColumnNotFound without reading column data.
    """
    if not names:
        raise ValueError("No columns requested")
    header = read_header(f)
    wanted = header.resolve(names)

    data: Dict[str, List[str]] = {}
    for schema in wanted:
        if schema.name not in data:
            data[schema.name] = read_column(f, header, schema, chunk_size)
    return data


# ---------- PATH-LEVEL API ----------

def _read_column_at(path: str, header: FileHeader, schema: ColumnSchema, chunk_size: int) -> List[str]:
    with open(path, "rb") as f:
        return read_column(f, header, schema, chunk_size)


def read_clmn_file(path: str, columns: Optional[Sequence[str]] = None,
                   chunk_size: int = DEFAULT_CHUNK_SIZE,
                   workers: int = 1) -> Tuple[List[str], Dict[str, List[str]], int]:
    """
    Reads a .clmn file.

    :param path: path to .clmn file
    :param columns: list of column names to read, or None for all
    :param workers: decode columns on this many threads, each with its own file handle
    :return: (column_names, data_dict, row_count)
             where data_dict[name] = list of textual values
    """
    with open(path, "rb") as f:
        header = read_header(f)
        if columns is None:
            wanted = list(header.columns)
        elif not columns:
            raise ValueError("No columns requested")
        else:
            wanted = header.resolve(columns)

        # preserve requested order, read duplicates once
        unique: Dict[str, ColumnSchema] = {}
        for schema in wanted:
            unique.setdefault(schema.name, schema)
        schemas = list(unique.values())

        if workers > 1 and len(schemas) > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = [pool.submit(_read_column_at, path, header, s, chunk_size)
                           for s in schemas]
                values = [fut.result() for fut in futures]
        else:
            values = [read_column(f, header, s, chunk_size) for s in schemas]

    data = {s.name: v for s, v in zip(schemas, values)}
    return [s.name for s in schemas], data, header.row_count


def read_clmn_header(path: str) -> FileHeader:
    with open(path, "rb") as f:
        return read_header(f)


# ---------- CLMN -> CSV ----------

def clmn_to_csv(clmn_path: str, csv_path: str, columns: Optional[Sequence[str]] = None,
                chunk_size: int = DEFAULT_CHUNK_SIZE, workers: int = 1) -> None:
    col_names, data, row_count = read_clmn_file(clmn_path, columns=columns,
                                                chunk_size=chunk_size, workers=workers)

    with open(csv_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)

        # header
        writer.writerow(col_names)

        # rows
        for i in range(row_count):
            writer.writerow([data[name][i] for name in col_names])

    print(f"Wrote CSV: {csv_path}")
    print(f"Rows: {row_count}, Columns: {len(col_names)}")
