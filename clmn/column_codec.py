import struct
from typing import Callable, List, Optional, Sequence

from .column_types import ColumnType, parse_float64, parse_int32, parse_int64
from .errors import CorruptDataError, EncodingError


# All multi-byte values are big-endian.
INT32 = struct.Struct(">i")
INT64 = struct.Struct(">q")
FLOAT64 = struct.Struct(">d")
STRING_LENGTH = struct.Struct(">H")

MAX_STRING_BYTES = 0xFFFF


# ---------- VALUE FORMATTING ----------

def format_int(value: int) -> str:
    return str(value)


def format_float(value: float) -> str:
    # repr is the shortest text that parses back to the same double
    return repr(value)


# ---------- ENCODERS ----------

def _encode_fixed(values: Sequence[Optional[str]], packer: struct.Struct,
                  parse: Callable[[str], Optional[object]], type_name: str,
                  column: Optional[str]) -> bytes:
    buf = bytearray()
    for row, text in enumerate(values):
        value = parse(text) if text is not None else None
        if value is None:
            raise EncodingError(f"Value {text!r} is not a valid {type_name}",
                                column=column, row=row)
        buf += packer.pack(value)
    return bytes(buf)


def _encode_strings(values: Sequence[Optional[str]], column: Optional[str]) -> bytes:
    """
    Layout per value: [uint16 byte length][UTF-8 bytes]
    Missing values are written as empty strings.
    """
    buf = bytearray()
    for row, text in enumerate(values):
        try:
            encoded = (text or "").encode("utf-8")
        except UnicodeEncodeError as e:
            raise EncodingError(f"Value cannot be encoded as UTF-8: {e.reason}",
                                column=column, row=row) from e
        if len(encoded) > MAX_STRING_BYTES:
            raise EncodingError(
                f"String of {len(encoded)} bytes exceeds the {MAX_STRING_BYTES}-byte limit",
                column=column, row=row,
            )
        buf += STRING_LENGTH.pack(len(encoded))
        buf += encoded
    return bytes(buf)


def encode_column(values: Sequence[Optional[str]], column_type: ColumnType,
                  column: Optional[str] = None) -> bytes:
    """
    Serialize textual values into the flat, uncompressed block for column_type.
    Raises EncodingError naming the column and row of the first bad value.
    """
    if column_type is ColumnType.INT32:
        return _encode_fixed(values, INT32, parse_int32, "INT32", column)
    elif column_type is ColumnType.INT64:
        return _encode_fixed(values, INT64, parse_int64, "INT64", column)
    elif column_type is ColumnType.FLOAT64:
        return _encode_fixed(values, FLOAT64, parse_float64, "FLOAT64", column)
    elif column_type is ColumnType.STRING:
        return _encode_strings(values, column)
    raise AssertionError(f"Unhandled column type: {column_type!r}")


# ---------- DECODERS ----------

def _decode_fixed(buf: bytes, row_count: int, unpacker: struct.Struct,
                  fmt: Callable[[object], str], column: Optional[str]) -> List[str]:
    width = unpacker.size
    available = len(buf) // width
    if available < row_count:
        raise CorruptDataError(
            f"Block ends after {available} of {row_count} values ({len(buf)} bytes)",
            column=column, row=available,
        )
    end = row_count * width
    if end != len(buf):
        raise CorruptDataError(
            f"{len(buf) - end} unexpected bytes after {row_count} values",
            column=column,
        )
    return [fmt(v) for (v,) in unpacker.iter_unpack(buf)]


def _decode_strings(buf: bytes, row_count: int, column: Optional[str]) -> List[str]:
    result: List[str] = []
    pos = 0
    size = len(buf)
    for row in range(row_count):
        if pos + STRING_LENGTH.size > size:
            raise CorruptDataError("Block ends inside a string length prefix",
                                   column=column, row=row)
        (length,) = STRING_LENGTH.unpack_from(buf, pos)
        pos += STRING_LENGTH.size
        if pos + length > size:
            raise CorruptDataError(
                f"String of {length} bytes runs past the end of the block",
                column=column, row=row,
            )
        try:
            result.append(buf[pos:pos + length].decode("utf-8"))
        except UnicodeDecodeError as e:
            raise CorruptDataError(f"Invalid UTF-8 in string: {e.reason}",
                                   column=column, row=row) from e
        pos += length

    if pos != size:
        raise CorruptDataError(f"{size - pos} unexpected bytes after {row_count} values",
                               column=column)
    return result


def decode_column(buf: bytes, column_type: ColumnType, row_count: int,
                  column: Optional[str] = None) -> List[str]:
    """
    Decode exactly row_count values from an uncompressed block.

    :return: the values as text, in row order
    """
    if column_type is ColumnType.INT32:
        return _decode_fixed(buf, row_count, INT32, format_int, column)
    elif column_type is ColumnType.INT64:
        return _decode_fixed(buf, row_count, INT64, format_int, column)
    elif column_type is ColumnType.FLOAT64:
        return _decode_fixed(buf, row_count, FLOAT64, format_float, column)
    elif column_type is ColumnType.STRING:
        return _decode_strings(buf, row_count, column)
    raise AssertionError(f"Unhandled column type: {column_type!r}")
