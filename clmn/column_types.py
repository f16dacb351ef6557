import math
import re
from enum import Enum
from typing import Dict, Optional, Sequence

from .errors import InvalidTypeCode


INT32_MIN, INT32_MAX = -(2 ** 31), 2 ** 31 - 1
INT64_MIN, INT64_MAX = -(2 ** 63), 2 ** 63 - 1

_INT_RE = re.compile(r"[+-]?[0-9]+")
_FLOAT_RE = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")


class ColumnType(Enum):
    # (code, fixed width in bytes or None for variable length)
    INT32 = (0x00, 4)
    INT64 = (0x01, 8)
    FLOAT64 = (0x02, 8)
    STRING = (0x03, None)

    def __init__(self, code: int, width: Optional[int]):
        self.code = code
        self.width = width

    @property
    def is_fixed_width(self) -> bool:
        return self.width is not None

    @property
    def description(self) -> str:
        if self is ColumnType.INT32:
            return "32-bit signed integer"
        elif self is ColumnType.INT64:
            return "64-bit signed integer"
        elif self is ColumnType.FLOAT64:
            return "64-bit IEEE 754 double"
        elif self is ColumnType.STRING:
            return "length-prefixed UTF-8 string"
        raise AssertionError(self)

    def block_size(self, row_count: int) -> Optional[int]:
        """Exact uncompressed block size for fixed-width types, None for STRING."""
        if self.width is None:
            return None
        return self.width * row_count

    def __str__(self) -> str:
        return f"{self.name} (0x{self.code:02X})"


_BY_CODE: Dict[int, ColumnType] = {t.code: t for t in ColumnType}


def type_from_code(code: int, column: Optional[str] = None) -> ColumnType:
    try:
        return _BY_CODE[code]
    except KeyError:
        raise InvalidTypeCode(code, column=column) from None


# ---------- VALUE PARSERS ----------
# Each parser returns the parsed value or None; inference tries them in order.

def _parse_int(text: str, lo: int, hi: int) -> Optional[int]:
    stripped = text.strip()
    if not _INT_RE.fullmatch(stripped):
        return None
    value = int(stripped)
    if lo <= value <= hi:
        return value
    return None


def parse_int32(text: str) -> Optional[int]:
    return _parse_int(text, INT32_MIN, INT32_MAX)


def parse_int64(text: str) -> Optional[int]:
    return _parse_int(text, INT64_MIN, INT64_MAX)


def parse_float64(text: str) -> Optional[float]:
    stripped = text.strip()
    if not _FLOAT_RE.fullmatch(stripped):
        return None
    value = float(stripped)
    if not math.isfinite(value):
        return None
    return value


_INFERENCE_ORDER = (
    (parse_int32, ColumnType.INT32),
    (parse_int64, ColumnType.INT64),
    (parse_float64, ColumnType.FLOAT64),
)


def infer_type(text: Optional[str]) -> ColumnType:
    """
    Narrowest type the value parses as: INT32, then INT64, then FLOAT64.
    Anything else (including empty or missing values) is STRING.
    """
    if text is None:
        return ColumnType.STRING
    for parser, column_type in _INFERENCE_ORDER:
        if parser(text) is not None:
            return column_type
    return ColumnType.STRING


def infer_column_types(columns: Dict[str, Sequence[str]]) -> Dict[str, ColumnType]:
    """
    Infer one type per column from its first value only.

    Later rows are never sampled: a wider or incompatible value further down
    a column surfaces as an EncodingError when the column is encoded.
    """
    types: Dict[str, ColumnType] = {}
    for name, values in columns.items():
        types[name] = infer_type(values[0]) if len(values) else ColumnType.STRING
    return types
