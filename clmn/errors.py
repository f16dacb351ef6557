from typing import Any, List, Optional


class ClmnError(Exception):
    """
    Base class for every failure raised while reading or writing a CLMN file.

    Carries optional context (column name, row index, byte offset) that is
    filled in as the error travels outwards through the codec layers.
    """

    def __init__(self, message: str, column: Optional[str] = None,
                 row: Optional[int] = None, offset: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.column = column
        self.row = row
        self.offset = offset

    def add_context(self, column: Optional[str] = None, row: Optional[int] = None,
                    offset: Optional[int] = None) -> "ClmnError":
        # Never overwrite context set closer to the failure.
        if self.column is None:
            self.column = column
        if self.row is None:
            self.row = row
        if self.offset is None:
            self.offset = offset
        return self

    def __str__(self) -> str:
        parts = []
        if self.column is not None:
            parts.append(f"column={self.column!r}")
        if self.row is not None:
            parts.append(f"row={self.row}")
        if self.offset is not None:
            parts.append(f"offset={self.offset}")
        if not parts:
            return self.message
        return f"{self.message} ({', '.join(parts)})"


class FormatError(ClmnError, ValueError):
    """Bad magic or unsupported version."""


class SchemaError(ClmnError, ValueError):
    def __init__(self, message: str, column: Optional[str] = None,
                 expected: Any = None, actual: Any = None, **context):
        super().__init__(message, column=column, **context)
        self.expected = expected
        self.actual = actual


class InvalidTypeCode(SchemaError):
    def __init__(self, code: int, column: Optional[str] = None):
        super().__init__(
            f"Invalid column type code: 0x{code:02X} "
            f"(valid codes: 0x00 INT32, 0x01 INT64, 0x02 FLOAT64, 0x03 STRING)",
            column=column,
            actual=code,
        )
        self.code = code


class EncodingError(ClmnError, ValueError):
    """A value does not fit its column type."""


class DecodingError(ClmnError, ValueError):
    pass


class CorruptDataError(DecodingError):
    """Truncated or malformed bytes."""


class SizeMismatchError(DecodingError):
    def __init__(self, expected: int, actual: int, **context):
        super().__init__(
            f"Decompressed size mismatch: expected {expected} bytes, got {actual} bytes",
            **context,
        )
        self.expected = expected
        self.actual = actual


class ColumnNotFound(ClmnError, KeyError):
    def __init__(self, requested: str, available: List[str]):
        super().__init__(
            f"Column {requested!r} not found. Available columns: {', '.join(available)}",
            column=requested,
        )
        self.requested = requested
        self.available = list(available)
