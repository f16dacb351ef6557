"""CLMN: a columnar binary file format with independently compressed column blocks."""

from .column_types import ColumnType, infer_column_types, infer_type, type_from_code
from .errors import (
    ClmnError,
    ColumnNotFound,
    CorruptDataError,
    DecodingError,
    EncodingError,
    FormatError,
    InvalidTypeCode,
    SchemaError,
    SizeMismatchError,
)
from .reader import clmn_to_csv, read_all, read_clmn_file, read_clmn_header, read_columns, read_header
from .schema import ColumnSchema, FileHeader
from .writer import csv_to_clmn, write_clmn_file, write_columns

__version__ = "1.0.0"
