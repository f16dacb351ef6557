import struct
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from .column_types import ColumnType
from .errors import ColumnNotFound, SchemaError


# ---------- FORMAT CONSTANTS ----------

MAGIC = b"CLMN"  # 0x434C4D4E
VERSION = 1

# magic(4) + version(2) + column_count(4) + row_count(8), big-endian
FIXED_HEADER = struct.Struct(">4sHIQ")
FIXED_HEADER_SIZE = FIXED_HEADER.size  # 18

NAME_LENGTH = struct.Struct(">H")
# type(1) + uncompressed(4) + compressed(4) + offset(8)
ENTRY_TAIL = struct.Struct(">BIIQ")
ENTRY_OVERHEAD = NAME_LENGTH.size + ENTRY_TAIL.size  # 19

MAX_NAME_BYTES = 0xFFFF
MAX_BLOCK_SIZE = 0xFFFFFFFF


def schema_entry_size(name: str) -> int:
    return ENTRY_OVERHEAD + len(name.encode("utf-8"))


def header_size(names: Sequence[str]) -> int:
    return FIXED_HEADER_SIZE + sum(schema_entry_size(n) for n in names)


def compression_ratio(uncompressed: int, compressed: int) -> float:
    """Space saved by compression as a percentage; 0 for empty input."""
    if uncompressed == 0:
        return 0.0
    return (1.0 - compressed / uncompressed) * 100.0


@dataclass(frozen=True)
class ColumnSchema:
    name: str
    column_type: ColumnType
    uncompressed_size: int
    compressed_size: int
    offset: int

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise SchemaError("Column name cannot be empty", column=self.name)
        if len(self.name.encode("utf-8")) > MAX_NAME_BYTES:
            raise SchemaError(
                f"Column name is longer than {MAX_NAME_BYTES} bytes",
                column=self.name,
                expected=MAX_NAME_BYTES,
                actual=len(self.name.encode("utf-8")),
            )
        if not isinstance(self.column_type, ColumnType):
            raise SchemaError(f"Unknown column type: {self.column_type!r}", column=self.name)
        for attr, limit in (("uncompressed_size", MAX_BLOCK_SIZE),
                            ("compressed_size", MAX_BLOCK_SIZE),
                            ("offset", None)):
            value = getattr(self, attr)
            if value < 0 or (limit is not None and value > limit):
                raise SchemaError(f"Invalid {attr}: {value}", column=self.name, actual=value)

    @property
    def entry_size(self) -> int:
        return schema_entry_size(self.name)

    @property
    def end(self) -> int:
        """Offset one past the last byte of this column's block."""
        return self.offset + self.compressed_size

    @property
    def compression_ratio(self) -> float:
        return compression_ratio(self.uncompressed_size, self.compressed_size)

    def __str__(self) -> str:
        return (f"{self.name}: {self.column_type.name}, offset={self.offset}, "
                f"compressed={self.compressed_size}, uncompressed={self.uncompressed_size} "
                f"({self.compression_ratio:.1f}% saved)")


@dataclass(frozen=True)
class FileHeader:
    """
    Immutable description of a CLMN file.

    Construction validates the structural invariants, so a FileHeader that
    exists is always consistent: non-empty, unique names, blocks laid out
    after the header without overlap, fixed-width sizes matching row_count.
    """
    row_count: int
    columns: Tuple[ColumnSchema, ...]
    _by_name: Dict[str, ColumnSchema] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "columns", tuple(self.columns))
        object.__setattr__(self, "_by_name", {c.name: c for c in self.columns})
        self.validate()

    # ---------- derived values ----------

    @property
    def column_count(self) -> int:
        return len(self.columns)

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    @property
    def header_size(self) -> int:
        return header_size(self.column_names)

    @property
    def data_size(self) -> int:
        return sum(c.compressed_size for c in self.columns)

    @property
    def file_size(self) -> int:
        return self.header_size + self.data_size

    @property
    def total_uncompressed_size(self) -> int:
        return sum(c.uncompressed_size for c in self.columns)

    @property
    def total_compressed_size(self) -> int:
        return self.data_size

    @property
    def compression_ratio(self) -> float:
        return compression_ratio(self.total_uncompressed_size, self.total_compressed_size)

    # ---------- lookup ----------

    def get(self, name: str) -> Optional[ColumnSchema]:
        return self._by_name.get(name)

    def __getitem__(self, index: int) -> ColumnSchema:
        return self.columns[index]

    def __len__(self) -> int:
        return len(self.columns)

    def resolve(self, names: Sequence[str]) -> List[ColumnSchema]:
        """
        Map requested names to schema entries, in the requested order.
        Raises ColumnNotFound for the first unknown name; nothing is read.
        """
        resolved = []
        for name in names:
            schema = self._by_name.get(name)
            if schema is None:
                raise ColumnNotFound(name, self.column_names)
            resolved.append(schema)
        return resolved

    # ---------- validation ----------

    def validate(self, expected_column_count: Optional[int] = None) -> None:
        if self.row_count < 0:
            raise SchemaError(f"Row count cannot be negative: {self.row_count}",
                              actual=self.row_count)
        if not self.columns:
            raise SchemaError("A file must contain at least one column", expected=">= 1", actual=0)
        if expected_column_count is not None and expected_column_count != len(self.columns):
            raise SchemaError(
                f"Column count mismatch: header declares {expected_column_count}, "
                f"found {len(self.columns)} schema entries",
                expected=expected_column_count,
                actual=len(self.columns),
            )

        seen = set()
        for col in self.columns:
            if col.name in seen:
                raise SchemaError(f"Duplicate column name: {col.name!r}", column=col.name)
            seen.add(col.name)

        expected_offset = self.header_size
        if self.columns[0].offset != expected_offset:
            first = self.columns[0]
            raise SchemaError(
                f"First column offset {first.offset} does not match header size {expected_offset}",
                column=first.name,
                expected=expected_offset,
                actual=first.offset,
            )

        previous_end = expected_offset
        for col in self.columns:
            if col.offset < previous_end:
                raise SchemaError(
                    f"Block at offset {col.offset} overlaps the previous block ending at {previous_end}",
                    column=col.name,
                    expected=previous_end,
                    actual=col.offset,
                )
            previous_end = col.end

            block_size = col.column_type.block_size(self.row_count)
            if block_size is not None and col.uncompressed_size != block_size:
                raise SchemaError(
                    f"{col.column_type.name} column with {self.row_count} rows must be "
                    f"{block_size} bytes uncompressed, header says {col.uncompressed_size}",
                    column=col.name,
                    expected=block_size,
                    actual=col.uncompressed_size,
                )

    def describe(self) -> str:
        lines = [
            f"Rows: {self.row_count}",
            f"Columns ({self.column_count}):",
        ]
        for i, col in enumerate(self.columns):
            lines.append(f"  [{i}] {col}")
        lines.append(f"Header size: {self.header_size} bytes")
        lines.append(f"Uncompressed data: {self.total_uncompressed_size} bytes")
        lines.append(f"Compressed data: {self.total_compressed_size} bytes "
                     f"({self.compression_ratio:.1f}% saved)")
        return "\n".join(lines)
