import zlib

from .errors import CorruptDataError, SizeMismatchError


DEFAULT_LEVEL = zlib.Z_DEFAULT_COMPRESSION
MIN_LEVEL, MAX_LEVEL = -1, 9
DEFAULT_CHUNK_SIZE = 8192


def compress(data: bytes, level: int = DEFAULT_LEVEL) -> bytes:
    """zlib-compress a block. Empty input stays empty."""
    if not MIN_LEVEL <= level <= MAX_LEVEL:
        raise ValueError(f"Compression level must be between {MIN_LEVEL} and {MAX_LEVEL}, got {level}")
    if not data:
        return b""
    return zlib.compress(data, level)


def decompress(data: bytes, expected_size: int, chunk_size: int = DEFAULT_CHUNK_SIZE) -> bytes:
    """
    Inflate a block that must expand to exactly expected_size bytes.

    Output is produced at most chunk_size bytes at a time and inflation stops
    as soon as it overshoots expected_size.
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if expected_size < 0:
        raise ValueError(f"expected_size cannot be negative: {expected_size}")

    if not data:
        if expected_size != 0:
            raise SizeMismatchError(expected_size, 0)
        return b""

    inflater = zlib.decompressobj()
    out = bytearray()
    pending = data
    try:
        while not inflater.eof:
            chunk = inflater.decompress(pending, chunk_size)
            pending = inflater.unconsumed_tail
            if not chunk and not pending:
                break
            out += chunk
            if len(out) > expected_size:
                raise SizeMismatchError(expected_size, len(out))
        if not inflater.eof:
            out += inflater.flush()
    except zlib.error as e:
        raise CorruptDataError(f"Malformed compressed data: {e}") from e

    if not inflater.eof:
        raise CorruptDataError("Compressed data is truncated")
    if inflater.unused_data:
        raise CorruptDataError(
            f"{len(inflater.unused_data)} unexpected bytes after the compressed stream")
    if len(out) != expected_size:
        raise SizeMismatchError(expected_size, len(out))
    return bytes(out)
