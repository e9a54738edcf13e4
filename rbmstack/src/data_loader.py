"""Reading and writing arrays of vectors in the binary and text layouts.

Four layouts are supported, chosen by file extension:

- ``.flt``: int32 row count, int32 row width, then float64 values
- ``.sgn``: same header, then rows bit-packed most-significant bit first,
  1 for +1 and 0 for -1, each row padded to a whole byte
- ``.tsv``: one row per line, tab-separated decimals
- ``.txt``: one row per line, a ``1`` or ``0`` character per element

All binary values are little-endian. Rows of different widths (the
weight matrices of a multi-layer stack) are written to the binary
layouts with a width of 0 in the header, followed by each row's own
int32 width ahead of its values. A header width of 0 is reserved for
this, so empty rows are never written.

The text layouts hold one width per file. Writing rows of different
widths to a text file is refused, since they could not be read back;
streams (standard output) accept them for display.
"""
import logging
import os
from typing import BinaryIO, List, Optional, Sequence, Tuple

import numpy as np

from ..constants import (
    BIAS, ZERO, ARRAY_FORMATS, FLOAT_FORMAT, SIGN_FORMAT,
    TEXT_FLOAT_FORMAT, TEXT_SIGN_FORMAT
)
from .matrix import ShapeError

logger = logging.getLogger(__name__)

_INT = np.dtype("<i4")
_FLOAT = np.dtype("<f8")

Rows = List[np.ndarray]


class ArrayFormatError(ValueError):
    """An array file is malformed or uses an unknown layout."""


def array_format(path: str) -> str:
    """Return the layout selected by the extension of ``path``."""
    fmt = os.path.splitext(path)[1]
    if fmt not in ARRAY_FORMATS:
        raise ArrayFormatError(f"Unknown array format \"{fmt}\" for \"{path}\"")
    return fmt


def _read_exact(stream: BinaryIO, size: int, what: str) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise ArrayFormatError(f"{what}: expected {size} bytes, found {len(data)}")
    return data


def _read_int(stream: BinaryIO, what: str) -> int:
    value = int(np.frombuffer(_read_exact(stream, _INT.itemsize, what), dtype=_INT)[0])
    if value < 0:
        raise ArrayFormatError(f"{what}: negative size {value}")
    return value


def _write_ints(stream: BinaryIO, *values: int) -> None:
    stream.write(np.asarray(values, dtype=_INT).tobytes())


def _float_bytes(width: int) -> int:
    return width * _FLOAT.itemsize


def _sign_bytes(width: int) -> int:
    return (width + 7) // 8


def _decode_floats(data: bytes, width: int) -> np.ndarray:
    return np.frombuffer(data, dtype=_FLOAT).astype(np.float64)


def _decode_signs(data: bytes, width: int) -> np.ndarray:
    bits = np.unpackbits(np.frombuffer(data, dtype=np.uint8), bitorder="big")[:width]
    return np.where(bits == 1, BIAS, ZERO).astype(np.float64)


def _encode_floats(row: np.ndarray) -> bytes:
    return np.asarray(row, dtype=_FLOAT).tobytes()


def _encode_signs(row: np.ndarray) -> bytes:
    return np.packbits(np.asarray(row) > 0, bitorder="big").tobytes()


_BINARY = {
    FLOAT_FORMAT: (_float_bytes, _decode_floats, _encode_floats),
    SIGN_FORMAT: (_sign_bytes, _decode_signs, _encode_signs),
}


def read_binary(stream: BinaryIO, fmt: str) -> Optional[Rows]:
    header = stream.read(2 * _INT.itemsize)
    if not header:
        return None
    if len(header) != 2 * _INT.itemsize:
        raise ArrayFormatError(f"Truncated header: {len(header)} bytes")
    n_rows, width = (int(x) for x in np.frombuffer(header, dtype=_INT))
    if n_rows < 0 or width < 0:
        raise ArrayFormatError(f"Invalid header: {n_rows} rows of width {width}")
    if n_rows == 0:
        return None

    size, decode, _ = _BINARY[fmt]
    ragged = width == 0
    rows = []
    for i in range(n_rows):
        if ragged:
            width = _read_int(stream, f"Row {i} width")
        rows.append(decode(_read_exact(stream, size(width), f"Row {i}"), width))
    if stream.read(1):
        raise ArrayFormatError(f"Unexpected data after row {n_rows - 1}")
    return rows


def write_binary(stream: BinaryIO, fmt: str, rows: Sequence) -> None:
    _, _, encode = _BINARY[fmt]
    widths = {len(row) for row in rows}
    if len(widths) == 1:
        _write_ints(stream, len(rows), widths.pop())
        for row in rows:
            stream.write(encode(row))
    else:
        _write_ints(stream, len(rows), 0)
        for row in rows:
            _write_ints(stream, len(row))
            stream.write(encode(row))


def _parse_floats(line: str, row: int) -> List[float]:
    values = []
    for j, token in enumerate(line.split("\t")):
        try:
            values.append(float(token))
        except ValueError:
            raise ArrayFormatError(
                f"Row {row}, element {j}: couldn't parse \"{token}\" as a float"
            ) from None
    return values


def _parse_signs(line: str, row: int) -> List[float]:
    values = []
    for j, char in enumerate(line):
        if char == "1":
            values.append(BIAS)
        elif char == "0":
            values.append(ZERO)
        else:
            raise ArrayFormatError(
                f"Row {row}, element {j}: expected '0' or '1', found \"{char}\""
            )
    return values


def read_text(stream: BinaryIO, fmt: str) -> Optional[Rows]:
    parse = _parse_floats if fmt == TEXT_FLOAT_FORMAT else _parse_signs
    rows = []
    width = None
    for raw in stream:
        try:
            line = raw.decode("utf-8").rstrip("\r\n")
        except UnicodeDecodeError:
            raise ArrayFormatError(f"Row {len(rows)}: not valid text") from None
        if not line:
            continue
        values = parse(line, len(rows))
        if width is None:
            width = len(values)
        elif len(values) != width:
            raise ArrayFormatError(
                f"Unequal lengths in table: row {len(rows)} has {len(values)} "
                f"elements, expected {width}"
            )
        rows.append(np.asarray(values, dtype=np.float64))
    return rows or None


def write_text(stream: BinaryIO, fmt: str, rows: Sequence) -> None:
    for row in rows:
        if fmt == TEXT_FLOAT_FORMAT:
            line = "\t".join("%f" % value for value in row)
        else:
            line = "".join("1" if value > 0 else "0" for value in row)
        stream.write(line.encode("utf-8") + b"\n")


def read_array(stream: BinaryIO, fmt: str) -> Optional[Rows]:
    """Read rows from ``stream``; ``None`` when it holds no rows."""
    if fmt in _BINARY:
        return read_binary(stream, fmt)
    if fmt in (TEXT_FLOAT_FORMAT, TEXT_SIGN_FORMAT):
        return read_text(stream, fmt)
    raise ArrayFormatError(f"Unknown array format \"{fmt}\"")


def write_array(stream: BinaryIO, fmt: str, rows: Sequence) -> None:
    rows = [np.asarray(row, dtype=np.float64).reshape(-1) for row in rows]
    for i, row in enumerate(rows):
        if row.size == 0:
            raise ArrayFormatError(f"Row {i} has no elements")
    if fmt in _BINARY:
        write_binary(stream, fmt, rows)
    elif fmt in (TEXT_FLOAT_FORMAT, TEXT_SIGN_FORMAT):
        write_text(stream, fmt, rows)
    else:
        raise ArrayFormatError(f"Unknown array format \"{fmt}\"")


def read_array_file(path: str) -> Optional[Rows]:
    """Read an array file; missing or empty files yield ``None``."""
    if not path:
        return None
    fmt = array_format(path)
    if not os.path.isfile(path):
        logger.warning(f"Cannot open \"{path}\"")
        return None
    with open(path, "rb") as f:
        rows = read_array(f, fmt)
    if rows is not None:
        logger.debug(f"Read {len(rows)} rows ({ARRAY_FORMATS[fmt]}) from {path}")
    return rows


def write_array_file(path: str, rows: Sequence) -> None:
    fmt = array_format(path)
    if fmt not in _BINARY and len({len(row) for row in rows}) > 1:
        raise ArrayFormatError(
            f"Rows of different widths can't be read back from \"{path}\", "
            f"use a binary layout such as {FLOAT_FORMAT}"
        )
    with open(path, "wb") as f:
        write_array(f, fmt, rows)
    logger.debug(f"Wrote {len(rows)} rows ({ARRAY_FORMATS[fmt]}) to {path}")


def load_vectors(path: str, width: int = 0, kind: str = "visible") -> Tuple[Rows, int]:
    """Load vectors of a common ``width`` (0 infers it from the first vector)."""
    vectors = read_array_file(path)
    if not vectors:
        raise FileNotFoundError(f"Invalid or non-existent {kind} file \"{path}\"")
    if width == 0:
        width = len(vectors[0])
    for i, vector in enumerate(vectors):
        if len(vector) != width:
            raise ShapeError(
                f"--{kind} {width} doesn't agree with vector {i} of {len(vector)} elements"
            )
    return vectors, width
