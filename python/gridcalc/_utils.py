"""A1 reference helpers: column letters, coordinates and reference parsing."""

from __future__ import annotations

import re
from typing import NamedTuple

_REF_RE = re.compile(r"^\$?([A-Z]+)\$?([0-9]+)$")


class InvalidReferenceError(ValueError):
    """Raised when text does not match the ``[A-Z]+[0-9]+`` reference pattern."""


class CellCoord(NamedTuple):
    """1-based column/row coordinate of a single cell."""

    column: int
    row: int


def column_to_index(letters: str) -> int:
    """Convert column letters to a 1-based index (``A`` -> 1, ``AA`` -> 27)."""
    if not letters or not letters.isalpha() or not letters.isascii():
        raise InvalidReferenceError(f"Invalid column letters: {letters!r}")
    index = 0
    for ch in letters.upper():
        index = index * 26 + (ord(ch) - 64)
    return index


def index_to_column(index: int) -> str:
    """Convert a 1-based column index to letters (1 -> ``A``, 28 -> ``AB``)."""
    if index < 1:
        raise InvalidReferenceError(f"Column index must be >= 1, got {index}")
    letters = ""
    while index > 0:
        index, rem = divmod(index - 1, 26)
        letters = chr(65 + rem) + letters
    return letters


def parse_ref(text: str) -> CellCoord:
    """Parse ``"AZ12"`` (``$`` anchors allowed) into a :class:`CellCoord`."""
    m = _REF_RE.match(text.strip().upper())
    if not m:
        raise InvalidReferenceError(f"Invalid cell reference: {text!r}")
    row = int(m.group(2))
    if row < 1:
        raise InvalidReferenceError(f"Invalid cell reference: {text!r}")
    return CellCoord(column_to_index(m.group(1)), row)


def a1_to_rowcol(a1: str) -> tuple[int, int]:
    """``"B3"`` -> ``(3, 2)``."""
    coord = parse_ref(a1)
    return coord.row, coord.column


def rowcol_to_a1(row: int, col: int) -> str:
    """``(3, 2)`` -> ``"B3"``."""
    if row < 1:
        raise InvalidReferenceError(f"Row must be >= 1, got {row}")
    return f"{index_to_column(col)}{row}"


def normalize_ref(text: str) -> str:
    """Canonical storage key for a reference: uppercase, no ``$`` anchors."""
    coord = parse_ref(text)
    return rowcol_to_a1(coord.row, coord.column)
