"""Cell: raw text as typed plus the cached result of evaluating it."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from typing import Any


@dataclass
class Cell:
    """A single sheet cell.

    ``raw_value`` is the user's text; a leading ``=`` marks a formula.
    ``calculated_value`` is a pure cache of the last evaluation (``None`` when
    not yet computed) and ``error`` carries the description of the error
    sentinel in ``calculated_value``, if any. ``format`` is presentation
    metadata and never influences calculation.
    """

    raw_value: str = ""
    calculated_value: Any = None
    format: dict[str, Any] | None = field(default=None)
    error: str | None = None

    @property
    def is_formula(self) -> bool:
        return isinstance(self.raw_value, str) and self.raw_value.startswith("=") and len(self.raw_value) > 1

    @property
    def formula(self) -> str | None:
        """Formula body without the leading ``=``, or None for literals."""
        if self.is_formula:
            return self.raw_value[1:]
        return None

    def invalidated(self) -> Cell:
        """Copy of this cell with the cached result cleared."""
        return replace(self, calculated_value=None, error=None, format=copy.deepcopy(self.format))


CellMap = dict[str, Cell]


def copy_cells(cells: CellMap) -> CellMap:
    """Shallow-copy every cell so the caller's map is never mutated."""
    return {ref: replace(cell, format=copy.deepcopy(cell.format)) for ref, cell in cells.items()}
