"""Engine interface plus the value objects an edit-driven recalculation returns."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping, Protocol, runtime_checkable

if TYPE_CHECKING:
    from gridcalc._cell import Cell


@dataclass(frozen=True)
class CellDelta:
    """One cell whose computed value moved."""

    cell_ref: str
    old_value: Any
    new_value: Any
    formula: str | None = None


@dataclass(frozen=True)
class RecalcResult:
    """Outcome of applying a batch of edits.

    ``propagated_cells`` counts formula cells whose value actually moved,
    and ``max_chain_depth`` is the longest reader chain below the edits.
    """

    edits: dict[str, str]
    deltas: tuple[CellDelta, ...]
    total_formula_cells: int = 0
    propagated_cells: int = 0
    max_chain_depth: int = 0

    @property
    def propagation_ratio(self) -> float:
        total = self.total_formula_cells
        return self.propagated_cells / total if total else 0.0

    @property
    def changed(self) -> dict[str, Any]:
        return {delta.cell_ref: delta.new_value for delta in self.deltas}


@runtime_checkable
class CalcEngine(Protocol):
    """Anything that can load a sheet, compute it, and react to edits."""

    def load(self, cells: Mapping[str, Cell | str]) -> None:
        """Snapshot *cells* (``Cell`` objects or raw text) and index formulas."""
        ...

    def calculate(self) -> dict[str, Any]:
        """Compute every formula; returns ``{ref: value}`` for formula cells."""
        ...

    def recalculate(
        self,
        edits: Mapping[str, Any],
        tolerance: float = 1e-10,
    ) -> RecalcResult:
        """Write *edits* as raw text, then recompute only what reads them."""
        ...
