"""Recalculation scheduling and the stateful spreadsheet engine."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from gridcalc._cell import Cell, CellMap, copy_cells
from gridcalc._utils import InvalidReferenceError, normalize_ref
from gridcalc.calc._coerce import to_text
from gridcalc.calc._evaluator import FormulaEvaluator
from gridcalc.calc._graph import DependencyGraph
from gridcalc.calc._protocol import CellDelta, RecalcResult
from gridcalc.calc._values import ExcelError, RangeValue
from gridcalc.config import Settings

logger = logging.getLogger(__name__)


def _values_differ(a: Any, b: Any, tolerance: float) -> bool:
    """Whether *a* -> *b* counts as a change (numbers within *tolerance* do not)."""
    if a is None or b is None:
        return a is not b
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is not type(b) or a != b
    numeric = (int, float)
    if isinstance(a, numeric) and isinstance(b, numeric):
        return abs(a - b) > tolerance
    return a != b


def _error_text(value: Any) -> str | None:
    if isinstance(value, ExcelError):
        return value.description
    if isinstance(value, RangeValue) and value.values and isinstance(value.values[0], ExcelError):
        return value.values[0].description
    return None


def schedule_recalculation(cell_ids: Iterable[str], cells: CellMap) -> list[str]:
    """Evaluation order for the formula cells among *cell_ids*.

    References are discovered by scanning formula text and only those that
    point at other candidates become edges. Cells caught in a cycle come
    last, in lexicographic order.
    """
    return DependencyGraph.from_cells(cells, cell_ids).topological_order()


def _run_pass(order: list[str], cells: CellMap, evaluator: FormulaEvaluator) -> dict[str, Any]:
    """Evaluate *order* against *cells*, writing each result onto its cell.

    Every cell in *order* must already be invalidated. A cell's result is
    stored before the next cell is evaluated, so later cells read it rather
    than re-deriving it.
    """
    cache: dict[str, Any] = {}
    results: dict[str, Any] = {}
    for ref in order:
        cell = cells[ref]
        value = evaluator.evaluate(cell.formula, cells, cell_ref=ref, cache=cache)
        cell.calculated_value = value
        cell.error = _error_text(value)
        cache[ref] = value
        results[ref] = value
    return results


def _working_copy(cells: CellMap) -> CellMap:
    """Copy of *cells* keyed by canonical refs (``a1`` and ``$A$1`` become ``A1``)."""
    work: CellMap = {}
    for ref, cell in copy_cells(cells).items():
        try:
            key = normalize_ref(ref)
        except InvalidReferenceError:
            logger.debug("Keeping non-reference key %r as given", ref)
            key = ref
        work[key] = cell
    return work


def recalculate_all(cells: CellMap, *, settings: Settings | None = None) -> CellMap:
    """Recompute every formula cell; return a new map (input untouched).

    Keys of the returned map are canonical uppercase references.
    """
    work = {ref: cell.invalidated() if cell.is_formula else cell for ref, cell in _working_copy(cells).items()}
    order = schedule_recalculation(work.keys(), work)
    logger.debug("Recalculating %d formula cells", len(order))
    _run_pass(order, work, FormulaEvaluator(settings=settings))
    return work


def recalculate_subset(cell_ids: Iterable[str], cells: CellMap, *,
                       settings: Settings | None = None) -> CellMap:
    """Recompute only *cell_ids*; return a new map (input untouched).

    Formula cells outside the candidate set keep their stored
    ``calculated_value``. Ids that are not in *cells* are ignored. Keys are
    canonicalised as in ``recalculate_all``.
    """
    work = _working_copy(cells)
    candidates: list[str] = []
    for ref in cell_ids:
        try:
            key = normalize_ref(ref)
        except InvalidReferenceError:
            key = ref
        if key not in work:
            logger.debug("Skipping unknown cell %s", ref)
            continue
        work[key] = work[key].invalidated()
        candidates.append(key)
    order = schedule_recalculation(candidates, work)
    logger.debug("Recalculating %d of %d candidate cells", len(order), len(candidates))
    _run_pass(order, work, FormulaEvaluator(settings=settings))
    return work


def evaluate(formula_text: str, cells: CellMap, *, settings: Settings | None = None) -> Any:
    """Evaluate one formula (leading ``=`` optional) against a snapshot of *cells*."""
    return FormulaEvaluator(settings=settings).evaluate(formula_text, cells)


# ---------------------------------------------------------------------------
# Stateful engine
# ---------------------------------------------------------------------------


class SpreadsheetEngine:
    """Holds a cell map and recalculates it in response to edits.

    Usage::

        engine = SpreadsheetEngine()
        engine.load({"A1": "10", "B1": "=A1*2"})
        results = engine.calculate()
        recalc = engine.recalculate({"A1": "42"})
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._cells: CellMap = {}
        self._graph = DependencyGraph()
        self._evaluator = FormulaEvaluator(settings=settings)
        self._loaded = False

    @property
    def cells(self) -> CellMap:
        """The current cell map (treat as read-only)."""
        return self._cells

    def load(self, cells: Mapping[str, Cell | str]) -> None:
        """Copy *cells* (``Cell`` objects or raw text) and build the graph."""
        self._cells = {}
        for ref, cell in cells.items():
            if not isinstance(cell, Cell):
                cell = Cell(raw_value=cell)
            self._cells[normalize_ref(ref)] = cell
        self._cells = copy_cells(self._cells)
        self._rebuild_graph()
        self._loaded = True

    def _rebuild_graph(self) -> None:
        self._graph = DependencyGraph()
        for ref, cell in self._cells.items():
            if cell.is_formula:
                self._graph.add_formula(ref, cell.formula)

    def set_cell(self, ref: str, raw: Any) -> None:
        """Replace one cell's raw text without recalculating."""
        key = normalize_ref(ref)
        raw_text = raw if isinstance(raw, str) else to_text(raw)
        cell = self._cells.get(key)
        if cell is None:
            self._cells[key] = Cell(raw_value=raw_text)
        else:
            self._cells[key] = Cell(raw_value=raw_text, format=cell.format)
        self._rebuild_graph()

    def value(self, ref: str) -> Any:
        """Typed value of one cell."""
        return self._evaluator.value_of(normalize_ref(ref), self._cells)

    def calculate(self) -> dict[str, Any]:
        """Compute every formula cell, readers after what they read.

        Returns ``{ref: value}`` for the formula cells.
        """
        if not self._loaded:
            raise RuntimeError("calculate() needs a sheet; call load() first")

        order = self._graph.topological_order()
        for ref in order:
            self._cells[ref] = self._cells[ref].invalidated()
        return _run_pass(order, self._cells, self._evaluator)

    def recalculate(
        self,
        edits: Mapping[str, Any],
        tolerance: float = 1e-10,
    ) -> RecalcResult:
        """Apply raw-text edits and recompute the cells that depend on them."""
        if not self._loaded:
            raise RuntimeError("recalculate() needs a sheet; call load() first")

        # Values before the edits, to diff against afterwards
        old_values: dict[str, Any] = {
            ref: cell.calculated_value for ref, cell in self._cells.items() if cell.is_formula
        }

        applied: dict[str, str] = {}
        for ref, raw in edits.items():
            try:
                key = normalize_ref(ref)
            except InvalidReferenceError:
                logger.debug("Ignoring edit to invalid reference %r", ref)
                continue
            self.set_cell(key, raw)
            applied[key] = self._cells[key].raw_value

        # Edited formula cells are recomputed too, not just their dependents
        changed = set(applied)
        affected = set(self._graph.affected_cells(changed)) | (changed & set(self._graph.formulas))
        order = [ref for ref in self._graph.topological_order() if ref in affected]
        for ref in order:
            self._cells[ref] = self._cells[ref].invalidated()
        _run_pass(order, self._cells, self._evaluator)

        # Diff
        deltas: list[CellDelta] = []
        propagated = 0
        for ref in order:
            old_val = old_values.get(ref)
            new_val = self._cells[ref].calculated_value
            if _values_differ(old_val, new_val, tolerance):
                propagated += 1
                deltas.append(CellDelta(
                    cell_ref=ref,
                    old_value=old_val,
                    new_value=new_val,
                    formula=self._graph.formulas.get(ref),
                ))

        return RecalcResult(
            edits=applied,
            deltas=tuple(deltas),
            total_formula_cells=len(self._graph.formulas),
            propagated_cells=propagated,
            max_chain_depth=self._graph.max_depth(changed),
        )
