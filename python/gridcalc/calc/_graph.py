"""Formula dependency graph: edges between cells, evaluation order, cycles."""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterable

from gridcalc._cell import CellMap
from gridcalc._utils import InvalidReferenceError, a1_to_rowcol
from gridcalc.calc._parser import (
    all_references,
    expand_range,
    parse_range_references,
    parse_references,
    range_bounds,
)

logger = logging.getLogger(__name__)


class DependencyGraph:
    """Reads-from / read-by edges between cells, keyed by canonical ``"A1"`` refs.

    Built fresh for every recalculation pass; nothing here outlives one pass.
    """

    __slots__ = ("dependencies", "dependents", "formulas")

    def __init__(self) -> None:
        # ref -> refs its formula reads
        self.dependencies: dict[str, set[str]] = {}
        # ref -> formula refs that read it
        self.dependents: dict[str, set[str]] = {}
        # ref -> formula text (no leading "=")
        self.formulas: dict[str, str] = {}

    def add_formula(self, cell_ref: str, formula: str) -> None:
        """Register *cell_ref*'s formula with an edge to every cell it mentions."""
        try:
            refs = all_references(formula)
        except InvalidReferenceError:
            refs = []
        self._add(cell_ref, formula, refs)

    def _add(self, cell_ref: str, formula: str, refs: Iterable[str]) -> None:
        reads = set(refs)
        self.formulas[cell_ref] = formula
        self.dependencies[cell_ref] = reads
        for ref in reads:
            self.dependents.setdefault(ref, set()).add(cell_ref)

    def _kahn(self) -> tuple[list[str], set[str]]:
        """Kahn's algorithm over formula cells; returns ``(ordered, unplaced)``."""
        nodes = set(self.formulas)
        # Self-references count, so a cell reading itself never becomes ready
        waiting = {ref: len(self.dependencies.get(ref, set()) & nodes) for ref in nodes}
        ready: deque[str] = deque(sorted(ref for ref, n in waiting.items() if n == 0))

        ordered: list[str] = []
        while ready:
            ref = ready.popleft()
            ordered.append(ref)
            for reader in sorted(self.dependents.get(ref, ())):
                if reader not in nodes or reader == ref:
                    continue
                waiting[reader] -= 1
                if waiting[reader] == 0:
                    ready.append(reader)
        return ordered, nodes.difference(ordered)

    def topological_order(self) -> list[str]:
        """Formula cells, each after everything it reads.

        Ties break lexicographically so the order is deterministic. Cells
        that never become ready sit on or behind a cycle; they go last in
        lexicographic order and each evaluates to ``#CIRCULAR!``.
        """
        ordered, stuck = self._kahn()
        if stuck:
            logger.debug("Circular references among %d cells: %s", len(stuck), sorted(stuck))
            ordered.extend(sorted(stuck))
        return ordered

    def cycle_members(self) -> set[str]:
        """Formula cells that sit on a cycle or depend on one."""
        return self._kahn()[1]

    def affected_cells(self, changed_cells: set[str]) -> list[str]:
        """Formula cells that transitively read any of *changed_cells*.

        The changed cells themselves are excluded. Result is in evaluation
        order.
        """
        seen = set(changed_cells)
        frontier: deque[str] = deque(changed_cells)
        while frontier:
            for reader in self.dependents.get(frontier.popleft(), ()):
                if reader not in seen:
                    seen.add(reader)
                    frontier.append(reader)
        hit = (seen - set(changed_cells)) & set(self.formulas)
        return [ref for ref in self.topological_order() if ref in hit]

    def max_depth(self, roots: set[str]) -> int:
        """Length of the longest reader chain starting at *roots* (cycles skipped)."""
        if not roots:
            return 0
        skip = self.cycle_members()
        level = dict.fromkeys(roots, 0)
        frontier: deque[str] = deque(roots)
        deepest = 0
        while frontier:
            ref = frontier.popleft()
            for reader in self.dependents.get(ref, ()):
                if reader not in self.formulas or reader in skip:
                    continue
                if level.get(reader, -1) < level[ref] + 1:
                    level[reader] = level[ref] + 1
                    deepest = max(deepest, level[reader])
                    frontier.append(reader)
        return deepest

    @classmethod
    def from_cells(cls, cells: CellMap, candidates: Iterable[str] | None = None) -> DependencyGraph:
        """Graph over the formula cells among *candidates* (default: all).

        Only references to other candidates become edges; anything outside
        the candidate set is treated as an already-resolved leaf. Ranges
        larger than the candidate set are matched by bounds instead of being
        expanded.
        """
        if candidates is None:
            members = {ref for ref, cell in cells.items() if cell.is_formula}
        else:
            members = set()
            for ref in candidates:
                key = ref.upper()
                if key in cells and cells[key].is_formula:
                    members.add(key)

        positions: dict[str, tuple[int, int]] = {}
        for ref in members:
            try:
                positions[ref] = a1_to_rowcol(ref)
            except InvalidReferenceError:
                continue

        graph = cls()
        for ref in sorted(members):
            formula = cells[ref].formula
            reads: set[str] = set()
            try:
                reads.update(r for r in parse_references(formula) if r in members)
                for rng in parse_range_references(formula):
                    reads |= _range_members(rng, members, positions)
            except InvalidReferenceError:
                logger.debug("Unreadable reference in %s: %r", ref, formula)
            graph._add(ref, formula, reads)
        return graph


def _range_members(rng: str, candidates: set[str], positions: dict[str, tuple[int, int]]) -> set[str]:
    """Candidates inside *rng*.

    Small ranges are expanded and intersected; ranges with more cells than
    there are candidates are resolved by checking each candidate against
    the bounds.
    """
    r_min, c_min, r_max, c_max = range_bounds(rng)
    if (r_max - r_min + 1) * (c_max - c_min + 1) <= len(candidates):
        return candidates.intersection(expand_range(rng))
    return {
        ref for ref, (row, col) in positions.items()
        if r_min <= row <= r_max and c_min <= col <= c_max
    }
