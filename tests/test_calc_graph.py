"""Tests for gridcalc.calc dependency graph and topological ordering."""

from __future__ import annotations

from gridcalc import Cell
from gridcalc.calc._graph import DependencyGraph


def _cells(**raw: str) -> dict[str, Cell]:
    return {ref: Cell(text) for ref, text in raw.items()}


class TestAddFormula:
    def test_simple_dependency(self) -> None:
        g = DependencyGraph()
        g.add_formula("B1", "=A1+1")
        assert "A1" in g.dependencies["B1"]
        assert "B1" in g.dependents["A1"]
        assert g.formulas["B1"] == "=A1+1"

    def test_range_dependency(self) -> None:
        g = DependencyGraph()
        g.add_formula("A4", "=SUM(A1:A3)")
        assert g.dependencies["A4"] == {"A1", "A2", "A3"}

    def test_absolute_references(self) -> None:
        g = DependencyGraph()
        g.add_formula("C1", "=$A$1*B$2")
        assert g.dependencies["C1"] == {"A1", "B2"}

    def test_references_in_strings_ignored(self) -> None:
        g = DependencyGraph()
        g.add_formula("B1", '="A1"&C1')
        assert g.dependencies["B1"] == {"C1"}


class TestTopologicalOrder:
    def test_empty(self) -> None:
        assert DependencyGraph().topological_order() == []

    def test_linear_chain(self) -> None:
        """A1 -> B1 -> C1 (B1=A1+1, C1=B1*2)"""
        g = DependencyGraph()
        g.add_formula("C1", "=B1*2")
        g.add_formula("B1", "=A1+1")
        assert g.topological_order() == ["B1", "C1"]

    def test_diamond(self) -> None:
        """A1 feeds B1 and C1, both feed D1."""
        g = DependencyGraph()
        g.add_formula("D1", "=B1+C1")
        g.add_formula("C1", "=A1*2")
        g.add_formula("B1", "=A1+1")
        order = g.topological_order()
        assert order.index("B1") < order.index("D1")
        assert order.index("C1") < order.index("D1")

    def test_independent_cells_sorted(self) -> None:
        g = DependencyGraph()
        for ref in ("C1", "A1", "B1"):
            g.add_formula(ref, "=1")
        assert g.topological_order() == ["A1", "B1", "C1"]

    def test_cycle_members_appended_lexicographically(self) -> None:
        g = DependencyGraph()
        g.add_formula("B1", "=A1+1")
        g.add_formula("A1", "=B1+1")
        g.add_formula("C1", "=A1")
        g.add_formula("D1", "=5")
        assert g.topological_order() == ["D1", "A1", "B1", "C1"]

    def test_self_reference(self) -> None:
        g = DependencyGraph()
        g.add_formula("A1", "=A1+1")
        g.add_formula("B1", "=1")
        assert g.topological_order() == ["B1", "A1"]
        assert g.cycle_members() == {"A1"}


class TestCycleMembers:
    def test_no_cycle(self) -> None:
        g = DependencyGraph()
        g.add_formula("B1", "=A1")
        assert g.cycle_members() == set()

    def test_cycle_and_downstream(self) -> None:
        g = DependencyGraph()
        g.add_formula("A1", "=B1")
        g.add_formula("B1", "=A1")
        g.add_formula("C1", "=B1")
        g.add_formula("D1", "=E1")
        assert g.cycle_members() == {"A1", "B1", "C1"}


class TestAffectedCells:
    def test_single_change(self) -> None:
        """Changing A1 affects B1 which affects C1."""
        g = DependencyGraph()
        g.add_formula("B1", "=A1+1")
        g.add_formula("C1", "=B1*2")
        assert g.affected_cells({"A1"}) == ["B1", "C1"]

    def test_unrelated_cells_untouched(self) -> None:
        g = DependencyGraph()
        g.add_formula("B1", "=A1+1")
        g.add_formula("B2", "=A2+1")
        assert g.affected_cells({"A1"}) == ["B1"]

    def test_range_dependents(self) -> None:
        g = DependencyGraph()
        g.add_formula("B1", "=SUM(A1:A10)")
        assert g.affected_cells({"A5"}) == ["B1"]

    def test_changed_cell_itself_excluded(self) -> None:
        g = DependencyGraph()
        g.add_formula("B1", "=A1")
        g.add_formula("C1", "=B1")
        assert g.affected_cells({"B1"}) == ["C1"]

    def test_no_dependents(self) -> None:
        g = DependencyGraph()
        g.add_formula("B1", "=A1")
        assert g.affected_cells({"Z9"}) == []


class TestMaxDepth:
    def test_chain(self) -> None:
        g = DependencyGraph()
        g.add_formula("B1", "=A1")
        g.add_formula("C1", "=B1")
        g.add_formula("D1", "=C1")
        assert g.max_depth({"A1"}) == 3
        assert g.max_depth({"C1"}) == 1

    def test_no_roots(self) -> None:
        assert DependencyGraph().max_depth(set()) == 0

    def test_cycle_members_not_counted(self) -> None:
        g = DependencyGraph()
        g.add_formula("B1", "=A1+C1")
        g.add_formula("C1", "=B1")
        assert g.max_depth({"A1"}) == 0


class TestFromCells:
    def test_all_formula_cells(self) -> None:
        cells = _cells(A1="10", B1="=A1*2", C1="=B1+A1")
        g = DependencyGraph.from_cells(cells)
        assert set(g.formulas) == {"B1", "C1"}
        assert g.topological_order() == ["B1", "C1"]

    def test_literal_references_are_not_edges(self) -> None:
        cells = _cells(A1="10", B1="=A1*2")
        g = DependencyGraph.from_cells(cells)
        assert g.dependencies["B1"] == set()

    def test_candidates_restrict_edges(self) -> None:
        cells = _cells(A1="=1", B1="=A1+1", C1="=B1+1")
        g = DependencyGraph.from_cells(cells, ["c1", "B1"])
        assert set(g.formulas) == {"B1", "C1"}
        assert g.dependencies["B1"] == set()
        assert g.topological_order() == ["B1", "C1"]

    def test_unknown_and_literal_candidates_dropped(self) -> None:
        cells = _cells(A1="5", B1="=A1")
        g = DependencyGraph.from_cells(cells, ["A1", "B1", "Q7"])
        assert set(g.formulas) == {"B1"}

    def test_small_range_expanded(self) -> None:
        cells = _cells(A1="=1", A2="=2", A3="=SUM(A1:A2)")
        g = DependencyGraph.from_cells(cells)
        assert g.dependencies["A3"] == {"A1", "A2"}

    def test_large_range_matched_by_bounds(self) -> None:
        cells = _cells(A2="=1", A3="=2", C5="=3", B1="=SUM(A1:A1048576)")
        g = DependencyGraph.from_cells(cells)
        assert g.dependencies["B1"] == {"A2", "A3"}
        order = g.topological_order()
        assert order.index("A2") < order.index("B1")
        assert order.index("A3") < order.index("B1")

    def test_cycle_through_range(self) -> None:
        cells = _cells(A1="1", A2="=SUM(A1:A3)", A3="=A2")
        g = DependencyGraph.from_cells(cells)
        assert g.cycle_members() == {"A2", "A3"}
