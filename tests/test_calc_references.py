"""Tests for A1 reference helpers and range expansion."""

from __future__ import annotations

import pytest

from gridcalc import CellCoord, InvalidReferenceError, column_to_index, index_to_column, parse_ref
from gridcalc._utils import normalize_ref
from gridcalc.calc import all_references, expand_range
from gridcalc.calc._parser import parse_range_references, parse_references, range_bounds


class TestColumnConversion:
    def test_single_letters(self) -> None:
        assert column_to_index("A") == 1
        assert column_to_index("Z") == 26
        assert index_to_column(1) == "A"
        assert index_to_column(26) == "Z"

    def test_double_letters(self) -> None:
        assert column_to_index("AA") == 27
        assert column_to_index("AZ") == 52
        assert index_to_column(28) == "AB"
        assert index_to_column(702) == "ZZ"
        assert index_to_column(703) == "AAA"

    def test_lowercase_accepted(self) -> None:
        assert column_to_index("ab") == 28

    def test_round_trip(self) -> None:
        for i in range(1, 1001):
            assert column_to_index(index_to_column(i)) == i

    def test_letters_round_trip(self) -> None:
        for letters in ("A", "Z", "AA", "AZ", "BA", "ZZ", "AAA", "XFD"):
            assert index_to_column(column_to_index(letters)) == letters

    def test_invalid(self) -> None:
        with pytest.raises(InvalidReferenceError):
            column_to_index("")
        with pytest.raises(InvalidReferenceError):
            column_to_index("A1")
        with pytest.raises(InvalidReferenceError):
            index_to_column(0)


class TestParseRef:
    def test_basic(self) -> None:
        assert parse_ref("A1") == CellCoord(column=1, row=1)
        assert parse_ref("AZ12") == CellCoord(column=52, row=12)

    def test_anchors_and_case(self) -> None:
        assert parse_ref("$b$3") == CellCoord(column=2, row=3)

    @pytest.mark.parametrize("text", ["", "A", "12", "1A", "A0", "A-1", "Sheet1!A1"])
    def test_invalid(self, text: str) -> None:
        with pytest.raises(InvalidReferenceError):
            parse_ref(text)

    def test_invalid_reference_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            parse_ref("nope")

    def test_normalize(self) -> None:
        assert normalize_ref("$c$10") == "C10"


class TestExpandRange:
    def test_row_major(self) -> None:
        assert expand_range("A1", "B2") == ["A1", "B1", "A2", "B2"]

    def test_single_string_form(self) -> None:
        assert expand_range("A1:A3") == ["A1", "A2", "A3"]

    def test_reversed_range_same_cells(self) -> None:
        assert expand_range("B5", "A1") == expand_range("A1", "B5")
        assert len(expand_range("B5", "A1")) == 10

    def test_mixed_corners(self) -> None:
        assert expand_range("B1", "A2") == ["A1", "B1", "A2", "B2"]

    def test_single_cell(self) -> None:
        assert expand_range("C3", "C3") == ["C3"]

    def test_bounds(self) -> None:
        assert range_bounds("C5:A1") == (1, 1, 5, 3)

    def test_invalid(self) -> None:
        with pytest.raises(InvalidReferenceError):
            expand_range("A1", "??")


class TestReferenceExtraction:
    def test_single_refs(self) -> None:
        assert parse_references("A1+$B$2*c3") == ["A1", "B2", "C3"]

    def test_refs_in_strings_ignored(self) -> None:
        assert parse_references('"A1"&B1') == ["B1"]

    def test_function_names_not_refs(self) -> None:
        assert parse_references("LOG10(A1)") == ["A1"]

    def test_ranges(self) -> None:
        assert parse_range_references("SUM(A1:A3)+SUM(b1:c2)") == ["A1:A3", "B1:C2"]
        assert parse_references("SUM(A1:A3)") == []

    def test_all_references_expands_ranges(self) -> None:
        assert all_references("SUM(A1:A3)+B1") == ["B1", "A1", "A2", "A3"]
