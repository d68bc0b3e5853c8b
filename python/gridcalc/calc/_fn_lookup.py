"""Lookup builtins: VLOOKUP, HLOOKUP, INDEX, MATCH, XLOOKUP, CHOOSE."""

from __future__ import annotations

import datetime
from typing import Any, Callable

from gridcalc.calc._coerce import bool_arg, check_arity, int_arg, opt
from gridcalc.calc._criteria import has_wildcards, wildcard_match
from gridcalc.calc._values import ExcelError, RangeValue, as_range, is_blank, pydate_to_serial


def _lookup_key(v: Any) -> tuple[int, Any] | None:
    """Sortable key: numbers < text < booleans. Blanks and errors have none."""
    if is_blank(v) or isinstance(v, ExcelError):
        return None
    if isinstance(v, bool):
        return (2, v)
    if isinstance(v, (int, float)):
        return (0, float(v))
    if isinstance(v, datetime.date):
        return (0, float(pydate_to_serial(v)))
    if isinstance(v, RangeValue):
        return _lookup_key(v.values[0]) if v.values else None
    return (1, str(v).lower())


def _exact_index(lookup_value: Any, values: list[Any], reverse: bool = False,
                 wildcards: bool = True) -> int | None:
    """0-based position of the first exact match (case-insensitive text)."""
    if isinstance(lookup_value, RangeValue):
        lookup_value = lookup_value.values[0] if lookup_value.values else None
    key = _lookup_key(lookup_value)
    if key is None:
        return None
    use_wildcards = wildcards and key[0] == 1 and (has_wildcards(lookup_value) or "~" in lookup_value)
    indices = range(len(values) - 1, -1, -1) if reverse else range(len(values))
    for i in indices:
        v = values[i]
        if use_wildcards:
            if isinstance(v, str) and wildcard_match(lookup_value, v):
                return i
            continue
        if _lookup_key(v) == key:
            return i
    return None


def _approximate_index(lookup_value: Any, values: list[Any], larger: bool = False) -> int | None:
    """Position of the largest value <= lookup (or smallest >= when *larger*).

    Only values of the lookup value's type are considered.
    """
    key = _lookup_key(lookup_value)
    if key is None:
        return None
    best_idx: int | None = None
    best_key: tuple[int, Any] | None = None
    for i, v in enumerate(values):
        vk = _lookup_key(v)
        if vk is None or vk[0] != key[0]:
            continue
        if larger:
            if vk >= key and (best_key is None or vk < best_key):
                best_idx, best_key = i, vk
        elif vk <= key and (best_key is None or vk >= best_key):
            best_idx, best_key = i, vk
    return best_idx


def _builtin_vlookup(args: list[Any]) -> Any:
    """VLOOKUP(lookup_value, table_array, col_index_num, [range_lookup]).

    range_lookup: FALSE (or 0) = exact match, TRUE (or 1, default) = approximate.
    Approximate match returns the row holding the largest first-column value
    <= lookup_value.
    """
    check_arity("VLOOKUP", args, 3, 4)
    lookup_value = args[0]
    table = as_range(args[1])
    col_index_num = int_arg(args, 2)
    range_lookup = bool_arg(args, 3, True)

    if col_index_num < 1:
        return ExcelError.VALUE
    if col_index_num > table.n_cols:
        return ExcelError.REF

    first_col = table.column(1)
    if range_lookup:
        idx = _approximate_index(lookup_value, first_col)
    else:
        idx = _exact_index(lookup_value, first_col)
    if idx is None:
        return ExcelError.NA
    return table.get(idx + 1, col_index_num)


def _builtin_hlookup(args: list[Any]) -> Any:
    """HLOOKUP(lookup_value, table_array, row_index_num, [range_lookup]).

    Searches the first row of a table and returns a value from the specified row.
    """
    check_arity("HLOOKUP", args, 3, 4)
    lookup_value = args[0]
    table = as_range(args[1])
    row_index_num = int_arg(args, 2)
    range_lookup = bool_arg(args, 3, True)

    if row_index_num < 1:
        return ExcelError.VALUE
    if row_index_num > table.n_rows:
        return ExcelError.REF

    first_row = table.row(1)
    if range_lookup:
        idx = _approximate_index(lookup_value, first_row)
    else:
        idx = _exact_index(lookup_value, first_row)
    if idx is None:
        return ExcelError.NA
    return table.get(row_index_num, idx + 1)


def _builtin_index(args: list[Any]) -> Any:
    """INDEX(array, row_num, [col_num]).

    A row or column number of 0 selects the entire column or row.
    """
    check_arity("INDEX", args, 2, 3)
    array = as_range(args[0])
    row_num = int_arg(args, 1)
    col_num = opt(args, 2)

    if col_num is None:
        if array.n_rows == 1 and array.n_cols > 1:
            # 1D horizontal range: row_num acts as column index
            row_num, col = 1, row_num
        elif array.n_cols == 1:
            col = 1
        else:
            col = 0
    else:
        col = int_arg(args, 2)

    if row_num < 0 or col < 0 or row_num > array.n_rows or col > array.n_cols:
        return ExcelError.REF
    if row_num == 0 and col == 0:
        return array
    if row_num == 0:
        return RangeValue.column_of(array.column(col))
    if col == 0:
        return RangeValue.from_rows([array.row(row_num)])
    return array.get(row_num, col)


def _builtin_match(args: list[Any]) -> Any:
    """MATCH(lookup_value, lookup_array, [match_type]).

    match_type: 1 (default) = largest value <=, 0 = exact, -1 = smallest value >=.
    """
    check_arity("MATCH", args, 2, 3)
    lookup_value = args[0]
    values = as_range(args[1]).values
    match_type = int_arg(args, 2, 1)

    if match_type == 0:
        idx = _exact_index(lookup_value, values)
    elif match_type > 0:
        idx = _approximate_index(lookup_value, values)
    else:
        idx = _approximate_index(lookup_value, values, larger=True)
    if idx is None:
        return ExcelError.NA
    return idx + 1  # 1-based


def _builtin_xlookup(args: list[Any]) -> Any:
    """XLOOKUP(lookup_value, lookup_array, return_array, [if_not_found], [match_mode], [search_mode]).

    match_mode: 0=exact (default), -1=next smaller, 1=next larger, 2=wildcard.
    search_mode: 1=first-to-last (default), -1=last-to-first.
    """
    check_arity("XLOOKUP", args, 3, 6)
    lookup_value = args[0]
    lookup = as_range(args[1])
    returns = as_range(args[2])
    if_not_found = opt(args, 3, ExcelError.NA)
    match_mode = int_arg(args, 4, 0)
    search_mode = int_arg(args, 5, 1)

    if match_mode not in (0, -1, 1, 2) or search_mode not in (1, -1):
        return ExcelError.VALUE

    lookup_vals = lookup.values
    if match_mode in (0, 2):
        idx = _exact_index(lookup_value, lookup_vals, reverse=search_mode == -1,
                           wildcards=match_mode == 2)
    else:
        idx = _approximate_index(lookup_value, lookup_vals, larger=match_mode == 1)
    if idx is None:
        return if_not_found

    # Vertical lookup into a multi-column return array yields the whole row
    if lookup.n_cols == 1 and returns.n_rows == lookup.n_rows and returns.n_cols > 1:
        return RangeValue.from_rows([returns.row(idx + 1)])
    if lookup.n_rows == 1 and returns.n_cols == lookup.n_cols and returns.n_rows > 1:
        return RangeValue.column_of(returns.column(idx + 1))
    if idx >= len(returns.values):
        return if_not_found
    return returns.values[idx]


def _builtin_choose(args: list[Any]) -> Any:
    """CHOOSE(index_num, value1, value2, ...). Only the chosen value's error propagates."""
    check_arity("CHOOSE", args, 2, None)
    if isinstance(args[0], ExcelError):
        return args[0]
    index_num = int_arg(args, 0)
    if index_num < 1 or index_num > len(args) - 1:
        return ExcelError.VALUE
    return args[index_num]


_builtin_choose._error_aware = True  # type: ignore[attr-defined]


LOOKUP_BUILTINS: dict[str, Callable[..., Any]] = {
    "VLOOKUP": _builtin_vlookup,
    "HLOOKUP": _builtin_hlookup,
    "INDEX": _builtin_index,
    "MATCH": _builtin_match,
    "XLOOKUP": _builtin_xlookup,
    "CHOOSE": _builtin_choose,
}
