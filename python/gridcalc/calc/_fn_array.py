"""Array builtins: reshaping, sorting, filtering and generating arrays."""

from __future__ import annotations

import datetime
from typing import Any, Callable

from gridcalc.calc._coerce import bool_arg, check_arity, int_arg, num_arg, opt, to_bool
from gridcalc.calc._values import (
    ErrorSignal,
    ExcelError,
    RangeValue,
    as_range,
    is_blank,
    pydate_to_serial,
)


def _sort_key(v: Any) -> tuple[int, Any]:
    """Ascending order: numbers, text (case-insensitive), booleans, errors, blanks."""
    if isinstance(v, bool):
        return (2, v)
    if isinstance(v, (int, float)):
        return (0, float(v))
    if isinstance(v, datetime.date):
        return (0, float(pydate_to_serial(v)))
    if isinstance(v, str):
        return (1, v.lower())
    if isinstance(v, ExcelError):
        return (3, v.code)
    return (4, 0)


def _unique_key(v: Any) -> tuple[int, Any]:
    if is_blank(v):
        return (4, 0)
    return _sort_key(v)


def _builtin_transpose(args: list[Any]) -> RangeValue:
    check_arity("TRANSPOSE", args, 1)
    return as_range(args[0]).transpose()


def _builtin_sort(args: list[Any]) -> RangeValue | ExcelError:
    """SORT(array, [sort_index], [sort_order], [by_col])."""
    check_arity("SORT", args, 1, 4)
    array = as_range(args[0])
    sort_index = int_arg(args, 1, 1)
    order = int_arg(args, 2, 1)
    by_col = bool_arg(args, 3, False)
    if order not in (1, -1):
        return ExcelError.VALUE

    if by_col:
        array = array.transpose()
    if sort_index < 1 or sort_index > array.n_cols:
        return ExcelError.VALUE
    rows = array.rows()
    # Blanks stay last in either direction
    blanks = [r for r in rows if is_blank(r[sort_index - 1])]
    others = [r for r in rows if not is_blank(r[sort_index - 1])]
    others.sort(key=lambda r: _sort_key(r[sort_index - 1]), reverse=order == -1)
    result = RangeValue.from_rows(others + blanks)
    return result.transpose() if by_col else result


def _builtin_unique(args: list[Any]) -> RangeValue:
    """UNIQUE(array, [by_col], [exactly_once]). Text compares case-insensitively."""
    check_arity("UNIQUE", args, 1, 3)
    array = as_range(args[0])
    by_col = bool_arg(args, 1, False)
    exactly_once = bool_arg(args, 2, False)

    if by_col:
        array = array.transpose()
    counts: dict[tuple, int] = {}
    first: dict[tuple, list[Any]] = {}
    for row in array.rows():
        key = tuple(_unique_key(v) for v in row)
        counts[key] = counts.get(key, 0) + 1
        first.setdefault(key, row)
    rows = [first[k] for k in first if not exactly_once or counts[k] == 1]
    if not rows:
        raise ErrorSignal(ExcelError.NA)
    result = RangeValue.from_rows(rows)
    return result.transpose() if by_col else result


def _builtin_filter(args: list[Any]) -> Any:
    """FILTER(array, include, [if_empty]).

    *include* is a column of booleans matching the array's rows, or a row of
    booleans matching its columns. When nothing is kept, *if_empty* is
    returned (``#N/A`` when omitted).
    """
    check_arity("FILTER", args, 2, 3)
    array = as_range(args[0])
    include = as_range(args[1])
    if_empty = opt(args, 2, ExcelError.NA)

    flags: list[bool] = []
    for v in include.values:
        if isinstance(v, ExcelError):
            raise ErrorSignal(v)
        flags.append(False if is_blank(v) else to_bool(v))

    if include.n_cols == 1 and include.n_rows == array.n_rows:
        rows = [row for row, keep in zip(array.rows(), flags) if keep]
        if not rows:
            return if_empty
        return RangeValue.from_rows(rows)
    if include.n_rows == 1 and include.n_cols == array.n_cols:
        cols = [array.column(c + 1) for c, keep in enumerate(flags) if keep]
        if not cols:
            return if_empty
        return RangeValue.from_rows(cols).transpose()
    return ExcelError.VALUE


def _builtin_sequence(args: list[Any]) -> RangeValue | ExcelError:
    """SEQUENCE(rows, [columns], [start], [step]). Row-major fill."""
    check_arity("SEQUENCE", args, 1, 4)
    n_rows = int_arg(args, 0)
    n_cols = int_arg(args, 1, 1)
    start = num_arg(args, 2, 1)
    step = num_arg(args, 3, 1)
    if n_rows < 1 or n_cols < 1:
        return ExcelError.VALUE
    values = [start + step * i for i in range(n_rows * n_cols)]
    return RangeValue(values=values, n_rows=n_rows, n_cols=n_cols)


def _numeric_matrix(value: Any) -> RangeValue:
    matrix = as_range(value)
    for v in matrix.values:
        if isinstance(v, ExcelError):
            raise ErrorSignal(v)
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ErrorSignal(ExcelError.VALUE)
    return matrix


def _builtin_mmult(args: list[Any]) -> RangeValue | ExcelError:
    """MMULT(array1, array2). Columns of array1 must equal rows of array2."""
    check_arity("MMULT", args, 2)
    a = _numeric_matrix(args[0])
    b = _numeric_matrix(args[1])
    if a.n_cols != b.n_rows:
        return ExcelError.VALUE
    rows = [
        [sum(a.get(i, k) * b.get(k, j) for k in range(1, a.n_cols + 1))
         for j in range(1, b.n_cols + 1)]
        for i in range(1, a.n_rows + 1)
    ]
    return RangeValue.from_rows(rows)


ARRAY_BUILTINS: dict[str, Callable[..., Any]] = {
    "TRANSPOSE": _builtin_transpose,
    "SORT": _builtin_sort,
    "UNIQUE": _builtin_unique,
    "FILTER": _builtin_filter,
    "SEQUENCE": _builtin_sequence,
    "MMULT": _builtin_mmult,
}
