"""FormulaEvaluator: walks the parsed AST of a formula against a cell map.

References resolve through a single path (:meth:`FormulaEvaluator._resolve_ref`)
that threads the set of cells on the current evaluation chain, so a chain
that revisits a cell yields ``#CIRCULAR!`` instead of recursing forever.
Formula results computed along the way go into a per-pass ``cache`` dict;
the evaluator never writes onto :class:`~gridcalc.Cell` objects.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable

from gridcalc._cell import CellMap
from gridcalc.calc._coerce import coerce, to_number, to_text
from gridcalc.calc._functions import FunctionRegistry, power
from gridcalc.calc._parser import (
    ArrayLiteral,
    Binary,
    Bool,
    Call,
    ErrorLiteral,
    FormulaSyntaxError,
    Missing,
    Name,
    Number,
    Percent,
    RangeRef,
    Ref,
    Text,
    Unary,
    expand_range,
    parse_formula,
    range_shape,
)
from gridcalc.calc._values import (
    BLANK,
    ErrorSignal,
    ExcelError,
    RangeValue,
    first_error,
    is_blank,
    pydate_to_serial,
)
from gridcalc.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class _DepthExceeded(Exception):
    """Reference chain longer than ``max_reference_depth``."""


@dataclass(frozen=True)
class _Context:
    cells: CellMap
    cache: dict[str, Any]
    visited: frozenset[str]

    def entering(self, ref: str) -> _Context:
        return _Context(self.cells, self.cache, self.visited | {ref})


# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------


def _exception_to_error(exc: Exception) -> ExcelError:
    """Closest sentinel for an exception raised by coercion or library code."""
    if isinstance(exc, ErrorSignal):
        return exc.error
    if isinstance(exc, ZeroDivisionError):
        return ExcelError.DIV0
    if isinstance(exc, OverflowError):
        return ExcelError.NUM
    if isinstance(exc, IndexError):
        return ExcelError.REF
    if isinstance(exc, FormulaSyntaxError):
        return ExcelError.PARSE
    return ExcelError.VALUE


_GUARDED = (ErrorSignal, ZeroDivisionError, OverflowError, IndexError, ValueError, TypeError)


def _binary_op(left: Any, op: str, right: Any) -> Any:
    """Evaluate an arithmetic or string binary operation on scalars."""
    # Error propagation: if either operand is an error, propagate it
    err = first_error(left, right)
    if err is not None:
        return err
    try:
        if op == "&":
            return to_text(left) + to_text(right)
        lf, rf = to_number(left), to_number(right)
        if op == "+":
            return lf + rf
        if op == "-":
            return lf - rf
        if op == "*":
            return lf * rf
        if op == "/":
            return ExcelError.DIV0 if rf == 0 else lf / rf
        if op == "^":
            return power(lf, rf)
    except _GUARDED as e:
        return _exception_to_error(e)
    raise FormulaSyntaxError(f"Unknown operator {op!r}")


def _compare_key(value: Any) -> tuple[int, Any]:
    """Excel ordering for comparisons: numbers < text < booleans."""
    if isinstance(value, bool):
        return (2, value)
    if isinstance(value, (int, float)):
        return (0, float(value))
    if isinstance(value, str):
        return (1, value.lower())
    return (0, float(pydate_to_serial(value)))


def _compare(left: Any, right: Any, op: str) -> Any:
    """Evaluate a comparison operation.

    String comparisons are case-insensitive (matching Excel behavior). A blank
    operand takes the empty value of the other side's type. Values of
    different types never compare equal.
    """
    # Error propagation: if either operand is an error, propagate it
    err = first_error(left, right)
    if err is not None:
        return err
    if is_blank(left):
        left = "" if isinstance(right, str) else False if isinstance(right, bool) else 0
    if is_blank(right):
        right = "" if isinstance(left, str) else False if isinstance(left, bool) else 0
    lk, rk = _compare_key(left), _compare_key(right)
    if op == "=":
        return lk == rk
    if op == "<>":
        return lk != rk
    if op == ">":
        return lk > rk
    if op == "<":
        return lk < rk
    if op == ">=":
        return lk >= rk
    if op == "<=":
        return lk <= rk
    raise FormulaSyntaxError(f"Unknown comparison {op!r}")


_COMPARISONS = frozenset(("=", "<>", "<", ">", "<=", ">="))


def _apply_scalar(left: Any, op: str, right: Any) -> Any:
    if op in _COMPARISONS:
        return _compare(left, right, op)
    return _binary_op(left, op, right)


def _broadcast(left: Any, op: str, right: Any) -> Any:
    """Element-wise binary op over ranges/arrays (scalars broadcast).

    A 1-row or 1-column operand stretches along its unit axis; positions
    outside both operands' shapes become ``#N/A``.
    """
    a = left if isinstance(left, RangeValue) else RangeValue([left], 1, 1)
    b = right if isinstance(right, RangeValue) else RangeValue([right], 1, 1)
    n_rows = max(a.n_rows, b.n_rows)
    n_cols = max(a.n_cols, b.n_cols)

    def pick(rv: RangeValue, r: int, c: int) -> Any:
        rr = 1 if rv.n_rows == 1 else r
        cc = 1 if rv.n_cols == 1 else c
        if rr > rv.n_rows or cc > rv.n_cols:
            return ExcelError.NA
        return rv.get(rr, cc)

    values = [
        _apply_scalar(pick(a, r, c), op, pick(b, r, c))
        for r in range(1, n_rows + 1)
        for c in range(1, n_cols + 1)
    ]
    return RangeValue(values=values, n_rows=n_rows, n_cols=n_cols)


def _finalize(value: Any) -> Any:
    """Normalize a formula result: blank -> 0, NaN -> #VALUE!, inf -> #DIV/0!."""
    if isinstance(value, RangeValue):
        if len(value) == 1:
            return _finalize(value.values[0])
        return RangeValue([_finalize_scalar(v) for v in value.values], value.n_rows, value.n_cols)
    if is_blank(value):
        return 0
    return _finalize_scalar(value)


def _finalize_scalar(value: Any) -> Any:
    if isinstance(value, float):
        if math.isnan(value):
            return ExcelError.VALUE
        if math.isinf(value):
            return ExcelError.DIV0
    return value


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------


class FormulaEvaluator:
    """Evaluates formulas against a cell map.

    Usage::

        evaluator = FormulaEvaluator()
        evaluator.evaluate("SUM(A1:A3)*2", cells)
        evaluator.value_of("B1", cells, cache)
    """

    def __init__(self, functions: FunctionRegistry | None = None,
                 settings: Settings | None = None) -> None:
        self._functions = functions if functions is not None else FunctionRegistry()
        self._settings = settings if settings is not None else default_settings

    @property
    def functions(self) -> FunctionRegistry:
        return self._functions

    def evaluate(self, formula: str, cells: CellMap, *, cell_ref: str | None = None,
                 cache: dict[str, Any] | None = None) -> Any:
        """Evaluate formula text (leading ``=`` optional) against *cells*.

        *cell_ref* names the cell that owns the formula, so a reference back to
        it is reported as circular. Formula errors are returned as
        :class:`ExcelError` values; nothing raises.
        """
        visited = frozenset((cell_ref.upper(),)) if cell_ref else frozenset()
        ctx = _Context(cells, cache if cache is not None else {}, visited)
        return self._bounded(lambda: self._evaluate_top(formula, ctx, cell_ref), cell_ref)

    def value_of(self, ref: str, cells: CellMap, cache: dict[str, Any] | None = None) -> Any:
        """Typed value of one cell: its coerced literal, or its formula's result.

        A formula cell's stored ``calculated_value`` is reused when present;
        otherwise the formula is evaluated and the result put in *cache*.
        """
        ctx = _Context(cells, cache if cache is not None else {}, frozenset())
        return self._bounded(lambda: self._resolve_ref(ref.upper(), ctx), ref)

    def _bounded(self, run: Callable[[], Any], ref: str | None) -> Any:
        """Run an evaluation, turning an exhausted depth bound into ``#ERROR!``."""
        try:
            return run()
        except _DepthExceeded:
            logger.debug("Reference chain deeper than %d levels at %s",
                         self._settings.max_reference_depth, ref)
            return ExcelError.PARSE
        except RecursionError:
            logger.debug("Recursion limit hit while evaluating %s", ref)
            return ExcelError.PARSE

    # ------------------------------------------------------------------
    # Formula evaluation
    # ------------------------------------------------------------------

    def _evaluate_top(self, formula: str, ctx: _Context, cell_ref: str | None) -> Any:
        try:
            node = parse_formula(formula, self._settings.max_nesting_depth)
            return _finalize(self._eval(node, ctx))
        except FormulaSyntaxError as e:
            logger.debug("Cannot parse formula %r in %s: %s", formula, cell_ref, e)
            return ExcelError.PARSE
        except _GUARDED as e:
            logger.debug("Error evaluating %r in %s: %s", formula, cell_ref, e)
            return _exception_to_error(e)

    def _eval(self, node: Any, ctx: _Context) -> Any:
        if isinstance(node, Number):
            return node.value
        if isinstance(node, Text):
            return node.value
        if isinstance(node, Bool):
            return node.value
        if isinstance(node, Ref):
            return self._resolve_ref(node.ref, ctx)
        if isinstance(node, RangeRef):
            return self._resolve_range(node.start, node.end, ctx)
        if isinstance(node, Binary):
            return self._eval_binary(node, ctx)
        if isinstance(node, Call):
            return self._eval_function(node, ctx)
        if isinstance(node, Unary):
            return self._eval_unary(node, ctx)
        if isinstance(node, Percent):
            return self._map(self._eval(node.operand, ctx), lambda v: _binary_op(v, "/", 100))
        if isinstance(node, ErrorLiteral):
            return ExcelError.of(node.code)
        if isinstance(node, ArrayLiteral):
            return self._eval_array(node, ctx)
        if isinstance(node, Name):
            # Bare identifiers evaluate to their own text
            return node.name
        if isinstance(node, Missing):
            return BLANK
        raise FormulaSyntaxError(f"Unknown node {node!r}")

    def _eval_binary(self, node: Binary, ctx: _Context) -> Any:
        left = self._eval(node.left, ctx)
        right = self._eval(node.right, ctx)
        if isinstance(left, RangeValue) or isinstance(right, RangeValue):
            return _broadcast(left, node.op, right)
        return _apply_scalar(left, node.op, right)

    def _eval_unary(self, node: Unary, ctx: _Context) -> Any:
        value = self._eval(node.operand, ctx)
        if node.op == "+":
            return value
        return self._map(value, lambda v: _binary_op(0, "-", v))

    @staticmethod
    def _map(value: Any, fn: Callable[[Any], Any]) -> Any:
        if isinstance(value, RangeValue):
            return RangeValue([fn(v) for v in value.values], value.n_rows, value.n_cols)
        return fn(value)

    def _eval_array(self, node: ArrayLiteral, ctx: _Context) -> RangeValue:
        rows = []
        for row in node.rows:
            values = []
            for item in row:
                v = self._eval(item, ctx)
                if isinstance(v, RangeValue):
                    v = v.values[0] if v.values else BLANK
                values.append(v)
            rows.append(values)
        return RangeValue.from_rows(rows)

    # ------------------------------------------------------------------
    # Reference resolution
    # ------------------------------------------------------------------

    def _resolve_ref(self, ref: str, ctx: _Context) -> Any:
        """Resolve a canonical reference to its typed value.

        Order: per-pass cache, cycle check, empty cell, literal, stored
        calculated value, then evaluation of the referenced formula.
        """
        if ref in ctx.cache:
            return ctx.cache[ref]
        if ref in ctx.visited:
            return ExcelError.CIRCULAR
        cell = ctx.cells.get(ref)
        if cell is None:
            return BLANK
        if not cell.is_formula:
            value = coerce(cell.raw_value)
            ctx.cache[ref] = value
            return value
        if cell.calculated_value is not None:
            return cell.calculated_value
        if len(ctx.visited) >= self._settings.max_reference_depth:
            raise _DepthExceeded(ref)
        value = self._evaluate_top(cell.formula, ctx.entering(ref), ref)
        ctx.cache[ref] = value
        return value

    def _resolve_range(self, start: str, end: str, ctx: _Context) -> RangeValue:
        """Resolve a range to a :class:`RangeValue` preserving 2D shape."""
        n_rows, n_cols = range_shape(start, end)
        values = []
        for ref in expand_range(start, end):
            v = self._resolve_ref(ref, ctx)
            if isinstance(v, RangeValue):
                v = v.values[0] if v.values else BLANK
            values.append(v)
        return RangeValue(values=values, n_rows=n_rows, n_cols=n_cols)

    # ------------------------------------------------------------------
    # Function dispatch
    # ------------------------------------------------------------------

    def _eval_function(self, node: Call, ctx: _Context) -> Any:
        """Evaluate a function call.

        Functions with ``_lazy_args = True`` receive thunks; everything else
        receives resolved values. Scalar error arguments short-circuit the
        call unless the function is ``_error_aware``.
        """
        func = self._functions.get(node.name)
        if func is None:
            logger.debug("Unsupported function: %s", node.name)
            return ExcelError.NAME

        if getattr(func, "_lazy_args", False):
            args: list[Any] = [self._thunk(arg, ctx) for arg in node.args]
        else:
            args = [self._eval(arg, ctx) for arg in node.args]
            if not getattr(func, "_error_aware", False):
                err = first_error(*args)
                if err is not None:
                    return err
        try:
            result = func(args)
        except _GUARDED as e:
            logger.debug("Error evaluating %s: %s", node.name, e)
            return _exception_to_error(e)
        return BLANK if result is None else result

    def _thunk(self, node: Any, ctx: _Context) -> Callable[[], Any]:
        def run() -> Any:
            try:
                return self._eval(node, ctx)
            except _GUARDED as e:
                return _exception_to_error(e)

        return run
