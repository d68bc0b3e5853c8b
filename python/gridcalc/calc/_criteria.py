"""Criteria matching engine (shared by the *IF/*IFS aggregates) and Excel
wildcard matching (shared with the lookup functions)."""

from __future__ import annotations

import datetime
import functools
import re
from typing import Any, Callable

from gridcalc.calc._coerce import coerce
from gridcalc.calc._values import ExcelError, RangeValue, is_blank, pydate_to_serial

_CRITERIA_OP_RE = re.compile(r"^(>=|<=|<>|>|<|=)(.*)$", re.DOTALL)


@functools.lru_cache(maxsize=256)
def _wildcard_regex(pattern: str) -> re.Pattern[str]:
    regex = ""
    i = 0
    pat = pattern.lower()
    while i < len(pat):
        c = pat[i]
        if c == "~" and i + 1 < len(pat):
            regex += re.escape(pat[i + 1])
            i += 2
        elif c == "*":
            regex += ".*"
            i += 1
        elif c == "?":
            regex += "."
            i += 1
        else:
            regex += re.escape(c)
            i += 1
    return re.compile(regex, re.DOTALL)


def wildcard_match(pattern: str, text: str) -> bool:
    """Match Excel wildcard pattern (``*``, ``?``, ``~`` escape) against text. Case-insensitive."""
    return bool(_wildcard_regex(pattern).fullmatch(text.lower()))


def has_wildcards(text: str) -> bool:
    return "*" in text or "?" in text


def _numeric(v: Any) -> float | None:
    if isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        return float(v)
    if isinstance(v, datetime.date):
        return float(pydate_to_serial(v))
    return None


_COMPARE_OPS: dict[str, Callable[[float, float], bool]] = {
    ">": lambda a, b: a > b,
    "<": lambda a, b: a < b,
    ">=": lambda a, b: a >= b,
    "<=": lambda a, b: a <= b,
    "=": lambda a, b: a == b,
    "<>": lambda a, b: a != b,
}


def _numeric_compare(v: Any, threshold: float, compare: Callable[[float, float], bool]) -> bool:
    n = _numeric(v)
    return n is not None and compare(n, threshold)


def parse_criteria(criteria: Any) -> Callable[[Any], bool]:
    """Parse an Excel criteria value into a predicate function.

    Supports:
    - Numeric exact match: ``100`` matches cells equal to 100
    - String exact match (case-insensitive): ``"Sales"``
    - Operator prefix: ``">100"``, ``"<=50"``, ``"<>0"``, ``"<>"`` (non-blank),
      ``"="`` (blank)
    - Wildcards: ``"apple*"``, ``"?pple"``, ``"~*"`` for a literal star
    """
    if isinstance(criteria, RangeValue):
        criteria = criteria.values[0] if criteria.values else ""
    if isinstance(criteria, ExcelError):
        return lambda v, e=criteria: v is e
    if isinstance(criteria, bool):
        return lambda v, b=criteria: isinstance(v, bool) and v == b
    target_num = _numeric(criteria)
    if target_num is not None:
        return lambda v, t=target_num: _numeric(v) == t
    if is_blank(criteria):
        return lambda v: is_blank(v) or v == ""

    crit_str = str(criteria)
    op = "="
    operand = crit_str
    m = _CRITERIA_OP_RE.match(crit_str)
    if m:
        op, operand = m.group(1), m.group(2)

    if operand == "":
        if op == "=":
            return lambda v: is_blank(v) or v == ""
        if op == "<>":
            return lambda v: not (is_blank(v) or v == "")
        return lambda v: False

    typed = coerce(operand)
    if isinstance(typed, bool):
        if op == "=":
            return lambda v, b=typed: isinstance(v, bool) and v == b
        if op == "<>":
            return lambda v, b=typed: not (isinstance(v, bool) and v == b)
        return lambda v: False

    threshold = _numeric(typed)
    if threshold is not None:
        compare = _COMPARE_OPS[op]
        if op == "<>":
            return lambda v, t=threshold: _numeric(v) != t
        return lambda v, t=threshold, c=compare: _numeric_compare(v, t, c)

    if isinstance(typed, ExcelError):
        if op == "<>":
            return lambda v, e=typed: v is not e
        return lambda v, e=typed: v is e

    # Text criteria: wildcards only apply to = and <>
    pattern = operand
    if op in ("=", "<>"):
        if has_wildcards(pattern) or "~" in pattern:
            matcher = lambda v, p=pattern: isinstance(v, str) and wildcard_match(p, v)  # noqa: E731
        else:
            lower = pattern.lower()
            matcher = lambda v, l=lower: isinstance(v, str) and v.lower() == l  # noqa: E731
        if op == "<>":
            return lambda v, f=matcher: not f(v)
        return matcher

    lower = pattern.lower()
    compare = _COMPARE_OPS[op]
    return lambda v, l=lower, c=compare: isinstance(v, str) and c(v.lower(), l)


def match_criteria(criteria: Any, value: Any) -> bool:
    """Convenience: check whether *value* satisfies *criteria*."""
    return parse_criteria(criteria)(value)
