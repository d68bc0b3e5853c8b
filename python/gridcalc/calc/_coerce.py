"""Value coercion: raw cell text to typed values, and typed values to the
number/text/boolean each consumer needs.

Typed values are ``int``/``float`` (number), ``str``, ``bool``,
``datetime.date`` (date), :class:`ExcelError`, :data:`BLANK`, and
:class:`RangeValue` for arrays.
"""

from __future__ import annotations

import datetime
import math
import re
from typing import Any

from gridcalc.calc._values import (
    BLANK,
    ErrorSignal,
    ExcelError,
    RangeValue,
    flatten,
    is_blank,
    pydate_to_serial,
)

_NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_INT_RE = re.compile(r"^[+-]?\d+$")
_THOUSANDS_RE = re.compile(r"^[\d,]+\.?\d*$")
_CURRENCY_SYMBOLS = ("$", "€", "£")

_DATE_FORMATS = (
    "%m/%d/%Y",
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%d-%b-%Y",
    "%b %d, %Y",
    "%B %d, %Y",
)
_DATETIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%m/%d/%Y %H:%M",
)
_DATE_HINT_RE = re.compile(r"\d{1,4}[/-]\d{1,2}[/-]\d{1,4}|[A-Za-z]{3,9}[ -]\d{1,2}|\d{1,2}-[A-Za-z]{3}-\d{4}")


def _plain_number(text: str) -> int | float | None:
    """Parse a strict decimal literal, preserving int for integer text.

    Literals that overflow a float (``1e400``) are not numbers.
    """
    text = text.strip()
    if not _NUMBER_RE.match(text):
        return None
    if _INT_RE.match(text):
        return int(text)
    value = float(text)
    return value if math.isfinite(value) else None


def _parse_date(text: str) -> datetime.date | None:
    if not _DATE_HINT_RE.search(text):
        return None
    for fmt in _DATETIME_FORMATS:
        try:
            return datetime.datetime.strptime(text, fmt)
        except ValueError:
            continue
    for fmt in _DATE_FORMATS:
        try:
            return datetime.datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def coerce(raw: Any) -> Any:
    """Convert a cell's raw text into a typed value.

    Rules, first match wins: empty -> BLANK; ``25%`` -> 0.25; ``$1,200.50``
    -> 1200.5; ``(100)`` -> -100; ``1,234.5`` -> 1234.5; recognized date
    pattern -> ``datetime.date``; numeric literal -> number; TRUE/FALSE ->
    bool; an error code such as ``#N/A`` -> the matching ExcelError;
    otherwise the text itself. Non-string input is returned unchanged.
    """
    if raw is None:
        return BLANK
    if not isinstance(raw, str):
        return raw
    text = raw.strip()
    if not text:
        return BLANK

    if text.endswith("%"):
        num = _numeric_body(text[:-1])
        if num is not None:
            return num / 100

    sign = 1
    body = text
    if body[0] in "+-" and len(body) > 1 and body[1] in _CURRENCY_SYMBOLS:
        sign = -1 if body[0] == "-" else 1
        body = body[1:]
    if body[0] in _CURRENCY_SYMBOLS:
        num = _plain_number(body[1:].replace(",", ""))
        if num is not None:
            return sign * num

    if len(text) > 2 and text[0] == "(" and text[-1] == ")":
        inner = coerce(text[1:-1])
        if isinstance(inner, (int, float)) and not isinstance(inner, bool):
            return -inner

    if "," in text and _THOUSANDS_RE.match(text):
        num = _plain_number(text.replace(",", ""))
        if num is not None:
            return num

    parsed_date = _parse_date(text)
    if parsed_date is not None:
        return parsed_date

    num = _plain_number(text)
    if num is not None:
        return num

    upper = text.upper()
    if upper == "TRUE":
        return True
    if upper == "FALSE":
        return False
    err = ExcelError.known(text)
    if err is not None:
        return err

    return raw


def _numeric_body(text: str) -> int | float | None:
    """Number inside a percent literal (currency and separators allowed)."""
    value = coerce(text)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return None


# ---------------------------------------------------------------------------
# Consumer-side conversions
# ---------------------------------------------------------------------------


def _single(value: RangeValue | list | tuple) -> Any:
    items = flatten(value)
    if len(items) != 1:
        raise ErrorSignal(ExcelError.VALUE)
    return items[0]


def to_number(value: Any) -> int | float:
    """Numeric interpretation of a typed value (blank -> 0, TRUE -> 1).

    Raises :class:`ErrorSignal` with ``#VALUE!`` for text that is not
    numeric, and with the error itself for error values.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if is_blank(value):
        return 0
    if isinstance(value, ExcelError):
        raise ErrorSignal(value)
    if isinstance(value, datetime.date):
        return pydate_to_serial(value)
    if isinstance(value, (RangeValue, list, tuple)):
        return to_number(_single(value))
    if isinstance(value, str):
        coerced = coerce(value)
        if isinstance(coerced, bool) or isinstance(coerced, str) or coerced is BLANK:
            raise ErrorSignal(ExcelError.VALUE)
        return to_number(coerced)
    raise ErrorSignal(ExcelError.VALUE)


def format_number(value: int | float) -> str:
    """Render a number the way a cell shows it (no trailing ``.0``)."""
    if isinstance(value, float):
        if value.is_integer() and abs(value) < 1e15:
            return str(int(value))
        return f"{value:.15g}"
    return str(value)


def to_text(value: Any) -> str:
    """Text interpretation of a typed value (blank -> ``""``)."""
    if isinstance(value, str):
        return value
    if is_blank(value):
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float)):
        return format_number(value)
    if isinstance(value, ExcelError):
        raise ErrorSignal(value)
    if isinstance(value, datetime.datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, datetime.date):
        return value.isoformat()
    if isinstance(value, (RangeValue, list, tuple)):
        return to_text(_single(value))
    return str(value)


def to_bool(value: Any) -> bool:
    """Logical interpretation (non-zero numbers are TRUE, blank is FALSE)."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if is_blank(value):
        return False
    if isinstance(value, ExcelError):
        raise ErrorSignal(value)
    if isinstance(value, str):
        upper = value.strip().upper()
        if upper == "TRUE":
            return True
        if upper == "FALSE":
            return False
        raise ErrorSignal(ExcelError.VALUE)
    if isinstance(value, datetime.date):
        return True
    if isinstance(value, (RangeValue, list, tuple)):
        return to_bool(_single(value))
    raise ErrorSignal(ExcelError.VALUE)


def to_display(value: Any) -> str:
    """Text a cell shows for *value*; error sentinels show their code."""
    if isinstance(value, ExcelError):
        return value.code
    if isinstance(value, RangeValue):
        return to_display(value.values[0]) if value.values else ""
    if isinstance(value, (list, tuple)):
        items = flatten(value)
        return to_display(items[0]) if items else ""
    return to_text(value)


# ---------------------------------------------------------------------------
# Helpers for the function library
# ---------------------------------------------------------------------------


def collect_numbers(args: list[Any]) -> list[float]:
    """Numbers for aggregate functions.

    Inside ranges and arrays only real numbers (and dates) count; text,
    booleans and blanks are skipped. Direct scalar arguments also accept
    booleans and numeric text. Errors anywhere propagate.
    """
    result: list[float] = []
    for a in args:
        if isinstance(a, (RangeValue, list, tuple)):
            for v in flatten(a):
                if isinstance(v, ExcelError):
                    raise ErrorSignal(v)
                if isinstance(v, bool):
                    continue
                if isinstance(v, (int, float)):
                    result.append(float(v))
                elif isinstance(v, datetime.date):
                    result.append(float(pydate_to_serial(v)))
            continue
        if isinstance(a, ExcelError):
            raise ErrorSignal(a)
        if is_blank(a):
            continue
        if isinstance(a, (bool, int, float)):
            result.append(float(a))
        elif isinstance(a, datetime.date):
            result.append(float(pydate_to_serial(a)))
        elif isinstance(a, str):
            coerced = coerce(a)
            if isinstance(coerced, (int, float)) and not isinstance(coerced, bool):
                result.append(float(coerced))
    return result


def check_arity(name: str, args: list[Any], minimum: int, maximum: int | None = -1) -> None:
    """Raise ValueError when ``len(args)`` is outside ``[minimum, maximum]``.

    ``maximum=-1`` means exactly *minimum*; ``None`` means unbounded.
    """
    if maximum == -1:
        if len(args) != minimum:
            noun = "argument" if minimum == 1 else "arguments"
            raise ValueError(f"{name} requires exactly {minimum} {noun}")
        return
    if maximum is None:
        if len(args) < minimum:
            noun = "argument" if minimum == 1 else "arguments"
            raise ValueError(f"{name} requires at least {minimum} {noun}")
        return
    if len(args) < minimum or len(args) > maximum:
        if maximum == minimum + 1:
            raise ValueError(f"{name} requires {minimum} or {maximum} arguments")
        raise ValueError(f"{name} requires {minimum} to {maximum} arguments")


def opt(args: list[Any], index: int, default: Any = None) -> Any:
    """Optional argument: *default* when absent or left empty (``f(a,,c)``)."""
    if index >= len(args) or args[index] is BLANK:
        return default
    return args[index]


def num_arg(args: list[Any], index: int, default: float | int | None = None) -> float | int:
    value = opt(args, index)
    if value is None:
        if default is None:
            raise ValueError(f"missing numeric argument {index + 1}")
        return default
    return to_number(value)


def int_arg(args: list[Any], index: int, default: int | None = None) -> int:
    return int(num_arg(args, index, default))


def text_arg(args: list[Any], index: int, default: str | None = None) -> str:
    if index >= len(args):
        if default is None:
            raise ValueError(f"missing text argument {index + 1}")
        return default
    return to_text(args[index])


def bool_arg(args: list[Any], index: int, default: bool | None = None) -> bool:
    value = opt(args, index)
    if value is None:
        if default is None:
            raise ValueError(f"missing logical argument {index + 1}")
        return default
    return to_bool(value)
