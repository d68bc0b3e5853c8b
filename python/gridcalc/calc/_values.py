"""Runtime value types shared by the evaluator and the function library."""

from __future__ import annotations

import calendar
import datetime
import math
from dataclasses import dataclass
from typing import Any, Iterator

# ---------------------------------------------------------------------------
# Error values: one interned instance per code, compared by code
# ---------------------------------------------------------------------------

_DESCRIPTIONS: dict[str, str] = {
    "#DIV/0!": "Division by zero",
    "#CIRCULAR!": "Circular reference",
    "#NAME?": "Unknown function name",
    "#VALUE!": "Wrong value type",
    "#REF!": "Reference out of range",
    "#N/A": "Value not available",
    "#ERROR!": "Formula could not be parsed",
    "#NUM!": "Invalid numeric value",
}


class ExcelError:
    """A formula error such as ``#DIV/0!``, carried as a value.

    ``ExcelError.of(code)`` interns instances, so identity checks work.
    Errors compare equal to their string code (``ExcelError.NA == "#N/A"``).
    """

    __slots__ = ("code",)
    _cache: dict[str, ExcelError] = {}

    NA: ExcelError
    VALUE: ExcelError
    REF: ExcelError
    DIV0: ExcelError
    NUM: ExcelError
    NAME: ExcelError
    CIRCULAR: ExcelError
    PARSE: ExcelError

    def __init__(self, code: str) -> None:
        self.code = code

    @classmethod
    def of(cls, code: str) -> ExcelError:
        key = code.upper()
        found = cls._cache.get(key)
        if found is None:
            found = cls._cache[key] = cls(key)
        return found

    @classmethod
    def known(cls, code: str) -> ExcelError | None:
        """The sentinel for *code* if it is one of the closed set, else None."""
        canon = code.strip().upper()
        if canon in _DESCRIPTIONS:
            return cls.of(canon)
        return None

    @property
    def description(self) -> str:
        return _DESCRIPTIONS.get(self.code, "Formula error")

    def __repr__(self) -> str:
        return self.code

    def __str__(self) -> str:
        return self.code

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ExcelError):
            return self.code == other.code
        if isinstance(other, str):
            return self.code == other.upper()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.code)

    def __reduce__(self):
        return (ExcelError.of, (self.code,))


# Singletons
ExcelError.NA = ExcelError.of("#N/A")
ExcelError.VALUE = ExcelError.of("#VALUE!")
ExcelError.REF = ExcelError.of("#REF!")
ExcelError.DIV0 = ExcelError.of("#DIV/0!")
ExcelError.NUM = ExcelError.of("#NUM!")
ExcelError.NAME = ExcelError.of("#NAME?")
ExcelError.CIRCULAR = ExcelError.of("#CIRCULAR!")
ExcelError.PARSE = ExcelError.of("#ERROR!")


class ErrorSignal(Exception):
    """Raised inside library code to short-circuit with an error value.

    The evaluator catches it at the function-call boundary and returns
    ``signal.error`` as the call's result.
    """

    def __init__(self, error: ExcelError) -> None:
        super().__init__(error.code)
        self.error = error


def is_error(val: Any) -> bool:
    """True for any error value."""
    return isinstance(val, ExcelError)


def first_error(*values: Any) -> ExcelError | None:
    """Leftmost error among *values*, if any."""
    for v in values:
        if is_error(v):
            return v
    return None


# ---------------------------------------------------------------------------
# Blank: an empty cell, distinct from both 0 and ""
# ---------------------------------------------------------------------------


class _Blank:
    """The value of an empty or missing cell.

    Consumers decide the interpretation: arithmetic reads it as 0, text
    functions as ``""``, and range aggregates skip it.
    """

    __slots__ = ()
    _instance: _Blank | None = None

    def __new__(cls) -> _Blank:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "BLANK"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return (_Blank, ())


BLANK = _Blank()


def is_blank(val: Any) -> bool:
    return val is BLANK or val is None


# ---------------------------------------------------------------------------
# Ranges and array literals, row-major with their shape
# ---------------------------------------------------------------------------


@dataclass
class RangeValue:
    """A resolved cell range or array that preserves 2D shape metadata.

    Values are stored row-major. Iterable and sized so that functions which
    only care about membership can treat it as a flat list.
    """

    values: list[Any]
    n_rows: int
    n_cols: int

    @classmethod
    def from_rows(cls, rows: list[list[Any]]) -> RangeValue:
        """Build from a list of equal-length rows (short rows are padded with N/A)."""
        if not rows:
            return cls(values=[], n_rows=0, n_cols=0)
        n_cols = max(len(r) for r in rows)
        values: list[Any] = []
        for r in rows:
            values.extend(r)
            values.extend([ExcelError.NA] * (n_cols - len(r)))
        return cls(values=values, n_rows=len(rows), n_cols=n_cols)

    @classmethod
    def column_of(cls, values: list[Any]) -> RangeValue:
        return cls(values=list(values), n_rows=len(values), n_cols=1 if values else 0)

    @property
    def shape(self) -> tuple[int, int]:
        return (self.n_rows, self.n_cols)

    def _index(self, row: int, col: int) -> int | None:
        if 1 <= row <= self.n_rows and 1 <= col <= self.n_cols:
            pos = (row - 1) * self.n_cols + col - 1
            if pos < len(self.values):
                return pos
        return None

    def get(self, row: int, col: int) -> Any:
        """Item at 1-based *row*, *col*; None when outside the shape."""
        pos = self._index(row, col)
        return None if pos is None else self.values[pos]

    def column(self, col: int) -> list[Any]:
        """Items of 1-based column *col*, top to bottom."""
        if not 1 <= col <= self.n_cols:
            return []
        return self.values[col - 1::self.n_cols][:self.n_rows]

    def row(self, row: int) -> list[Any]:
        """Items of 1-based row *row*, left to right."""
        if not 1 <= row <= self.n_rows:
            return []
        offset = (row - 1) * self.n_cols
        return self.values[offset:offset + self.n_cols]

    def rows(self) -> list[list[Any]]:
        return [self.row(r) for r in range(1, self.n_rows + 1)]

    def transpose(self) -> RangeValue:
        values = [self.values[r * self.n_cols + c]
                  for c in range(self.n_cols)
                  for r in range(self.n_rows)]
        return RangeValue(values=values, n_rows=self.n_cols, n_cols=self.n_rows)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)


def flatten(values: Any) -> list[Any]:
    """Flatten nested ranges/lists into a single row-major list."""
    if isinstance(values, RangeValue):
        return list(values.values)
    if isinstance(values, (list, tuple)):
        out: list[Any] = []
        for v in values:
            if isinstance(v, (RangeValue, list, tuple)):
                out.extend(flatten(v))
            else:
                out.append(v)
        return out
    return [values]


def as_range(value: Any) -> RangeValue:
    """View any argument as a RangeValue (scalars become 1x1, lists a column)."""
    if isinstance(value, RangeValue):
        return value
    if isinstance(value, (list, tuple)):
        if value and all(isinstance(v, (list, tuple)) for v in value):
            return RangeValue.from_rows([list(v) for v in value])
        return RangeValue.column_of(list(value))
    return RangeValue(values=[value], n_rows=1, n_cols=1)


# ---------------------------------------------------------------------------
# Serial dates: day 1 is 1900-01-01 and day 60 is the fictitious 1900-02-29
# ---------------------------------------------------------------------------

_PHANTOM_LEAP_DAY = 60
_EPOCH = datetime.date(1899, 12, 31)


def date_to_serial(y: int, m: int, d: int) -> int:
    """Serial number for *y*-*m*-*d*.

    Months outside 1..12 carry into the year and days past the end of the
    month carry into the next one, so ``(2024, 14, 1)`` is 2025-02-01.
    """
    years, month0 = divmod(m - 1, 12)
    first = datetime.date(y + years, month0 + 1, 1)
    serial = (first - _EPOCH).days + d - 1
    # Everything from March 1900 on sits one day past the true calendar count
    return serial + 1 if serial >= _PHANTOM_LEAP_DAY else serial


def serial_to_date(serial: int) -> tuple[int, int, int]:
    """``(year, month, day)`` for a serial number."""
    if serial == _PHANTOM_LEAP_DAY:
        return (1900, 2, 29)
    if serial > _PHANTOM_LEAP_DAY:
        serial -= 1
    day = _EPOCH + datetime.timedelta(days=serial)
    return day.year, day.month, day.day


def pydate_to_serial(value: datetime.date) -> float | int:
    """``datetime.date``/``datetime.datetime`` to a serial (time as fraction)."""
    serial = date_to_serial(value.year, value.month, value.day)
    if isinstance(value, datetime.datetime):
        seconds = value.hour * 3600 + value.minute * 60 + value.second
        return serial + seconds / 86400
    return serial


def days_in_month(y: int, m: int) -> int:
    return calendar.monthrange(y, m)[1]


def serial_to_time(serial: int | float) -> tuple[int, int, int]:
    """``(hour, minute, second)`` of the time-of-day fraction, to the nearest second."""
    whole = abs(float(serial))
    seconds = round((whole - math.floor(whole)) * 86400)
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return (hours, minutes, secs)
