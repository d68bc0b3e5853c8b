"""Date and time builtins over Excel serial numbers (1900 date system)."""

from __future__ import annotations

import datetime
import math
from typing import Any, Callable

from gridcalc.calc._coerce import check_arity, coerce, collect_numbers, int_arg, num_arg, opt, text_arg
from gridcalc.calc._values import (
    ExcelError,
    date_to_serial,
    days_in_month,
    pydate_to_serial,
    serial_to_date,
    serial_to_time,
)


def _serial_arg(args: list[Any], index: int) -> int:
    serial = num_arg(args, index)
    if serial < 0:
        raise OverflowError("negative date serial")
    return int(serial)


def _builtin_today(args: list[Any]) -> int:
    """TODAY(). Returns the current date as an Excel serial number."""
    check_arity("TODAY", args, 0)
    today = datetime.date.today()
    return date_to_serial(today.year, today.month, today.day)


def _builtin_now(args: list[Any]) -> float:
    """NOW(). Returns the current date and time as an Excel serial number."""
    check_arity("NOW", args, 0)
    return float(pydate_to_serial(datetime.datetime.now()))


def _builtin_date(args: list[Any]) -> int | ExcelError:
    """DATE(year, month, day). Returns an Excel serial number.

    Handles month and day overflow: DATE(2020,14,1) = DATE(2021,2,1) and
    DATE(2024,1,32) = DATE(2024,2,1).
    """
    check_arity("DATE", args, 3)
    y, m, d = int_arg(args, 0), int_arg(args, 1), int_arg(args, 2)
    # Excel interprets years 0-1899 as offsets from 1900
    if 0 <= y <= 1899:
        y += 1900
    if y < 1900 or y > 9999:
        return ExcelError.NUM
    try:
        result = date_to_serial(y, m, d)
    except (ValueError, OverflowError):
        return ExcelError.NUM
    if result < 1:
        return ExcelError.NUM
    return result


def _builtin_datevalue(args: list[Any]) -> int | ExcelError:
    """DATEVALUE(date_text). Serial number of a date written as text."""
    check_arity("DATEVALUE", args, 1)
    value = coerce(text_arg(args, 0))
    if not isinstance(value, datetime.date):
        return ExcelError.VALUE
    return int(pydate_to_serial(value))


def _builtin_year(args: list[Any]) -> int:
    """YEAR(serial). Extract year from a serial number."""
    check_arity("YEAR", args, 1)
    return serial_to_date(_serial_arg(args, 0))[0]


def _builtin_month(args: list[Any]) -> int:
    """MONTH(serial). Extract month (1-12) from a serial number."""
    check_arity("MONTH", args, 1)
    return serial_to_date(_serial_arg(args, 0))[1]


def _builtin_day(args: list[Any]) -> int:
    """DAY(serial). Extract day (1-31) from a serial number."""
    check_arity("DAY", args, 1)
    return serial_to_date(_serial_arg(args, 0))[2]


def _builtin_hour(args: list[Any]) -> int:
    check_arity("HOUR", args, 1)
    return serial_to_time(num_arg(args, 0))[0]


def _builtin_minute(args: list[Any]) -> int:
    check_arity("MINUTE", args, 1)
    return serial_to_time(num_arg(args, 0))[1]


def _builtin_second(args: list[Any]) -> int:
    check_arity("SECOND", args, 1)
    return serial_to_time(num_arg(args, 0))[2]


def _add_months(serial: int, months: int, end_of_month: bool) -> int:
    y, m, d = serial_to_date(serial)
    m += months
    # Normalize
    m -= 1
    y += m // 12
    m = m % 12 + 1
    if y < 1900 or y > 9999:
        raise OverflowError("date out of range")
    last_day = days_in_month(y, m)
    return date_to_serial(y, m, last_day if end_of_month else min(d, last_day))


def _builtin_edate(args: list[Any]) -> int:
    """EDATE(start_date, months). Same day N months away, clamped to month end."""
    check_arity("EDATE", args, 2)
    return _add_months(_serial_arg(args, 0), int_arg(args, 1), end_of_month=False)


def _builtin_eomonth(args: list[Any]) -> int:
    """EOMONTH(start_date, months). End of month N months from start."""
    check_arity("EOMONTH", args, 2)
    return _add_months(_serial_arg(args, 0), int_arg(args, 1), end_of_month=True)


def _builtin_days(args: list[Any]) -> int:
    """DAYS(end_date, start_date). Simple subtraction."""
    check_arity("DAYS", args, 2)
    return int(num_arg(args, 0)) - int(num_arg(args, 1))


def _builtin_datedif(args: list[Any]) -> int | ExcelError:
    """DATEDIF(start_date, end_date, unit) with units Y, M, D, MD, YM, YD."""
    check_arity("DATEDIF", args, 3)
    start, end = _serial_arg(args, 0), _serial_arg(args, 1)
    unit = text_arg(args, 2).upper()
    if start > end:
        return ExcelError.NUM
    sy, sm, sd = serial_to_date(start)
    ey, em, ed = serial_to_date(end)
    months = (ey - sy) * 12 + (em - sm) - (1 if ed < sd else 0)
    if unit == "D":
        return end - start
    if unit == "M":
        return months
    if unit == "Y":
        return months // 12
    if unit == "YM":
        return months % 12
    if unit == "MD":
        if ed >= sd:
            return ed - sd
        py, pm = (ey, em - 1) if em > 1 else (ey - 1, 12)
        return max(days_in_month(py, pm) - sd, 0) + ed
    if unit == "YD":
        anniversary_year = ey if (em, ed) >= (sm, sd) else ey - 1
        anchor = date_to_serial(anniversary_year, sm, min(sd, days_in_month(anniversary_year, sm)))
        return end - anchor
    return ExcelError.NUM


def weekday_of(serial: int) -> int:
    """Day of week for a serial, 1 = Sunday ... 7 = Saturday."""
    return (serial - 1) % 7 + 1


def _builtin_weekday(args: list[Any]) -> int | ExcelError:
    """WEEKDAY(serial, [return_type]). Types 1 (Sun=1), 2 (Mon=1), 3 (Mon=0)."""
    check_arity("WEEKDAY", args, 1, 2)
    day = weekday_of(_serial_arg(args, 0))
    return_type = int_arg(args, 1, 1)
    if return_type == 1:
        return day
    if return_type == 2:
        return (day + 5) % 7 + 1
    if return_type == 3:
        return (day + 5) % 7
    return ExcelError.NUM


def _is_weekend(serial: int) -> bool:
    return weekday_of(serial) in (1, 7)


def _holidays(args: list[Any], index: int) -> set[int]:
    value = opt(args, index)
    if value is None:
        return set()
    return {int(n) for n in collect_numbers([value])}


def _builtin_workday(args: list[Any]) -> int:
    """WORKDAY(start_date, days, [holidays]). Skips weekends and holidays."""
    check_arity("WORKDAY", args, 2, 3)
    serial = _serial_arg(args, 0)
    days = int(math.trunc(num_arg(args, 1)))
    holidays = _holidays(args, 2)
    step = 1 if days >= 0 else -1
    remaining = abs(days)
    while remaining:
        serial += step
        if serial < 1:
            raise OverflowError("date out of range")
        if not _is_weekend(serial) and serial not in holidays:
            remaining -= 1
    return serial


def _builtin_networkdays(args: list[Any]) -> int:
    """NETWORKDAYS(start_date, end_date, [holidays]). Inclusive of both ends."""
    check_arity("NETWORKDAYS", args, 2, 3)
    start, end = _serial_arg(args, 0), _serial_arg(args, 1)
    holidays = _holidays(args, 2)
    sign = 1
    if start > end:
        start, end, sign = end, start, -1
    count = sum(
        1 for s in range(start, end + 1)
        if not _is_weekend(s) and s not in holidays
    )
    return sign * count


DATE_BUILTINS: dict[str, Callable[..., Any]] = {
    "TODAY": _builtin_today,
    "NOW": _builtin_now,
    "DATE": _builtin_date,
    "DATEVALUE": _builtin_datevalue,
    "YEAR": _builtin_year,
    "MONTH": _builtin_month,
    "DAY": _builtin_day,
    "HOUR": _builtin_hour,
    "MINUTE": _builtin_minute,
    "SECOND": _builtin_second,
    "EDATE": _builtin_edate,
    "EOMONTH": _builtin_eomonth,
    "DAYS": _builtin_days,
    "DATEDIF": _builtin_datedif,
    "WEEKDAY": _builtin_weekday,
    "WORKDAY": _builtin_workday,
    "NETWORKDAYS": _builtin_networkdays,
}
