"""Text builtins, including TEXT() number and date formatting."""

from __future__ import annotations

import datetime
import re
from typing import Any, Callable

from gridcalc.calc._coerce import (
    bool_arg,
    check_arity,
    coerce,
    format_number,
    int_arg,
    opt,
    text_arg,
    to_number,
    to_text,
)
from gridcalc.calc._criteria import wildcard_match
from gridcalc.calc._values import (
    ExcelError,
    RangeValue,
    flatten,
    is_blank,
    serial_to_date,
    serial_to_time,
)


def _builtin_left(args: list[Any]) -> str | ExcelError:
    check_arity("LEFT", args, 1, 2)
    text = text_arg(args, 0)
    num_chars = int_arg(args, 1, 1)
    if num_chars < 0:
        return ExcelError.VALUE
    return text[:num_chars]


def _builtin_right(args: list[Any]) -> str | ExcelError:
    check_arity("RIGHT", args, 1, 2)
    text = text_arg(args, 0)
    num_chars = int_arg(args, 1, 1)
    if num_chars < 0:
        return ExcelError.VALUE
    return text[-num_chars:] if num_chars > 0 else ""


def _builtin_mid(args: list[Any]) -> str | ExcelError:
    check_arity("MID", args, 3)
    text = text_arg(args, 0)
    start = int_arg(args, 1)
    num_chars = int_arg(args, 2)
    if start < 1 or num_chars < 0:
        return ExcelError.VALUE
    # Excel MID is 1-indexed
    return text[start - 1 : start - 1 + num_chars]


def _builtin_len(args: list[Any]) -> int:
    check_arity("LEN", args, 1)
    return len(text_arg(args, 0))


def _joined_texts(args: list[Any]) -> list[str]:
    return [to_text(v) for v in flatten(args)]


def _builtin_concatenate(args: list[Any]) -> str:
    check_arity("CONCATENATE", args, 1, None)
    return "".join(_joined_texts(args))


def _builtin_concat(args: list[Any]) -> str:
    check_arity("CONCAT", args, 1, None)
    return "".join(_joined_texts(args))


def _builtin_textjoin(args: list[Any]) -> str:
    """TEXTJOIN(delimiter, ignore_empty, text1, [text2], ...)."""
    check_arity("TEXTJOIN", args, 3, None)
    delimiter = text_arg(args, 0)
    ignore_empty = bool_arg(args, 1, True)
    parts = _joined_texts(args[2:])
    if ignore_empty:
        parts = [p for p in parts if p]
    return delimiter.join(parts)


def _builtin_upper(args: list[Any]) -> str:
    check_arity("UPPER", args, 1)
    return text_arg(args, 0).upper()


def _builtin_lower(args: list[Any]) -> str:
    check_arity("LOWER", args, 1)
    return text_arg(args, 0).lower()


def _builtin_proper(args: list[Any]) -> str:
    """PROPER: capitalize the first letter of every letter run."""
    check_arity("PROPER", args, 1)
    return text_arg(args, 0).title()


def _builtin_trim(args: list[Any]) -> str:
    """TRIM: remove leading/trailing spaces and collapse internal spaces."""
    check_arity("TRIM", args, 1)
    return re.sub(r" +", " ", text_arg(args, 0)).strip(" ")


def _builtin_clean(args: list[Any]) -> str:
    """CLEAN: strip non-printable control characters (codes 0-31)."""
    check_arity("CLEAN", args, 1)
    return "".join(ch for ch in text_arg(args, 0) if ord(ch) >= 32)


def _builtin_substitute(args: list[Any]) -> str | ExcelError:
    """SUBSTITUTE(text, old_text, new_text, [instance_num])."""
    check_arity("SUBSTITUTE", args, 3, 4)
    text = text_arg(args, 0)
    old_text = text_arg(args, 1)
    new_text = text_arg(args, 2)
    if not old_text:
        return text

    if opt(args, 3) is not None:
        instance = int_arg(args, 3)
        if instance < 1:
            return ExcelError.VALUE
        # Replace only the Nth occurrence
        count = 0
        start = 0
        while True:
            idx = text.find(old_text, start)
            if idx == -1:
                break
            count += 1
            if count == instance:
                return text[:idx] + new_text + text[idx + len(old_text):]
            start = idx + 1
        return text  # instance not found, return unchanged

    return text.replace(old_text, new_text)


def _builtin_replace(args: list[Any]) -> str | ExcelError:
    """REPLACE(old_text, start_num, num_chars, new_text)."""
    check_arity("REPLACE", args, 4)
    text = text_arg(args, 0)
    start = int_arg(args, 1)
    num_chars = int_arg(args, 2)
    if start < 1 or num_chars < 0:
        return ExcelError.VALUE
    return text[:start - 1] + text_arg(args, 3) + text[start - 1 + num_chars:]


def _builtin_find(args: list[Any]) -> int | ExcelError:
    """FIND(find_text, within_text, [start_num]). Case-sensitive, 1-based."""
    check_arity("FIND", args, 2, 3)
    find_text = text_arg(args, 0)
    within_text = text_arg(args, 1)
    start_num = int_arg(args, 2, 1)

    if start_num < 1 or start_num > len(within_text) + 1:
        return ExcelError.VALUE

    # Convert to 0-based for Python's str.find
    idx = within_text.find(find_text, start_num - 1)
    if idx == -1:
        return ExcelError.VALUE
    return idx + 1  # Back to 1-based


def _builtin_search(args: list[Any]) -> int | ExcelError:
    """SEARCH(find_text, within_text, [start_num]). Case-insensitive, wildcards allowed."""
    check_arity("SEARCH", args, 2, 3)
    find_text = text_arg(args, 0)
    within_text = text_arg(args, 1)
    start_num = int_arg(args, 2, 1)

    if start_num < 1 or start_num > len(within_text) + 1:
        return ExcelError.VALUE
    if not find_text:
        return start_num

    if "*" in find_text or "?" in find_text or "~" in find_text:
        pattern = find_text + "*"
        for i in range(start_num - 1, len(within_text)):
            if wildcard_match(pattern, within_text[i:]):
                return i + 1
        return ExcelError.VALUE

    idx = within_text.lower().find(find_text.lower(), start_num - 1)
    if idx == -1:
        return ExcelError.VALUE
    return idx + 1


def _builtin_rept(args: list[Any]) -> str | ExcelError:
    """REPT(text, number_times)."""
    check_arity("REPT", args, 2)
    n = int_arg(args, 1)
    if n < 0:
        return ExcelError.VALUE
    return text_arg(args, 0) * n


def _builtin_exact(args: list[Any]) -> bool:
    """EXACT(text1, text2). Case-sensitive comparison."""
    check_arity("EXACT", args, 2)
    return text_arg(args, 0) == text_arg(args, 1)


def _builtin_value(args: list[Any]) -> float | ExcelError:
    """VALUE(text). Converts numeric, percent, currency or date text to a number."""
    check_arity("VALUE", args, 1)
    value = args[0]
    if isinstance(value, RangeValue):
        value = value.values[0] if value.values else ""
    if isinstance(value, bool):
        return ExcelError.VALUE
    if isinstance(value, str):
        value = coerce(value)
        if is_blank(value):
            return 0
        if isinstance(value, (bool, str)):
            return ExcelError.VALUE
    return to_number(value)


def _builtin_char(args: list[Any]) -> str | ExcelError:
    check_arity("CHAR", args, 1)
    n = int_arg(args, 0)
    if n < 1 or n > 255:
        return ExcelError.VALUE
    return chr(n)


def _builtin_code(args: list[Any]) -> int | ExcelError:
    check_arity("CODE", args, 1)
    text = text_arg(args, 0)
    if not text:
        return ExcelError.VALUE
    return ord(text[0])


# ---------------------------------------------------------------------------
# TEXT(value, format_text)
# ---------------------------------------------------------------------------

_MONTH_ABBRS = [
    "", "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]
_MONTH_NAMES = [
    "", "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]
_DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

_DATE_TOKEN_RE = re.compile(
    r"yyyy|yy|mmmm|mmm|mm|m|dddd|ddd|dd|d|hh|h|ss|s|am/pm",
    re.IGNORECASE,
)
_DATE_FORMAT_HINT_RE = re.compile(r"[ydhs]", re.IGNORECASE)
_NUMBER_CORE_RE = re.compile(r"[#0][#0,]*(?:\.[#0]*)?|\.[#0]+")
_SCIENTIFIC_RE = re.compile(r"^(0(?:\.(0+))?)E\+0+$", re.IGNORECASE)


def _format_date(serial: float, fmt: str) -> str:
    y, m, d = serial_to_date(int(serial))
    hour, minute, second = serial_to_time(serial)
    has_ampm = "am/pm" in fmt.lower()
    # 1=Sunday for serials; see WEEKDAY
    weekday = (int(serial) - 1) % 7
    out: list[str] = []
    last = ""
    pos = 0
    for match in _DATE_TOKEN_RE.finditer(fmt):
        out.append(fmt[pos:match.start()])
        token = match.group(0).lower()
        if token in ("mm", "m") and (last in ("hh", "h") or fmt[match.end():match.end() + 1] == ":"):
            out.append(f"{minute:02d}" if token == "mm" else str(minute))
        elif token == "yyyy":
            out.append(f"{y:04d}")
        elif token == "yy":
            out.append(f"{y % 100:02d}")
        elif token == "mmmm":
            out.append(_MONTH_NAMES[m])
        elif token == "mmm":
            out.append(_MONTH_ABBRS[m])
        elif token == "mm":
            out.append(f"{m:02d}")
        elif token == "m":
            out.append(str(m))
        elif token == "dddd":
            out.append(_DAY_NAMES[weekday])
        elif token == "ddd":
            out.append(_DAY_NAMES[weekday][:3])
        elif token == "dd":
            out.append(f"{d:02d}")
        elif token == "d":
            out.append(str(d))
        elif token in ("hh", "h"):
            h = (hour % 12 or 12) if has_ampm else hour
            out.append(f"{h:02d}" if token == "hh" else str(h))
        elif token == "ss":
            out.append(f"{second:02d}")
        elif token == "s":
            out.append(str(second))
        elif token == "am/pm":
            out.append("AM" if hour < 12 else "PM")
        last = token
        pos = match.end()
    out.append(fmt[pos:])
    return "".join(out)


def _format_number_section(val: float, section: str) -> str:
    section = re.sub(r"_.", " ", section).replace("\\", "")
    sci = _SCIENTIFIC_RE.match(section)
    if sci:
        decimals = len(sci.group(2) or "")
        return f"{val:.{decimals}E}"
    m = _NUMBER_CORE_RE.search(section)
    if not m:
        return section
    prefix, core, suffix = section[:m.start()], m.group(0), section[m.end():]
    if "%" in prefix or "%" in suffix:
        val *= 100
    int_spec, _, frac_spec = core.partition(".")
    decimals = len(frac_spec)
    grouping = "," if "," in int_spec else ""
    body = f"{abs(val):{grouping}.{decimals}f}"
    # Leading zeros in the pattern set a minimum integer width ("000" -> 007)
    int_part, dot, frac = body.partition(".")
    min_width = int_spec.count("0")
    if not grouping and len(int_part) < min_width:
        int_part = int_part.zfill(min_width)
    sign = "-" if val < 0 and float(body.replace(",", "")) != 0 else ""
    return f"{sign}{prefix}{int_part}{dot}{frac}{suffix}"


def format_text(value: Any, fmt: str) -> str:
    """Render *value* with an Excel number or date format string."""
    if not isinstance(value, (int, float, datetime.date)) or isinstance(value, bool):
        return to_text(value)
    val = float(to_number(value))
    # Strip literal quotes (e.g., "$"#,##0 -> $#,##0)
    fmt_clean = fmt.replace('"', "")
    if fmt_clean.lower() in ("general", ""):
        return format_number(val)

    sections = fmt_clean.split(";")
    if _DATE_FORMAT_HINT_RE.search(sections[0]) and not _SCIENTIFIC_RE.match(sections[0]):
        return _format_date(val, sections[0])

    if val < 0 and len(sections) > 1:
        return _format_number_section(abs(val), sections[1])
    if val == 0 and len(sections) > 2:
        return _format_number_section(val, sections[2])
    return _format_number_section(val, sections[0])


def _builtin_text(args: list[Any]) -> str:
    """TEXT(value, format_text). Supports common Excel number and date patterns."""
    check_arity("TEXT", args, 2)
    value = args[0]
    if isinstance(value, RangeValue):
        value = value.values[0] if value.values else ""
    if isinstance(value, str):
        coerced = coerce(value)
        if isinstance(coerced, (int, float, datetime.date)) and not isinstance(coerced, bool):
            value = coerced
    return format_text(value, text_arg(args, 1))


TEXT_BUILTINS: dict[str, Callable[..., Any]] = {
    "LEFT": _builtin_left,
    "RIGHT": _builtin_right,
    "MID": _builtin_mid,
    "LEN": _builtin_len,
    "CONCATENATE": _builtin_concatenate,
    "CONCAT": _builtin_concat,
    "TEXTJOIN": _builtin_textjoin,
    "UPPER": _builtin_upper,
    "LOWER": _builtin_lower,
    "PROPER": _builtin_proper,
    "TRIM": _builtin_trim,
    "CLEAN": _builtin_clean,
    "SUBSTITUTE": _builtin_substitute,
    "REPLACE": _builtin_replace,
    "FIND": _builtin_find,
    "SEARCH": _builtin_search,
    "REPT": _builtin_rept,
    "EXACT": _builtin_exact,
    "TEXT": _builtin_text,
    "VALUE": _builtin_value,
    "CHAR": _builtin_char,
    "CODE": _builtin_code,
}
