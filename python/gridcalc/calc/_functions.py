"""Function whitelist, registry and the core builtin implementations.

Each builtin takes a list of already-resolved argument values and returns a
typed value. Category modules (statistics, financial, dates, text, lookup,
arrays) follow the same protocol and are merged into ``_BUILTINS`` below.

Two attributes alter how the evaluator calls a function:

- ``_lazy_args``: the function receives zero-argument thunks instead of
  values, so branches it does not take are never evaluated.
- ``_error_aware``: scalar error arguments are passed through to the
  function instead of short-circuiting the call.
"""

from __future__ import annotations

import datetime
import math
from decimal import ROUND_DOWN, ROUND_HALF_UP, ROUND_UP, Decimal
from typing import Any, Callable

from gridcalc.calc._coerce import (
    bool_arg,
    check_arity,
    collect_numbers,
    int_arg,
    num_arg,
    opt,
    text_arg,
    to_bool,
)
from gridcalc.calc._fn_array import ARRAY_BUILTINS
from gridcalc.calc._fn_dates import DATE_BUILTINS
from gridcalc.calc._fn_financial import FINANCIAL_BUILTINS
from gridcalc.calc._fn_lookup import LOOKUP_BUILTINS
from gridcalc.calc._fn_stats import STATS_BUILTINS
from gridcalc.calc._fn_text import TEXT_BUILTINS
from gridcalc.calc._values import (
    BLANK,
    ErrorSignal,
    ExcelError,
    RangeValue,
    flatten,
    is_blank,
)

# ---------------------------------------------------------------------------
# Whitelist: functions the calc engine evaluates, by category.
# ---------------------------------------------------------------------------

FUNCTION_CATEGORIES: dict[str, str] = {}

_CATEGORY_NAMES: dict[str, tuple[str, ...]] = {
    "math": (
        "SUM", "PRODUCT", "SUMPRODUCT", "SUMSQ", "ABS", "ROUND", "ROUNDUP",
        "ROUNDDOWN", "INT", "TRUNC", "MOD", "QUOTIENT", "POWER", "SQRT", "EXP",
        "LN", "LOG", "LOG10", "SIGN", "CEILING", "FLOOR", "MROUND", "GCD", "LCM",
        "FACT", "COMBIN", "PERMUT", "ISEVEN", "ISODD", "PI",
    ),
    "trig": (
        "SIN", "COS", "TAN", "ASIN", "ACOS", "ATAN", "ATAN2", "SINH", "COSH",
        "TANH", "DEGREES", "RADIANS",
    ),
    "statistical": tuple(STATS_BUILTINS),
    "financial": tuple(FINANCIAL_BUILTINS),
    "date": tuple(DATE_BUILTINS),
    "text": tuple(TEXT_BUILTINS),
    "logic": ("IF", "IFS", "IFERROR", "IFNA", "SWITCH", "AND", "OR", "XOR", "NOT", "TRUE", "FALSE"),
    "info": ("ISERROR", "ISNA", "ISBLANK", "ISNUMBER", "ISTEXT", "ISLOGICAL", "TYPE", "NA"),
    "lookup": tuple(LOOKUP_BUILTINS),
    "array": tuple(ARRAY_BUILTINS),
    "engineering": ("DEC2BIN", "BIN2DEC", "DEC2HEX", "HEX2DEC", "BASE", "DECIMAL", "ROMAN", "ARABIC"),
}

for _category, _names in _CATEGORY_NAMES.items():
    for _name in _names:
        FUNCTION_CATEGORIES[_name] = _category


def is_supported(func_name: str) -> bool:
    """Check if a function name is in the evaluation whitelist."""
    return func_name.upper() in FUNCTION_CATEGORIES


# ---------------------------------------------------------------------------
# Rounding helpers (Excel rounds half away from zero on the decimal value)
# ---------------------------------------------------------------------------


def _round_decimal(value: float, digits: int, mode: str) -> float:
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(repr(float(value))).quantize(quantum, rounding=mode))


def _scalar(value: Any) -> Any:
    """Top-left element of a range; scalars pass through."""
    if isinstance(value, RangeValue):
        return value.values[0] if value.values else BLANK
    return value


# ---------------------------------------------------------------------------
# Math builtins
# ---------------------------------------------------------------------------


def _builtin_sum(args: list[Any]) -> float:
    return math.fsum(collect_numbers(args))


def _builtin_product(args: list[Any]) -> float:
    nums = collect_numbers(args)
    if not nums:
        return 0.0
    return math.prod(nums)


def _builtin_sumproduct(args: list[Any]) -> float | ExcelError:
    """SUMPRODUCT(array1, [array2], ...). Arrays must share a shape."""
    check_arity("SUMPRODUCT", args, 1, None)
    arrays = [a if isinstance(a, RangeValue) else RangeValue([a], 1, 1) for a in args]
    shape = arrays[0].shape
    if any(a.shape != shape for a in arrays):
        return ExcelError.VALUE
    total = 0.0
    for items in zip(*(a.values for a in arrays)):
        product = 1.0
        for v in items:
            if isinstance(v, ExcelError):
                raise ErrorSignal(v)
            if isinstance(v, bool) or not isinstance(v, (int, float)):
                product = 0.0
                break
            product *= v
        total += product
    return total


def _builtin_sumsq(args: list[Any]) -> float:
    return math.fsum(n * n for n in collect_numbers(args))


def _builtin_abs(args: list[Any]) -> float:
    check_arity("ABS", args, 1)
    return abs(num_arg(args, 0))


def _builtin_round(args: list[Any]) -> float:
    check_arity("ROUND", args, 1, 2)
    return _round_decimal(num_arg(args, 0), int_arg(args, 1, 0), ROUND_HALF_UP)


def _builtin_roundup(args: list[Any]) -> float:
    check_arity("ROUNDUP", args, 1, 2)
    return _round_decimal(num_arg(args, 0), int_arg(args, 1, 0), ROUND_UP)


def _builtin_rounddown(args: list[Any]) -> float:
    check_arity("ROUNDDOWN", args, 1, 2)
    return _round_decimal(num_arg(args, 0), int_arg(args, 1, 0), ROUND_DOWN)


def _builtin_int(args: list[Any]) -> float:
    check_arity("INT", args, 1)
    return float(math.floor(num_arg(args, 0)))


def _builtin_trunc(args: list[Any]) -> float:
    check_arity("TRUNC", args, 1, 2)
    return _round_decimal(num_arg(args, 0), int_arg(args, 1, 0), ROUND_DOWN)


def _builtin_mod(args: list[Any]) -> float | ExcelError:
    check_arity("MOD", args, 2)
    n, d = num_arg(args, 0), num_arg(args, 1)
    if d == 0:
        return ExcelError.DIV0
    # Excel MOD: result has the sign of the divisor
    return n - d * math.floor(n / d)


def _builtin_quotient(args: list[Any]) -> float | ExcelError:
    check_arity("QUOTIENT", args, 2)
    n, d = num_arg(args, 0), num_arg(args, 1)
    if d == 0:
        return ExcelError.DIV0
    return float(math.trunc(n / d))


def _builtin_power(args: list[Any]) -> float | ExcelError:
    check_arity("POWER", args, 2)
    return power(num_arg(args, 0), num_arg(args, 1))


def power(base: float, exponent: float) -> float | ExcelError:
    """``base ^ exponent`` with Excel's error results."""
    if base == 0 and exponent < 0:
        return ExcelError.DIV0
    if base == 0 and exponent == 0:
        return ExcelError.NUM
    # Excel returns #NUM! for negative base with fractional exponent
    if base < 0 and not float(exponent).is_integer():
        return ExcelError.NUM
    return float(base) ** exponent


def _builtin_sqrt(args: list[Any]) -> float | ExcelError:
    check_arity("SQRT", args, 1)
    x = num_arg(args, 0)
    if x < 0:
        return ExcelError.NUM
    return math.sqrt(x)


def _builtin_exp(args: list[Any]) -> float:
    check_arity("EXP", args, 1)
    return math.exp(num_arg(args, 0))


def _builtin_ln(args: list[Any]) -> float | ExcelError:
    check_arity("LN", args, 1)
    x = num_arg(args, 0)
    if x <= 0:
        return ExcelError.NUM
    return math.log(x)


def _builtin_log(args: list[Any]) -> float | ExcelError:
    check_arity("LOG", args, 1, 2)
    x = num_arg(args, 0)
    base = num_arg(args, 1, 10)
    if x <= 0 or base <= 0:
        return ExcelError.NUM
    if base == 1:
        return ExcelError.DIV0
    return math.log(x, base)


def _builtin_log10(args: list[Any]) -> float | ExcelError:
    check_arity("LOG10", args, 1)
    x = num_arg(args, 0)
    if x <= 0:
        return ExcelError.NUM
    return math.log10(x)


def _builtin_sign(args: list[Any]) -> float:
    check_arity("SIGN", args, 1)
    x = num_arg(args, 0)
    if x > 0:
        return 1.0
    if x < 0:
        return -1.0
    return 0.0


def _builtin_ceiling(args: list[Any]) -> float | ExcelError:
    """CEILING(number, [significance]). Rounds up to a multiple of significance."""
    check_arity("CEILING", args, 1, 2)
    x = num_arg(args, 0)
    sig = num_arg(args, 1, 1)
    if sig == 0 or x == 0:
        return 0.0
    if x > 0 and sig < 0:
        return ExcelError.NUM
    return math.ceil(x / sig - 1e-12) * sig


def _builtin_floor(args: list[Any]) -> float | ExcelError:
    """FLOOR(number, [significance]). Rounds down to a multiple of significance."""
    check_arity("FLOOR", args, 1, 2)
    x = num_arg(args, 0)
    sig = num_arg(args, 1, 1)
    if sig == 0:
        return ExcelError.DIV0 if x != 0 else 0.0
    if x > 0 and sig < 0:
        return ExcelError.NUM
    return math.floor(x / sig + 1e-12) * sig


def _builtin_mround(args: list[Any]) -> float | ExcelError:
    check_arity("MROUND", args, 2)
    x, multiple = num_arg(args, 0), num_arg(args, 1)
    if multiple == 0:
        return 0.0
    if (x > 0 and multiple < 0) or (x < 0 and multiple > 0):
        return ExcelError.NUM
    return _round_decimal(x / multiple, 0, ROUND_HALF_UP) * multiple


def _non_negative_ints(args: list[Any]) -> list[int]:
    nums = collect_numbers(args)
    if any(n < 0 for n in nums):
        raise ErrorSignal(ExcelError.NUM)
    return [int(n) for n in nums]


def _builtin_gcd(args: list[Any]) -> float:
    check_arity("GCD", args, 1, None)
    return float(math.gcd(*_non_negative_ints(args)))


def _builtin_lcm(args: list[Any]) -> float:
    check_arity("LCM", args, 1, None)
    ints = _non_negative_ints(args)
    if any(n == 0 for n in ints):
        return 0.0
    return float(math.lcm(*ints))


def _builtin_fact(args: list[Any]) -> float | ExcelError:
    check_arity("FACT", args, 1)
    n = num_arg(args, 0)
    if n < 0:
        return ExcelError.NUM
    return float(math.factorial(int(n)))


def _builtin_combin(args: list[Any]) -> float | ExcelError:
    check_arity("COMBIN", args, 2)
    n, k = int_arg(args, 0), int_arg(args, 1)
    if n < 0 or k < 0 or k > n:
        return ExcelError.NUM
    return float(math.comb(n, k))


def _builtin_permut(args: list[Any]) -> float | ExcelError:
    check_arity("PERMUT", args, 2)
    n, k = int_arg(args, 0), int_arg(args, 1)
    if n < 0 or k < 0 or k > n:
        return ExcelError.NUM
    return float(math.perm(n, k))


def _builtin_iseven(args: list[Any]) -> bool:
    check_arity("ISEVEN", args, 1)
    return math.trunc(num_arg(args, 0)) % 2 == 0


def _builtin_isodd(args: list[Any]) -> bool:
    check_arity("ISODD", args, 1)
    return math.trunc(num_arg(args, 0)) % 2 == 1


def _builtin_pi(args: list[Any]) -> float:
    check_arity("PI", args, 0)
    return math.pi


# ---------------------------------------------------------------------------
# Trigonometric builtins
# ---------------------------------------------------------------------------


def _unary_math(name: str, fn: Callable[[float], float],
                domain: Callable[[float], bool] | None = None) -> Callable[[list[Any]], Any]:
    def builtin(args: list[Any]) -> float | ExcelError:
        check_arity(name, args, 1)
        x = num_arg(args, 0)
        if domain is not None and not domain(x):
            return ExcelError.NUM
        return fn(x)

    builtin.__name__ = f"_builtin_{name.lower()}"
    return builtin


def _builtin_atan2(args: list[Any]) -> float | ExcelError:
    """ATAN2(x_num, y_num). Note the x-first argument order."""
    check_arity("ATAN2", args, 2)
    x, y = num_arg(args, 0), num_arg(args, 1)
    if x == 0 and y == 0:
        return ExcelError.DIV0
    return math.atan2(y, x)


# ---------------------------------------------------------------------------
# Logic builtins. IF/IFS/IFERROR/IFNA/SWITCH receive thunks.
# ---------------------------------------------------------------------------


def _builtin_if(args: list[Callable[[], Any]]) -> Any:
    check_arity("IF", args, 2, 3)
    condition = _scalar(args[0]())
    if isinstance(condition, ExcelError):
        return condition
    if to_bool(condition):
        return args[1]()
    return args[2]() if len(args) > 2 else False


def _builtin_ifs(args: list[Callable[[], Any]]) -> Any:
    """IFS(cond1, value1, [cond2, value2], ...). No match -> #N/A."""
    if len(args) < 2 or len(args) % 2:
        raise ValueError("IFS requires pairs of (condition, value)")
    for i in range(0, len(args), 2):
        condition = _scalar(args[i]())
        if isinstance(condition, ExcelError):
            return condition
        if to_bool(condition):
            return args[i + 1]()
    return ExcelError.NA


def _builtin_iferror(args: list[Callable[[], Any]]) -> Any:
    check_arity("IFERROR", args, 2)
    value = args[0]()
    if isinstance(value, ExcelError):
        return args[1]()
    return value


def _builtin_ifna(args: list[Callable[[], Any]]) -> Any:
    check_arity("IFNA", args, 2)
    value = args[0]()
    if value is ExcelError.NA:
        return args[1]()
    return value


def _blank_like(other: Any) -> Any:
    if isinstance(other, str):
        return ""
    if isinstance(other, bool):
        return False
    return 0


def values_equal(a: Any, b: Any) -> bool:
    """Spreadsheet equality: case-insensitive text, blank equals 0 and ``""``."""
    if is_blank(a):
        a = _blank_like(b)
    if is_blank(b):
        b = _blank_like(a)
    if isinstance(a, str) and isinstance(b, str):
        return a.lower() == b.lower()
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return float(a) == float(b)
    return a == b


def _builtin_switch(args: list[Callable[[], Any]]) -> Any:
    """SWITCH(expr, value1, result1, [value2, result2], ..., [default])."""
    check_arity("SWITCH", args, 3, None)
    target = _scalar(args[0]())
    if isinstance(target, ExcelError):
        return target
    pairs = args[1:]
    default = pairs.pop() if len(pairs) % 2 else None
    for i in range(0, len(pairs), 2):
        candidate = _scalar(pairs[i]())
        if isinstance(candidate, ExcelError):
            return candidate
        if values_equal(target, candidate):
            return pairs[i + 1]()
    if default is not None:
        return default()
    return ExcelError.NA


for _fn in (_builtin_if, _builtin_ifs, _builtin_iferror, _builtin_ifna, _builtin_switch):
    _fn._lazy_args = True  # type: ignore[attr-defined]
    _fn._error_aware = True  # type: ignore[attr-defined]


def _logicals(name: str, args: list[Any]) -> list[bool]:
    """Logical values for AND/OR/XOR. Text and blanks inside ranges are skipped."""
    check_arity(name, args, 1, None)
    result: list[bool] = []
    for a in args:
        if isinstance(a, RangeValue):
            for v in flatten(a):
                if isinstance(v, ExcelError):
                    raise ErrorSignal(v)
                if isinstance(v, (bool, int, float)):
                    result.append(to_bool(v))
            continue
        if is_blank(a):
            continue
        result.append(to_bool(a))
    if not result:
        raise ErrorSignal(ExcelError.VALUE)
    return result


def _builtin_and(args: list[Any]) -> bool:
    return all(_logicals("AND", args))


def _builtin_or(args: list[Any]) -> bool:
    return any(_logicals("OR", args))


def _builtin_xor(args: list[Any]) -> bool:
    return sum(_logicals("XOR", args)) % 2 == 1


def _builtin_not(args: list[Any]) -> bool:
    check_arity("NOT", args, 1)
    return not bool_arg(args, 0, False)


def _builtin_true(args: list[Any]) -> bool:
    check_arity("TRUE", args, 0)
    return True


def _builtin_false(args: list[Any]) -> bool:
    check_arity("FALSE", args, 0)
    return False


# ---------------------------------------------------------------------------
# Information builtins (error-aware)
# ---------------------------------------------------------------------------


def _builtin_iserror(args: list[Any]) -> bool:
    check_arity("ISERROR", args, 1)
    return isinstance(_scalar(args[0]), ExcelError)


def _builtin_isna(args: list[Any]) -> bool:
    check_arity("ISNA", args, 1)
    return _scalar(args[0]) is ExcelError.NA


def _builtin_isblank(args: list[Any]) -> bool:
    check_arity("ISBLANK", args, 1)
    return is_blank(_scalar(args[0]))


def _builtin_isnumber(args: list[Any]) -> bool:
    check_arity("ISNUMBER", args, 1)
    v = _scalar(args[0])
    if isinstance(v, bool):
        return False
    return isinstance(v, (int, float, datetime.date))


def _builtin_istext(args: list[Any]) -> bool:
    check_arity("ISTEXT", args, 1)
    return isinstance(_scalar(args[0]), str)


def _builtin_islogical(args: list[Any]) -> bool:
    check_arity("ISLOGICAL", args, 1)
    return isinstance(_scalar(args[0]), bool)


def _builtin_type(args: list[Any]) -> int:
    """TYPE(value): 1 number, 2 text, 4 logical, 16 error, 64 array."""
    check_arity("TYPE", args, 1)
    v = args[0]
    if isinstance(v, RangeValue) and len(v) > 1:
        return 64
    v = _scalar(v)
    if isinstance(v, ExcelError):
        return 16
    if isinstance(v, bool):
        return 4
    if isinstance(v, str):
        return 2
    return 1


def _builtin_na(args: list[Any]) -> ExcelError:
    check_arity("NA", args, 0)
    return ExcelError.NA


for _fn in (_builtin_iserror, _builtin_isna, _builtin_isblank, _builtin_isnumber,
            _builtin_istext, _builtin_islogical, _builtin_type):
    _fn._error_aware = True  # type: ignore[attr-defined]


# ---------------------------------------------------------------------------
# Engineering builtins (base conversion, roman numerals)
# ---------------------------------------------------------------------------


def _to_base(name: str, args: list[Any], base: int, bits: int, width: int) -> str | ExcelError:
    check_arity(name, args, 1, 2)
    n = int_arg(args, 0)
    limit = 1 << (bits - 1)
    if n < -limit or n >= limit:
        return ExcelError.NUM
    if n < 0:
        return _format_base(n + (1 << bits), base).rjust(width, "0")
    digits = _format_base(n, base)
    places = opt(args, 1)
    if places is not None:
        places = int(num_arg(args, 1))
        if places < len(digits) or places > width:
            return ExcelError.NUM
        digits = digits.rjust(places, "0")
    return digits


def _format_base(n: int, base: int) -> str:
    return format(n, "b") if base == 2 else format(n, "X")


def _from_base(name: str, args: list[Any], base: int, bits: int, width: int) -> int | ExcelError:
    check_arity(name, args, 1)
    text = text_arg(args, 0).strip()
    if not text:
        return 0
    if len(text) > width:
        return ExcelError.NUM
    try:
        n = int(text, base)
    except ValueError:
        return ExcelError.NUM
    if len(text) == width and n >= 1 << (bits - 1):
        n -= 1 << bits
    return n


def _builtin_dec2bin(args: list[Any]) -> str | ExcelError:
    return _to_base("DEC2BIN", args, 2, 10, 10)


def _builtin_bin2dec(args: list[Any]) -> int | ExcelError:
    return _from_base("BIN2DEC", args, 2, 10, 10)


def _builtin_dec2hex(args: list[Any]) -> str | ExcelError:
    return _to_base("DEC2HEX", args, 16, 40, 10)


def _builtin_hex2dec(args: list[Any]) -> int | ExcelError:
    return _from_base("HEX2DEC", args, 16, 40, 10)


_RADIX_DIGITS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def _radix_arg(args: list[Any], index: int) -> int | None:
    radix = int_arg(args, index)
    return radix if 2 <= radix <= 36 else None


def _builtin_base(args: list[Any]) -> str | ExcelError:
    """BASE(number, radix, [min_length]). Non-negative integers only."""
    check_arity("BASE", args, 2, 3)
    n = int_arg(args, 0)
    radix = _radix_arg(args, 1)
    min_length = int_arg(args, 2, 0)
    if n < 0 or n >= 2 ** 53 or radix is None or not 0 <= min_length <= 255:
        return ExcelError.NUM
    digits = ""
    while n:
        n, rem = divmod(n, radix)
        digits = _RADIX_DIGITS[rem] + digits
    return (digits or "0").rjust(min_length, "0")


def _builtin_decimal(args: list[Any]) -> int | ExcelError:
    """DECIMAL(text, radix). Digits are case-insensitive; anything else is #NUM!."""
    check_arity("DECIMAL", args, 2)
    text = text_arg(args, 0).strip().upper()
    radix = _radix_arg(args, 1)
    if radix is None or len(text) > 255:
        return ExcelError.NUM
    n = 0
    for ch in text:
        digit = _RADIX_DIGITS.find(ch)
        if digit < 0 or digit >= radix:
            return ExcelError.NUM
        n = n * radix + digit
    return n


_ROMAN_NUMERALS = (
    (1000, "M"), (900, "CM"), (500, "D"), (400, "CD"), (100, "C"), (90, "XC"),
    (50, "L"), (40, "XL"), (10, "X"), (9, "IX"), (5, "V"), (4, "IV"), (1, "I"),
)


def _builtin_roman(args: list[Any]) -> str | ExcelError:
    """ROMAN(number, [form]). Only the classic form is produced."""
    check_arity("ROMAN", args, 1, 2)
    n = int_arg(args, 0)
    if n < 0 or n > 3999:
        return ExcelError.VALUE
    out: list[str] = []
    for value, numeral in _ROMAN_NUMERALS:
        count, n = divmod(n, value)
        out.append(numeral * count)
    return "".join(out)


def _builtin_arabic(args: list[Any]) -> int | ExcelError:
    check_arity("ARABIC", args, 1)
    text = text_arg(args, 0).strip().upper()
    sign = 1
    if text.startswith("-"):
        sign, text = -1, text[1:]
    values = {numeral: value for value, numeral in _ROMAN_NUMERALS if len(numeral) == 1}
    total = 0
    prev = 0
    for ch in reversed(text):
        if ch not in values:
            return ExcelError.VALUE
        v = values[ch]
        if v < prev:
            total -= v
        else:
            total += v
            prev = v
    return sign * total


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_BUILTINS: dict[str, Callable[..., Any]] = {
    # Math
    "SUM": _builtin_sum,
    "PRODUCT": _builtin_product,
    "SUMPRODUCT": _builtin_sumproduct,
    "SUMSQ": _builtin_sumsq,
    "ABS": _builtin_abs,
    "ROUND": _builtin_round,
    "ROUNDUP": _builtin_roundup,
    "ROUNDDOWN": _builtin_rounddown,
    "INT": _builtin_int,
    "TRUNC": _builtin_trunc,
    "MOD": _builtin_mod,
    "QUOTIENT": _builtin_quotient,
    "POWER": _builtin_power,
    "SQRT": _builtin_sqrt,
    "EXP": _builtin_exp,
    "LN": _builtin_ln,
    "LOG": _builtin_log,
    "LOG10": _builtin_log10,
    "SIGN": _builtin_sign,
    "CEILING": _builtin_ceiling,
    "FLOOR": _builtin_floor,
    "MROUND": _builtin_mround,
    "GCD": _builtin_gcd,
    "LCM": _builtin_lcm,
    "FACT": _builtin_fact,
    "COMBIN": _builtin_combin,
    "PERMUT": _builtin_permut,
    "ISEVEN": _builtin_iseven,
    "ISODD": _builtin_isodd,
    "PI": _builtin_pi,
    # Trig
    "SIN": _unary_math("SIN", math.sin),
    "COS": _unary_math("COS", math.cos),
    "TAN": _unary_math("TAN", math.tan),
    "ASIN": _unary_math("ASIN", math.asin, lambda x: -1 <= x <= 1),
    "ACOS": _unary_math("ACOS", math.acos, lambda x: -1 <= x <= 1),
    "ATAN": _unary_math("ATAN", math.atan),
    "ATAN2": _builtin_atan2,
    "SINH": _unary_math("SINH", math.sinh),
    "COSH": _unary_math("COSH", math.cosh),
    "TANH": _unary_math("TANH", math.tanh),
    "DEGREES": _unary_math("DEGREES", math.degrees),
    "RADIANS": _unary_math("RADIANS", math.radians),
    # Logic
    "IF": _builtin_if,
    "IFS": _builtin_ifs,
    "IFERROR": _builtin_iferror,
    "IFNA": _builtin_ifna,
    "SWITCH": _builtin_switch,
    "AND": _builtin_and,
    "OR": _builtin_or,
    "XOR": _builtin_xor,
    "NOT": _builtin_not,
    "TRUE": _builtin_true,
    "FALSE": _builtin_false,
    # Info
    "ISERROR": _builtin_iserror,
    "ISNA": _builtin_isna,
    "ISBLANK": _builtin_isblank,
    "ISNUMBER": _builtin_isnumber,
    "ISTEXT": _builtin_istext,
    "ISLOGICAL": _builtin_islogical,
    "TYPE": _builtin_type,
    "NA": _builtin_na,
    # Engineering
    "DEC2BIN": _builtin_dec2bin,
    "BIN2DEC": _builtin_bin2dec,
    "DEC2HEX": _builtin_dec2hex,
    "HEX2DEC": _builtin_hex2dec,
    "BASE": _builtin_base,
    "DECIMAL": _builtin_decimal,
    "ROMAN": _builtin_roman,
    "ARABIC": _builtin_arabic,
}
_BUILTINS.update(STATS_BUILTINS)
_BUILTINS.update(FINANCIAL_BUILTINS)
_BUILTINS.update(DATE_BUILTINS)
_BUILTINS.update(TEXT_BUILTINS)
_BUILTINS.update(LOOKUP_BUILTINS)
_BUILTINS.update(ARRAY_BUILTINS)


class FunctionRegistry:
    """Registry of callable function implementations.

    Starts with builtins and can be extended with custom functions.
    """

    def __init__(self) -> None:
        self._functions: dict[str, Callable[..., Any]] = dict(_BUILTINS)

    def register(self, name: str, func: Callable[..., Any]) -> None:
        self._functions[name.upper()] = func

    def get(self, name: str) -> Callable[..., Any] | None:
        return self._functions.get(name.upper())

    def has(self, name: str) -> bool:
        return name.upper() in self._functions

    @property
    def supported_functions(self) -> frozenset[str]:
        return frozenset(self._functions.keys())
