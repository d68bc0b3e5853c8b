"""Statistical builtins, including the conditional *IF/*IFS aggregates."""

from __future__ import annotations

import datetime
import math
import statistics
from typing import Any, Callable, Iterator

from gridcalc.calc._coerce import check_arity, coerce, collect_numbers, int_arg, num_arg, opt
from gridcalc.calc._criteria import parse_criteria
from gridcalc.calc._values import (
    ErrorSignal,
    ExcelError,
    RangeValue,
    flatten,
    is_blank,
    pydate_to_serial,
)


def _flatten_range(arg: Any) -> list[Any]:
    """Extract values from a RangeValue, list, or single value."""
    if isinstance(arg, RangeValue):
        return arg.values
    if isinstance(arg, (list, tuple)):
        return list(arg)
    return [arg]


def _cell_number(v: Any) -> float | None:
    """Number stored in a range cell (dates count, booleans and text do not)."""
    if isinstance(v, ExcelError):
        raise ErrorSignal(v)
    if isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        return float(v)
    if isinstance(v, datetime.date):
        return float(pydate_to_serial(v))
    return None


# ---------------------------------------------------------------------------
# Basic aggregates
# ---------------------------------------------------------------------------


def _builtin_average(args: list[Any]) -> float | ExcelError:
    nums = collect_numbers(args)
    if not nums:
        return ExcelError.DIV0
    return math.fsum(nums) / len(nums)


def _builtin_count(args: list[Any]) -> float:
    """COUNT - counts numeric values only; errors are not counted."""
    count = 0
    for a in args:
        if isinstance(a, RangeValue):
            for v in a.values:
                if isinstance(v, datetime.date) or (
                    isinstance(v, (int, float)) and not isinstance(v, bool)
                ):
                    count += 1
        elif isinstance(a, ExcelError) or is_blank(a):
            continue
        elif isinstance(a, (bool, int, float, datetime.date)):
            count += 1
        elif isinstance(a, str):
            coerced = coerce(a)
            if isinstance(coerced, (int, float, datetime.date)) and not isinstance(coerced, bool):
                count += 1
    return float(count)


def _builtin_counta(args: list[Any]) -> float:
    """COUNTA - counts non-empty values (errors included)."""
    count = 0
    for v in args:
        if isinstance(v, RangeValue):
            count += sum(1 for x in v if not is_blank(x))
        elif not is_blank(v):
            count += 1
    return float(count)


_builtin_count._error_aware = True  # type: ignore[attr-defined]
_builtin_counta._error_aware = True  # type: ignore[attr-defined]


def _builtin_countblank(args: list[Any]) -> float:
    check_arity("COUNTBLANK", args, 1)
    return float(sum(1 for v in _flatten_range(args[0]) if is_blank(v) or v == ""))


def _builtin_min(args: list[Any]) -> float:
    nums = collect_numbers(args)
    if not nums:
        return 0.0
    return min(nums)


def _builtin_max(args: list[Any]) -> float:
    nums = collect_numbers(args)
    if not nums:
        return 0.0
    return max(nums)


def _builtin_median(args: list[Any]) -> float | ExcelError:
    nums = collect_numbers(args)
    if not nums:
        return ExcelError.NUM
    return float(statistics.median(nums))


def _builtin_mode(args: list[Any]) -> float | ExcelError:
    """MODE - most frequent value (first seen wins ties); #N/A if none repeats."""
    nums = collect_numbers(args)
    counts: dict[float, int] = {}
    for n in nums:
        counts[n] = counts.get(n, 0) + 1
    best = None
    best_count = 1
    for n in nums:
        if counts[n] > best_count:
            best, best_count = n, counts[n]
    if best is None:
        return ExcelError.NA
    return best


def _variance(args: list[Any], sample: bool) -> float | ExcelError:
    nums = collect_numbers(args)
    n = len(nums)
    if n < (2 if sample else 1):
        return ExcelError.DIV0
    mean = math.fsum(nums) / n
    ss = math.fsum((x - mean) ** 2 for x in nums)
    return ss / (n - 1 if sample else n)


def _builtin_var(args: list[Any]) -> float | ExcelError:
    return _variance(args, sample=True)


def _builtin_varp(args: list[Any]) -> float | ExcelError:
    return _variance(args, sample=False)


def _builtin_stdev(args: list[Any]) -> float | ExcelError:
    var = _variance(args, sample=True)
    return var if isinstance(var, ExcelError) else math.sqrt(var)


def _builtin_stdevp(args: list[Any]) -> float | ExcelError:
    var = _variance(args, sample=False)
    return var if isinstance(var, ExcelError) else math.sqrt(var)


def _percentile(nums: list[float], k: float) -> float | ExcelError:
    if not nums or k < 0 or k > 1:
        return ExcelError.NUM
    ordered = sorted(nums)
    pos = (len(ordered) - 1) * k
    lo = math.floor(pos)
    hi = min(lo + 1, len(ordered) - 1)
    return ordered[lo] + (ordered[hi] - ordered[lo]) * (pos - lo)


def _builtin_percentile(args: list[Any]) -> float | ExcelError:
    """PERCENTILE(array, k) with linear interpolation (k in [0, 1])."""
    check_arity("PERCENTILE", args, 2)
    return _percentile(collect_numbers([args[0]]), num_arg(args, 1))


def _builtin_quartile(args: list[Any]) -> float | ExcelError:
    check_arity("QUARTILE", args, 2)
    quart = int_arg(args, 1)
    if quart < 0 or quart > 4:
        return ExcelError.NUM
    return _percentile(collect_numbers([args[0]]), quart / 4)


def _builtin_rank(args: list[Any]) -> float | ExcelError:
    """RANK(number, ref, [order]). order 0 (default) ranks descending."""
    check_arity("RANK", args, 2, 3)
    number = num_arg(args, 0)
    nums = collect_numbers([args[1]])
    ascending = bool(num_arg(args, 2, 0))
    if number not in nums:
        return ExcelError.NA
    if ascending:
        return float(1 + sum(1 for n in nums if n < number))
    return float(1 + sum(1 for n in nums if n > number))


def _builtin_large(args: list[Any]) -> float | ExcelError:
    check_arity("LARGE", args, 2)
    nums = sorted(collect_numbers([args[0]]), reverse=True)
    k = int_arg(args, 1)
    if k < 1 or k > len(nums):
        return ExcelError.NUM
    return nums[k - 1]


def _builtin_small(args: list[Any]) -> float | ExcelError:
    check_arity("SMALL", args, 2)
    nums = sorted(collect_numbers([args[0]]))
    k = int_arg(args, 1)
    if k < 1 or k > len(nums):
        return ExcelError.NUM
    return nums[k - 1]


def _builtin_geomean(args: list[Any]) -> float | ExcelError:
    nums = collect_numbers(args)
    if not nums or any(n <= 0 for n in nums):
        return ExcelError.NUM
    return math.exp(math.fsum(math.log(n) for n in nums) / len(nums))


def _builtin_harmean(args: list[Any]) -> float | ExcelError:
    nums = collect_numbers(args)
    if not nums or any(n <= 0 for n in nums):
        return ExcelError.NUM
    return len(nums) / math.fsum(1 / n for n in nums)


def _builtin_correl(args: list[Any]) -> float | ExcelError:
    """CORREL(array1, array2). Pairs where either side is non-numeric are skipped."""
    check_arity("CORREL", args, 2)
    xs_raw, ys_raw = flatten(args[0]), flatten(args[1])
    if len(xs_raw) != len(ys_raw):
        return ExcelError.NA
    pairs = []
    for x, y in zip(xs_raw, ys_raw):
        xn, yn = _cell_number(x), _cell_number(y)
        if xn is not None and yn is not None:
            pairs.append((xn, yn))
    if len(pairs) < 2:
        return ExcelError.DIV0
    n = len(pairs)
    mx = math.fsum(p[0] for p in pairs) / n
    my = math.fsum(p[1] for p in pairs) / n
    sxy = math.fsum((x - mx) * (y - my) for x, y in pairs)
    sxx = math.fsum((x - mx) ** 2 for x, _ in pairs)
    syy = math.fsum((y - my) ** 2 for _, y in pairs)
    if sxx == 0 or syy == 0:
        return ExcelError.DIV0
    return sxy / math.sqrt(sxx * syy)


def _builtin_frequency(args: list[Any]) -> RangeValue:
    """FREQUENCY(data_array, bins_array).

    Vertical array of ``len(bins) + 1`` counts, in the bins' own order. A
    value lands in the smallest bin it does not exceed; the extra last slot
    holds values above every bin.
    """
    check_arity("FREQUENCY", args, 2)
    data = collect_numbers([args[0]])
    bins = collect_numbers([args[1]])
    counts = [0.0] * (len(bins) + 1)
    ascending = sorted(range(len(bins)), key=lambda i: bins[i])
    for value in data:
        slot = next((i for i in ascending if value <= bins[i]), len(bins))
        counts[slot] += 1
    return RangeValue.column_of(counts)


# ---------------------------------------------------------------------------
# Criteria-filtered aggregates (SUMIF, COUNTIFS, MAXIFS, ...)
# ---------------------------------------------------------------------------

_Condition = tuple[list[Any], Callable[[Any], bool]]


def _conditions(args: list[Any]) -> list[_Condition]:
    """Pair up ``range, criteria, range, criteria, ...`` arguments."""
    return [(_flatten_range(rng), parse_criteria(crit)) for rng, crit in zip(args[::2], args[1::2])]


def _ifs_args(name: str, args: list[Any]) -> tuple[list[Any], list[_Condition]]:
    """Split ``target_range, range1, criteria1, ...`` for the *IFS family."""
    if len(args) < 3 or len(args) % 2 == 0:
        raise ValueError(f"{name} takes a target range followed by range/criteria pairs")
    return _flatten_range(args[0]), _conditions(args[1:])


def _positions(size: int, conditions: list[_Condition]) -> Iterator[int]:
    """Indexes below *size* where every condition holds.

    A criteria range shorter than *size* fails the positions it does not cover.
    """
    for i in range(size):
        if all(i < len(values) and test(values[i]) for values, test in conditions):
            yield i


def _matching(values: list[Any], conditions: list[_Condition]) -> list[float]:
    """Numbers in *values* at the positions that pass *conditions*."""
    picked = (_cell_number(values[i]) for i in _positions(len(values), conditions))
    return [n for n in picked if n is not None]


def _builtin_sumif(args: list[Any]) -> float:
    """SUMIF(criteria_range, criteria, [sum_range])."""
    check_arity("SUMIF", args, 2, 3)
    target = _flatten_range(opt(args, 2, args[0]))
    return math.fsum(_matching(target, _conditions(args[:2])))


def _builtin_sumifs(args: list[Any]) -> float:
    """SUMIFS(sum_range, criteria_range1, criteria1, ...)."""
    return math.fsum(_matching(*_ifs_args("SUMIFS", args)))


def _builtin_countif(args: list[Any]) -> float:
    """COUNTIF(range, criteria)."""
    check_arity("COUNTIF", args, 2)
    test = parse_criteria(args[1])
    return float(sum(1 for v in _flatten_range(args[0]) if test(v)))


def _builtin_countifs(args: list[Any]) -> float:
    """COUNTIFS(criteria_range1, criteria1, ...). Rows are counted over the first range."""
    if not args or len(args) % 2:
        raise ValueError("COUNTIFS takes range/criteria pairs")
    conditions = _conditions(args)
    return float(sum(1 for _ in _positions(len(conditions[0][0]), conditions)))


def _mean_or_div0(nums: list[float]) -> float | ExcelError:
    return math.fsum(nums) / len(nums) if nums else ExcelError.DIV0


def _builtin_averageif(args: list[Any]) -> float | ExcelError:
    """AVERAGEIF(criteria_range, criteria, [average_range])."""
    check_arity("AVERAGEIF", args, 2, 3)
    target = _flatten_range(opt(args, 2, args[0]))
    return _mean_or_div0(_matching(target, _conditions(args[:2])))


def _builtin_averageifs(args: list[Any]) -> float | ExcelError:
    """AVERAGEIFS(average_range, criteria_range1, criteria1, ...)."""
    return _mean_or_div0(_matching(*_ifs_args("AVERAGEIFS", args)))


def _builtin_minifs(args: list[Any]) -> float:
    """MINIFS(min_range, criteria_range1, criteria1, ...). 0 when nothing matches."""
    return min(_matching(*_ifs_args("MINIFS", args)), default=0.0)


def _builtin_maxifs(args: list[Any]) -> float:
    """MAXIFS(max_range, criteria_range1, criteria1, ...). 0 when nothing matches."""
    return max(_matching(*_ifs_args("MAXIFS", args)), default=0.0)


STATS_BUILTINS: dict[str, Callable[..., Any]] = {
    "AVERAGE": _builtin_average,
    "AVERAGEIF": _builtin_averageif,
    "AVERAGEIFS": _builtin_averageifs,
    "COUNT": _builtin_count,
    "COUNTA": _builtin_counta,
    "COUNTBLANK": _builtin_countblank,
    "COUNTIF": _builtin_countif,
    "COUNTIFS": _builtin_countifs,
    "SUMIF": _builtin_sumif,
    "SUMIFS": _builtin_sumifs,
    "MIN": _builtin_min,
    "MINIFS": _builtin_minifs,
    "MAX": _builtin_max,
    "MAXIFS": _builtin_maxifs,
    "MEDIAN": _builtin_median,
    "MODE": _builtin_mode,
    "STDEV": _builtin_stdev,
    "STDEVP": _builtin_stdevp,
    "VAR": _builtin_var,
    "VARP": _builtin_varp,
    "PERCENTILE": _builtin_percentile,
    "QUARTILE": _builtin_quartile,
    "RANK": _builtin_rank,
    "LARGE": _builtin_large,
    "SMALL": _builtin_small,
    "GEOMEAN": _builtin_geomean,
    "HARMEAN": _builtin_harmean,
    "CORREL": _builtin_correl,
    "FREQUENCY": _builtin_frequency,
}
