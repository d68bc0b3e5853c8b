"""Financial builtins: time value of money, cash-flow analysis, depreciation.

PV, FV, PMT, NPER and RATE all solve the same balance equation::

    pv * (1 + rate) ** nper + pmt * annuity_factor + fv == 0

for one unknown, where ``annuity_factor`` accounts for payments made at the
start (type 1) or end (type 0) of each period. Excel sign conventions apply:
money paid out is negative.
"""

from __future__ import annotations

import math
from typing import Any, Callable

from gridcalc.calc._coerce import check_arity, collect_numbers, int_arg, num_arg
from gridcalc.calc._values import ExcelError

_TOLERANCE = 1e-10
_BRACKET = (-0.999, 10.0)


def _tvm_args(name: str, args: list[Any]) -> tuple[float, float, float, float, int]:
    check_arity(name, args, 3, 5)
    return (
        num_arg(args, 0),
        num_arg(args, 1),
        num_arg(args, 2),
        num_arg(args, 3, 0.0),
        1 if num_arg(args, 4, 0) else 0,
    )


def _growth(rate: float, nper: float) -> float:
    return (1 + rate) ** nper


def _annuity_factor(rate: float, nper: float, pmt_type: int) -> float:
    if rate == 0:
        return nper
    return (1 + rate * pmt_type) * (_growth(rate, nper) - 1) / rate


def _balance(rate: float, nper: float, pmt: float, pv: float, fv: float, pmt_type: int) -> float:
    if abs(rate) < 1e-12:
        return pv + pmt * nper + fv
    return pv * _growth(rate, nper) + pmt * _annuity_factor(rate, nper, pmt_type) + fv


def _solve_rate(f: Callable[[float], float], guess: float,
                deriv: Callable[[float], float] | None = None) -> float | None:
    """Root of *f* near *guess*: Newton-Raphson, then bisection over ``_BRACKET``.

    Without an analytic *deriv* a forward difference is used.
    """
    rate = guess
    for _ in range(100):
        value = f(rate)
        if abs(value) < _TOLERANCE:
            return rate
        if deriv is not None:
            slope = deriv(rate)
        else:
            slope = (f(rate + 1e-6) - value) / 1e-6
        if abs(slope) < 1e-14:
            break
        nxt = rate - value / slope
        if nxt <= -1:
            break
        if abs(nxt - rate) < _TOLERANCE:
            return nxt
        rate = nxt

    lo, hi = _BRACKET
    f_lo = f(lo)
    if f_lo * f(hi) > 0:
        return None
    for _ in range(200):
        mid = (lo + hi) / 2
        f_mid = f(mid)
        if abs(f_mid) < _TOLERANCE or hi - lo < 1e-12:
            return mid
        if f_lo * f_mid < 0:
            hi = mid
        else:
            lo, f_lo = mid, f_mid
    return None


def _builtin_pv(args: list[Any]) -> float:
    """PV(rate, nper, pmt, [fv], [type]). What a stream of future payments is worth today."""
    rate, nper, pmt, fv, pmt_type = _tvm_args("PV", args)
    return -(fv + pmt * _annuity_factor(rate, nper, pmt_type)) / _growth(rate, nper)


def _builtin_fv(args: list[Any]) -> float:
    """FV(rate, nper, pmt, [pv], [type]). Balance after *nper* periods."""
    rate, nper, pmt, pv, pmt_type = _tvm_args("FV", args)
    return -(pv * _growth(rate, nper) + pmt * _annuity_factor(rate, nper, pmt_type))


def _builtin_pmt(args: list[Any]) -> float | ExcelError:
    """PMT(rate, nper, pv, [fv], [type]). Constant payment that settles a loan."""
    rate, nper, pv, fv, pmt_type = _tvm_args("PMT", args)
    factor = _annuity_factor(rate, nper, pmt_type)
    if factor == 0:
        return ExcelError.NUM
    return -(pv * _growth(rate, nper) + fv) / factor


def _builtin_nper(args: list[Any]) -> float | ExcelError:
    """NPER(rate, pmt, pv, [fv], [type]). Number of payment periods."""
    rate, pmt, pv, fv, pmt_type = _tvm_args("NPER", args)
    if rate == 0:
        if pmt == 0:
            return ExcelError.NUM
        return -(pv + fv) / pmt
    per_period = pmt * (1 + rate * pmt_type) / rate
    ratio_top = per_period - fv
    ratio_bottom = pv + per_period
    if ratio_bottom == 0 or ratio_top / ratio_bottom <= 0:
        return ExcelError.NUM
    return math.log(ratio_top / ratio_bottom) / math.log(1 + rate)


def _builtin_rate(args: list[Any]) -> float | ExcelError:
    """RATE(nper, pmt, pv, [fv], [type], [guess]). Interest rate per period."""
    check_arity("RATE", args, 3, 6)
    nper, pmt, pv, fv, pmt_type = _tvm_args("RATE", args[:5])
    if nper <= 0:
        return ExcelError.NUM
    root = _solve_rate(lambda r: _balance(r, nper, pmt, pv, fv, pmt_type), num_arg(args, 5, 0.1))
    return ExcelError.NUM if root is None else root


def _builtin_npv(args: list[Any]) -> float:
    """NPV(rate, value1, [value2], ...).

    Unlike IRR, the first cash flow is discounted one full period.
    """
    check_arity("NPV", args, 2, None)
    rate = num_arg(args, 0)
    flows = collect_numbers(args[1:])
    return math.fsum(v / (1 + rate) ** (i + 1) for i, v in enumerate(flows))


def _builtin_irr(args: list[Any]) -> float | ExcelError:
    """IRR(values, [guess]). Rate at which the cash flows' NPV is zero."""
    check_arity("IRR", args, 1, 2)
    flows = collect_numbers([args[0]])
    if len(flows) < 2 or not (any(v > 0 for v in flows) and any(v < 0 for v in flows)):
        return ExcelError.NUM

    def npv(rate: float) -> float:
        return sum(v / (1 + rate) ** i for i, v in enumerate(flows))

    def slope(rate: float) -> float:
        return sum(-i * v / (1 + rate) ** (i + 1) for i, v in enumerate(flows))

    root = _solve_rate(npv, num_arg(args, 1, 0.1), slope)
    return ExcelError.NUM if root is None else root


def _builtin_sln(args: list[Any]) -> float | ExcelError:
    """SLN(cost, salvage, life). Straight-line depreciation for one period."""
    check_arity("SLN", args, 3)
    cost, salvage, life = num_arg(args, 0), num_arg(args, 1), num_arg(args, 2)
    if life == 0:
        return ExcelError.DIV0
    return (cost - salvage) / life


def _builtin_db(args: list[Any]) -> float | ExcelError:
    """DB(cost, salvage, life, period, [month]).

    Fixed-declining balance. *month* is how many months the asset was held
    in its first year; the remainder falls into period ``life + 1``.
    """
    check_arity("DB", args, 4, 5)
    cost = num_arg(args, 0)
    salvage = num_arg(args, 1)
    life = int_arg(args, 2)
    period = int_arg(args, 3)
    month = int_arg(args, 4, 12)

    if life <= 0 or period <= 0 or period > life + 1 or month < 1 or month > 12:
        return ExcelError.NUM
    if cost <= 0:
        return 0.0

    # Declining rate is rounded to three places
    rate = round(1 - (salvage / cost) ** (1 / life), 3)
    first_year = cost * rate * month / 12
    remaining = cost - first_year
    charge = first_year
    for current in range(2, period + 1):
        charge = remaining * rate
        if current == life + 1:
            charge *= (12 - month) / 12
        remaining -= charge
    return charge


def _builtin_effect(args: list[Any]) -> float | ExcelError:
    """EFFECT(nominal_rate, npery). Effective annual rate."""
    check_arity("EFFECT", args, 2)
    nominal = num_arg(args, 0)
    npery = int_arg(args, 1)
    if nominal <= 0 or npery < 1:
        return ExcelError.NUM
    return (1 + nominal / npery) ** npery - 1


def _builtin_nominal(args: list[Any]) -> float | ExcelError:
    """NOMINAL(effect_rate, npery). Nominal annual rate."""
    check_arity("NOMINAL", args, 2)
    effect = num_arg(args, 0)
    npery = int_arg(args, 1)
    if effect <= 0 or npery < 1:
        return ExcelError.NUM
    return npery * ((1 + effect) ** (1 / npery) - 1)


FINANCIAL_BUILTINS: dict[str, Callable[..., Any]] = {
    "PV": _builtin_pv,
    "FV": _builtin_fv,
    "PMT": _builtin_pmt,
    "NPER": _builtin_nper,
    "RATE": _builtin_rate,
    "NPV": _builtin_npv,
    "IRR": _builtin_irr,
    "SLN": _builtin_sln,
    "DB": _builtin_db,
    "EFFECT": _builtin_effect,
    "NOMINAL": _builtin_nominal,
}
