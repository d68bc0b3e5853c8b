"""Tests for the function registry and math/trig/logic/info/engineering builtins."""

from __future__ import annotations

import math

import pytest

from gridcalc import Cell, evaluate
from gridcalc.calc import FUNCTION_CATEGORIES, ExcelError, FormulaEvaluator, FunctionRegistry, is_supported
from gridcalc.calc._functions import _BUILTINS, power, values_equal
from gridcalc.calc._values import BLANK, RangeValue


def _ev(formula: str, **raw: str) -> object:
    return evaluate(formula, {ref: Cell(text) for ref, text in raw.items()})


class TestCategories:
    def test_every_category_present(self) -> None:
        assert set(FUNCTION_CATEGORIES.values()) == {
            "math", "trig", "statistical", "financial", "date", "text",
            "logic", "info", "lookup", "array", "engineering",
        }

    def test_every_listed_function_is_implemented(self) -> None:
        assert set(FUNCTION_CATEGORIES) <= set(_BUILTINS)

    def test_is_supported_case_insensitive(self) -> None:
        assert is_supported("sum")
        assert is_supported("Vlookup")
        assert not is_supported("WEBSERVICE")
        assert not is_supported("RAND")


class TestFunctionRegistry:
    def test_builtins_registered(self) -> None:
        reg = FunctionRegistry()
        assert reg.has("SUM")
        assert reg.has("XLOOKUP")

    def test_custom_registration(self) -> None:
        reg = FunctionRegistry()
        reg.register("double", lambda args: args[0] * 2)
        assert reg.get("DOUBLE")([21]) == 42
        assert FormulaEvaluator(functions=reg).evaluate("=DOUBLE(4)+1", {}) == 9

    def test_registration_is_per_instance(self) -> None:
        reg = FunctionRegistry()
        reg.register("ONLYHERE", lambda args: 1)
        assert not FunctionRegistry().has("ONLYHERE")

    def test_supported_functions_property(self) -> None:
        funcs = FunctionRegistry().supported_functions
        assert isinstance(funcs, frozenset)
        assert "SUM" in funcs

    def test_unknown_function_is_name_error(self) -> None:
        assert _ev("=FOOBAR(1)") is ExcelError.NAME


class TestBuiltinSUM:
    def test_basic(self) -> None:
        assert _BUILTINS["SUM"]([1, 2, 3]) == 6.0

    def test_array_literal(self) -> None:
        assert _ev("=SUM([1,2,3])") == 6
        assert _ev("=SUM({1,2;3,4})") == 10

    def test_range_skips_text(self) -> None:
        assert _ev("=SUM(A1:A3)", A1="1", A2="2", A3="text") == 3

    def test_empty(self) -> None:
        assert _BUILTINS["SUM"]([]) == 0.0

    def test_direct_booleans_counted(self) -> None:
        assert _ev("=SUM(TRUE, 2)") == 3

    def test_error_argument_propagates(self) -> None:
        assert _ev("=SUM(1, 1/0)") is ExcelError.DIV0
        assert _ev("=SUM(A1:A2)", A1="1", A2="=NA()") is ExcelError.NA


class TestMath:
    def test_product_and_sumsq(self) -> None:
        assert _ev("=PRODUCT(2,3,4)") == 24
        assert _ev("=SUMSQ(3,4)") == 25

    def test_sumproduct(self) -> None:
        raw = {"A1": "1", "A2": "2", "B1": "3", "B2": "4"}
        assert _ev("=SUMPRODUCT(A1:A2,B1:B2)", **raw) == 11
        assert _ev("=SUMPRODUCT(A1:A2,B1:B1)", **raw) is ExcelError.VALUE

    def test_round_half_away_from_zero(self) -> None:
        assert _ev("=ROUND(2.5)") == 3
        assert _ev("=ROUND(-2.5,0)") == -3
        assert _ev("=ROUND(1.005,2)") == 1.01
        assert _ev("=ROUND(1234,-2)") == 1200

    def test_roundup_rounddown_trunc(self) -> None:
        assert _ev("=ROUNDUP(3.141,2)") == 3.15
        assert _ev("=ROUNDDOWN(-3.149,2)") == -3.14
        assert _ev("=TRUNC(8.9)") == 8
        assert _ev("=INT(-8.9)") == -9

    def test_mod_sign_follows_divisor(self) -> None:
        assert _ev("=MOD(-3,2)") == 1
        assert _ev("=MOD(3,-2)") == -1
        assert _ev("=MOD(5,0)") is ExcelError.DIV0

    def test_quotient(self) -> None:
        assert _ev("=QUOTIENT(-7,2)") == -3

    def test_power(self) -> None:
        assert _ev("=POWER(2,10)") == 1024
        assert _ev("=2^0.5") == pytest.approx(math.sqrt(2))
        assert power(0, -1) is ExcelError.DIV0
        assert power(-8, 1 / 3) is ExcelError.NUM

    def test_domain_errors(self) -> None:
        assert _ev("=SQRT(-1)") is ExcelError.NUM
        assert _ev("=LN(0)") is ExcelError.NUM
        assert _ev("=LOG(8,1)") is ExcelError.DIV0

    def test_logs(self) -> None:
        assert _ev("=LOG(8,2)") == pytest.approx(3)
        assert _ev("=LOG(1000)") == pytest.approx(3)
        assert _ev("=LOG10(100)") == pytest.approx(2)
        assert _ev("=EXP(1)") == pytest.approx(math.e)

    def test_ceiling_floor_mround(self) -> None:
        assert _ev("=CEILING(2.1)") == 3
        assert _ev("=CEILING(4,2)") == 4
        assert _ev("=CEILING(4.1,0.5)") == pytest.approx(4.5)
        assert _ev("=FLOOR(2.9)") == 2
        assert _ev("=FLOOR(7,2)") == 6
        assert _ev("=MROUND(10,3)") == 9
        assert _ev("=MROUND(5,-2)") is ExcelError.NUM

    def test_integer_functions(self) -> None:
        assert _ev("=GCD(12,18)") == 6
        assert _ev("=LCM(4,6)") == 12
        assert _ev("=FACT(5)") == 120
        assert _ev("=COMBIN(5,2)") == 10
        assert _ev("=PERMUT(5,2)") == 20
        assert _ev("=COMBIN(2,5)") is ExcelError.NUM

    def test_sign_and_parity(self) -> None:
        assert _ev("=SIGN(-4)") == -1
        assert _ev("=ISEVEN(4)") is True
        assert _ev("=ISODD(4)") is False

    def test_wrong_arity_is_value_error(self) -> None:
        assert _ev("=ABS(1,2)") is ExcelError.VALUE

    def test_non_numeric_text_is_value_error(self) -> None:
        assert _ev('=ABS("x")') is ExcelError.VALUE


class TestTrig:
    def test_basic(self) -> None:
        assert _ev("=SIN(PI()/2)") == pytest.approx(1)
        assert _ev("=COS(0)") == 1
        assert _ev("=DEGREES(PI())") == pytest.approx(180)
        assert _ev("=RADIANS(180)") == pytest.approx(math.pi)

    def test_atan2_x_first(self) -> None:
        assert _ev("=ATAN2(1,1)") == pytest.approx(math.pi / 4)
        assert _ev("=ATAN2(-1,0)") == pytest.approx(math.pi)
        assert _ev("=ATAN2(0,0)") is ExcelError.DIV0

    def test_domain(self) -> None:
        assert _ev("=ASIN(2)") is ExcelError.NUM


class TestLogic:
    def test_if(self) -> None:
        assert _ev('=IF(1>0,"yes","no")') == "yes"
        assert _ev("=IF(FALSE,1)") is False

    def test_if_is_lazy(self) -> None:
        assert _ev("=IF(TRUE,1,1/0)") == 1
        assert _ev("=IF(A1,B1,2)", A1="FALSE", B1="=FOO()") == 2

    def test_if_error_condition(self) -> None:
        assert _ev("=IF(1/0,1,2)") is ExcelError.DIV0

    def test_iferror_ifna(self) -> None:
        assert _ev('=IFERROR(1/0,"fallback")') == "fallback"
        assert _ev("=IFERROR(5,0)") == 5
        assert _ev("=IFNA(NA(),0)") == 0
        assert _ev("=IFNA(1/0,0)") is ExcelError.DIV0

    def test_ifs(self) -> None:
        assert _ev("=IFS(FALSE,1,TRUE,2)") == 2
        assert _ev("=IFS(FALSE,1)") is ExcelError.NA

    def test_switch(self) -> None:
        assert _ev('=SWITCH(2,1,"a",2,"b","c")') == "b"
        assert _ev('=SWITCH(9,1,"a","c")') == "c"
        assert _ev('=SWITCH(9,1,"a")') is ExcelError.NA
        assert _ev('=SWITCH("B","a",1,"b",2)') == 2

    def test_and_or_xor_not(self) -> None:
        assert _ev("=AND(TRUE,1)") is True
        assert _ev("=OR(FALSE,0)") is False
        assert _ev("=XOR(TRUE,TRUE,TRUE)") is True
        assert _ev("=NOT(0)") is True
        assert _ev("=TRUE()") is True

    def test_and_skips_text_in_ranges(self) -> None:
        assert _ev("=AND(A1:A3)", A1="TRUE", A2="hello", A3="1") is True

    def test_and_without_logicals(self) -> None:
        assert _ev("=AND(A1:A2)", A1="x", A2="y") is ExcelError.VALUE

    def test_values_equal(self) -> None:
        assert values_equal("ABC", "abc")
        assert values_equal(BLANK, 0)
        assert values_equal(BLANK, "")
        assert not values_equal(1, True)


class TestInfo:
    def test_error_predicates_see_errors(self) -> None:
        assert _ev("=ISERROR(1/0)") is True
        assert _ev("=ISERROR(1)") is False
        assert _ev("=ISNA(NA())") is True
        assert _ev("=ISNA(1/0)") is False

    def test_type_predicates(self) -> None:
        assert _ev("=ISBLANK(Z99)") is True
        assert _ev('=ISNUMBER("5")') is False
        assert _ev("=ISNUMBER(A1)", A1="5") is True
        assert _ev('=ISTEXT("5")') is True
        assert _ev("=ISLOGICAL(TRUE)") is True

    def test_type(self) -> None:
        assert _ev("=TYPE(1)") == 1
        assert _ev('=TYPE("a")') == 2
        assert _ev("=TYPE(TRUE)") == 4
        assert _ev("=TYPE(1/0)") == 16
        assert _ev("=TYPE({1,2})") == 64

    def test_error_literal(self) -> None:
        assert _ev("=#N/A") is ExcelError.NA


class TestEngineering:
    def test_dec2bin(self) -> None:
        assert _ev("=DEC2BIN(10)") == "1010"
        assert _ev("=DEC2BIN(10,8)") == "00001010"
        assert _ev("=DEC2BIN(-1)") == "1111111111"
        assert _ev("=DEC2BIN(512)") is ExcelError.NUM

    def test_bin2dec(self) -> None:
        assert _ev('=BIN2DEC("1010")') == 10
        assert _ev('=BIN2DEC("1111111111")') == -1
        assert _ev('=BIN2DEC("102")') is ExcelError.NUM

    def test_hex(self) -> None:
        assert _ev("=DEC2HEX(255)") == "FF"
        assert _ev("=DEC2HEX(255,4)") == "00FF"
        assert _ev('=HEX2DEC("ff")') == 255
        assert _ev('=HEX2DEC("FFFFFFFFFF")') == -1

    def test_roman(self) -> None:
        assert _ev("=ROMAN(1994)") == "MCMXCIV"
        assert _ev('=ARABIC("MCMXCIV")') == 1994
        assert _ev("=ROMAN(4000)") is ExcelError.VALUE

    def test_base(self) -> None:
        assert _ev("=BASE(255,16)") == "FF"
        assert _ev("=BASE(7,2,8)") == "00000111"
        assert _ev("=BASE(0,36)") == "0"
        assert _ev("=BASE(35,36)") == "Z"
        assert _ev("=BASE(-1,2)") is ExcelError.NUM
        assert _ev("=BASE(10,37)") is ExcelError.NUM

    def test_decimal(self) -> None:
        assert _ev('=DECIMAL("ff",16)') == 255
        assert _ev('=DECIMAL("zz",36)') == 1295
        assert _ev("=DECIMAL(101,2)") == 5
        assert _ev('=DECIMAL("102",2)') is ExcelError.NUM
        assert _ev('=DECIMAL("0x1F",16)') is ExcelError.NUM
        assert _ev('=DECIMAL("1",1)') is ExcelError.NUM


class TestRangeValue:
    def test_get_2d(self) -> None:
        rv = RangeValue(values=[1, 2, 3, 4, 5, 6], n_rows=2, n_cols=3)
        assert rv.get(1, 1) == 1
        assert rv.get(1, 3) == 3
        assert rv.get(2, 2) == 5

    def test_from_rows_pads_with_na(self) -> None:
        rv = RangeValue.from_rows([[1, 2], [3]])
        assert rv.shape == (2, 2)
        assert rv.get(2, 2) is ExcelError.NA
