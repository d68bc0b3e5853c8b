"""Tests for text and date builtins."""

from __future__ import annotations

import datetime

import pytest

from gridcalc import Cell, evaluate
from gridcalc.calc import ExcelError
from gridcalc.calc._fn_dates import weekday_of
from gridcalc.calc._fn_text import format_text
from gridcalc.calc._values import date_to_serial, serial_to_date


def _ev(formula: str, **raw: str) -> object:
    return evaluate(formula, {ref: Cell(text) for ref, text in raw.items()})


class TestSubstrings:
    def test_left_right_mid_len(self) -> None:
        assert _ev('=LEFT("hello",2)') == "he"
        assert _ev('=LEFT("hello")') == "h"
        assert _ev('=RIGHT("hello",3)') == "llo"
        assert _ev('=MID("hello",2,3)') == "ell"
        assert _ev('=LEN("hello")') == 5
        assert _ev('=MID("hello",0,1)') is ExcelError.VALUE

    def test_numbers_as_text(self) -> None:
        assert _ev("=LEFT(12345,2)") == "12"
        assert _ev("=LEN(A1)", A1="2.50") == 3

    def test_blank_is_empty_text(self) -> None:
        assert _ev("=LEN(Z1)") == 0


class TestJoining:
    def test_concatenate(self) -> None:
        assert _ev('=CONCATENATE("a",1,TRUE)') == "a1TRUE"
        assert _ev("=CONCAT(A1:A3)", A1="x", A2="y", A3="z") == "xyz"

    def test_ampersand(self) -> None:
        assert _ev('="Total: "&A1', A1="42") == "Total: 42"

    def test_textjoin(self) -> None:
        assert _ev('=TEXTJOIN("-",TRUE,"a","","b")') == "a-b"
        assert _ev('=TEXTJOIN(",",FALSE,A1:A3)', A1="x", A2="", A3="y") == "x,,y"
        assert _ev('=TEXTJOIN(",",TRUE,A1:A3)', A1="x", A2="", A3="y") == "x,y"


class TestCaseAndCleanup:
    def test_case(self) -> None:
        assert _ev('=UPPER("abc")') == "ABC"
        assert _ev('=LOWER("ABC")') == "abc"
        assert _ev('=PROPER("hello world")') == "Hello World"

    def test_trim_clean(self) -> None:
        assert _ev('=TRIM("  a   b  ")') == "a b"
        assert _ev('=CLEAN("a"&CHAR(9)&"b")') == "ab"


class TestSearchReplace:
    def test_substitute(self) -> None:
        assert _ev('=SUBSTITUTE("a-b-c","-","+")') == "a+b+c"
        assert _ev('=SUBSTITUTE("a-b-c","-","+",2)') == "a-b+c"
        assert _ev('=SUBSTITUTE("a-b-c","-","+",5)') == "a-b-c"

    def test_replace(self) -> None:
        assert _ev('=REPLACE("abcdef",2,3,"X")') == "aXef"

    def test_find_is_case_sensitive(self) -> None:
        assert _ev('=FIND("b","abcb",3)') == 4
        assert _ev('=FIND("B","abc")') is ExcelError.VALUE

    def test_search(self) -> None:
        assert _ev('=SEARCH("B","abc")') == 2
        assert _ev('=SEARCH("c?e","abcde")') == 3
        assert _ev('=SEARCH("z","abc")') is ExcelError.VALUE


class TestMiscText:
    def test_rept_exact(self) -> None:
        assert _ev('=REPT("ab",3)') == "ababab"
        assert _ev('=EXACT("a","A")') is False
        assert _ev('=EXACT("a","a")') is True

    def test_value(self) -> None:
        assert _ev('=VALUE("$1,000")') == 1000
        assert _ev('=VALUE("12%")') == pytest.approx(0.12)
        assert _ev('=VALUE("abc")') is ExcelError.VALUE

    def test_char_code(self) -> None:
        assert _ev("=CHAR(65)") == "A"
        assert _ev('=CODE("A")') == 65
        assert _ev("=CHAR(0)") is ExcelError.VALUE


class TestTextFormat:
    def test_number_formats(self) -> None:
        assert format_text(1234.567, "#,##0.00") == "1,234.57"
        assert format_text(0.256, "0.0%") == "25.6%"
        assert format_text(7, "000") == "007"
        assert format_text(-5, "0;(0)") == "(5)"
        assert format_text(1234.6, '"$"#,##0') == "$1,235"

    def test_general(self) -> None:
        assert format_text(3.0, "General") == "3"

    def test_date_formats(self) -> None:
        serial = date_to_serial(2024, 3, 5)
        assert format_text(serial, "yyyy-mm-dd") == "2024-03-05"
        assert format_text(serial, "mmm d, yyyy") == "Mar 5, 2024"
        assert format_text(serial, "dddd") == "Tuesday"

    def test_time_format(self) -> None:
        assert format_text(0.5, "h:mm AM/PM") == "12:00 PM"
        assert format_text(0.75, "hh:mm") == "18:00"

    def test_text_function(self) -> None:
        assert _ev('=TEXT(0.5,"0%")') == "50%"
        assert _ev('=TEXT(A1,"dd/mm/yyyy")', A1="2024-03-05") == "05/03/2024"
        assert _ev('=TEXT("abc","0.00")') == "abc"


class TestDateConstruction:
    def test_date_serials(self) -> None:
        assert _ev("=DATE(2024,1,1)") == 45292
        assert _ev("=DATE(1900,1,1)") == 1
        assert _ev("=DATE(1900,3,1)") == 61

    def test_overflow(self) -> None:
        assert _ev("=DATE(2020,14,1)") == _ev("=DATE(2021,2,1)")
        assert _ev("=DATE(2024,1,32)") == _ev("=DATE(2024,2,1)")

    def test_two_digit_offsets(self) -> None:
        assert _ev("=DATE(124,1,1)") == 45292

    def test_out_of_range(self) -> None:
        assert _ev("=DATE(10000,1,1)") is ExcelError.NUM

    def test_datevalue(self) -> None:
        assert _ev('=DATEVALUE("2024-01-01")') == 45292
        assert _ev('=DATEVALUE("nope")') is ExcelError.VALUE

    def test_serial_round_trip(self) -> None:
        assert serial_to_date(date_to_serial(2024, 2, 29)) == (2024, 2, 29)

    def test_today_is_current(self) -> None:
        today = datetime.date.today()
        assert _ev("=TODAY()") == date_to_serial(today.year, today.month, today.day)


class TestDateParts:
    def test_parts_from_serial(self) -> None:
        assert _ev("=YEAR(DATE(2024,3,10))") == 2024
        assert _ev("=MONTH(DATE(2024,3,10))") == 3
        assert _ev("=DAY(DATE(2024,3,10))") == 10

    def test_parts_from_date_cell(self) -> None:
        assert _ev("=YEAR(A1)+MONTH(A1)", A1="2024-03-10") == 2027

    def test_time_parts(self) -> None:
        assert _ev("=HOUR(0.5)") == 12
        assert _ev("=MINUTE(0.5+1/1440)") == 1
        assert _ev("=SECOND(1/86400*30)") == 30

    def test_negative_serial(self) -> None:
        assert _ev("=YEAR(-1)") is ExcelError.NUM


class TestDateArithmetic:
    def test_edate_clamps(self) -> None:
        assert _ev("=EDATE(DATE(2024,1,31),1)") == _ev("=DATE(2024,2,29)")
        assert _ev("=EDATE(DATE(2024,3,15),-2)") == _ev("=DATE(2024,1,15)")

    def test_eomonth(self) -> None:
        assert _ev("=EOMONTH(DATE(2024,1,15),1)") == _ev("=DATE(2024,2,29)")
        assert _ev("=EOMONTH(DATE(2024,1,15),0)") == _ev("=DATE(2024,1,31)")

    def test_days(self) -> None:
        assert _ev("=DAYS(DATE(2024,3,1),DATE(2024,2,1))") == 29

    def test_datedif(self) -> None:
        start, end = "DATE(2020,1,15)", "DATE(2024,3,10)"
        assert _ev(f'=DATEDIF({start},{end},"Y")') == 4
        assert _ev(f'=DATEDIF({start},{end},"M")') == 49
        assert _ev(f'=DATEDIF({start},{end},"YM")') == 1
        assert _ev(f'=DATEDIF({start},{end},"MD")') == 24
        assert _ev(f'=DATEDIF({end},{start},"D")') is ExcelError.NUM

    def test_weekday(self) -> None:
        # 2024-01-01 was a Monday
        assert weekday_of(45292) == 2
        assert _ev("=WEEKDAY(DATE(2024,1,1))") == 2
        assert _ev("=WEEKDAY(DATE(2024,1,1),2)") == 1
        assert _ev("=WEEKDAY(DATE(2024,1,1),3)") == 0
        assert _ev("=WEEKDAY(DATE(2024,1,7),2)") == 7


class TestWorkdays:
    def test_networkdays(self) -> None:
        assert _ev("=NETWORKDAYS(DATE(2024,1,1),DATE(2024,1,12))") == 10
        assert _ev("=NETWORKDAYS(DATE(2024,1,12),DATE(2024,1,1))") == -10

    def test_networkdays_with_holidays(self) -> None:
        raw = {"H1": "2024-01-01", "H2": "2024-01-10"}
        assert _ev("=NETWORKDAYS(DATE(2024,1,1),DATE(2024,1,12),H1:H2)", **raw) == 8
        assert _ev("=NETWORKDAYS(DATE(2024,1,1),DATE(2024,1,12),DATE(2024,1,2))") == 9

    def test_workday(self) -> None:
        assert _ev("=WORKDAY(DATE(2024,1,5),1)") == _ev("=DATE(2024,1,8)")
        assert _ev("=WORKDAY(DATE(2024,1,8),-1)") == _ev("=DATE(2024,1,5)")
        raw = {"H1": "2024-01-08"}
        assert _ev("=WORKDAY(DATE(2024,1,5),1,H1)", **raw) == _ev("=DATE(2024,1,9)")
