"""Tests for the formula tokenizer and recursive-descent parser."""

from __future__ import annotations

import pytest

from gridcalc.calc import FormulaSyntaxError, parse_formula
from gridcalc.calc._parser import (
    ArrayLiteral,
    Binary,
    Bool,
    Call,
    ErrorLiteral,
    Missing,
    Name,
    Number,
    Percent,
    RangeRef,
    Ref,
    Text,
    Unary,
    parse_functions,
    tokenize,
)


class TestTokenize:
    def test_kinds(self) -> None:
        kinds = [t.kind for t in tokenize('SUM(A1:B2, "x", 1.5)')]
        assert kinds == [
            "FUNC", "LPAREN", "REF", "COLON", "REF", "COMMA",
            "STRING", "COMMA", "NUMBER", "RPAREN", "EOF",
        ]

    def test_escaped_quote(self) -> None:
        tokens = tokenize('"say ""hi"""')
        assert tokens[0].kind == "STRING"
        assert tokens[0].text == 'say "hi"'

    def test_string_suppresses_delimiters(self) -> None:
        tokens = tokenize('"a,b)(c"')
        assert [t.kind for t in tokens] == ["STRING", "EOF"]

    def test_two_char_operators(self) -> None:
        ops = [t.text for t in tokenize("1<=2<>3>=4") if t.kind == "OP"]
        assert ops == ["<=", "<>", ">="]

    def test_error_literal(self) -> None:
        tok = tokenize("#n/a")[0]
        assert (tok.kind, tok.text) == ("ERROR", "#N/A")

    def test_unterminated_string(self) -> None:
        with pytest.raises(FormulaSyntaxError):
            tokenize('"abc')

    def test_unexpected_character(self) -> None:
        with pytest.raises(FormulaSyntaxError):
            tokenize("1 ! 2")


class TestParseLiterals:
    def test_number(self) -> None:
        assert parse_formula("=42") == Number(42)
        assert parse_formula("2.5") == Number(2.5)

    def test_string(self) -> None:
        assert parse_formula('="hi"') == Text("hi")

    def test_bool(self) -> None:
        assert parse_formula("=true") == Bool(True)

    def test_error(self) -> None:
        assert parse_formula("=#DIV/0!") == ErrorLiteral("#DIV/0!")

    def test_bare_name(self) -> None:
        assert parse_formula("=hello") == Name("hello")

    def test_references(self) -> None:
        assert parse_formula("=$a$1") == Ref("A1")
        assert parse_formula("=B5:A1") == RangeRef("B5", "A1")


class TestPrecedence:
    def test_mul_before_add(self) -> None:
        assert parse_formula("1+2*3") == Binary("+", Number(1), Binary("*", Number(2), Number(3)))

    def test_left_associative(self) -> None:
        assert parse_formula("8-3-1") == Binary("-", Binary("-", Number(8), Number(3)), Number(1))
        assert parse_formula("2^3^2") == Binary("^", Binary("^", Number(2), Number(3)), Number(2))

    def test_concat_below_additive(self) -> None:
        node = parse_formula('1+2&"x"')
        assert node == Binary("&", Binary("+", Number(1), Number(2)), Text("x"))

    def test_comparison_lowest(self) -> None:
        node = parse_formula("A1+1>=B1")
        assert node == Binary(">=", Binary("+", Ref("A1"), Number(1)), Ref("B1"))

    def test_unary_binds_tighter_than_power(self) -> None:
        assert parse_formula("-2^2") == Binary("^", Unary("-", Number(2)), Number(2))

    def test_percent_postfix(self) -> None:
        assert parse_formula("50%*2") == Binary("*", Percent(Number(50)), Number(2))

    def test_parentheses(self) -> None:
        assert parse_formula("(1+2)*3") == Binary("*", Binary("+", Number(1), Number(2)), Number(3))


class TestParseCalls:
    def test_nested_calls(self) -> None:
        node = parse_formula("=sum(A1:A3, max(1, 2))")
        assert node == Call("SUM", (RangeRef("A1", "A3"), Call("MAX", (Number(1), Number(2)))))

    def test_no_args(self) -> None:
        assert parse_formula("=PI()") == Call("PI", ())

    def test_missing_args(self) -> None:
        assert parse_formula("IF(A1,,0)") == Call("IF", (Ref("A1"), Missing(), Number(0)))

    def test_function_named_like_ref(self) -> None:
        assert parse_formula("LOG10(100)") == Call("LOG10", (Number(100),))

    def test_parse_functions(self) -> None:
        assert parse_functions('IF(A1>0, SUM(B1:B3), "MAX(")') == ["IF", "SUM"]


class TestParseArrays:
    def test_brace_array(self) -> None:
        node = parse_formula("{1,2;3,4}")
        assert node == ArrayLiteral(((Number(1), Number(2)), (Number(3), Number(4))))

    def test_bracket_array(self) -> None:
        node = parse_formula("SUM([1,2,3])")
        assert node == Call("SUM", (ArrayLiteral(((Number(1), Number(2), Number(3)),)),))


class TestSyntaxErrors:
    @pytest.mark.parametrize("formula", ["=", "=1+", "=(1", "=SUM(1", "=1 2", "={}", "=A1:"])
    def test_malformed(self, formula: str) -> None:
        with pytest.raises(FormulaSyntaxError):
            parse_formula(formula)

    def test_nesting_bound(self) -> None:
        formula = "(" * 10 + "1" + ")" * 10
        assert parse_formula(formula, max_depth=10) == Number(1)
        with pytest.raises(FormulaSyntaxError):
            parse_formula(formula, max_depth=9)

    def test_syntax_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            parse_formula("=*")
