"""Formula parser: regex-based reference extraction plus a recursive-descent
parser that turns formula text into an immutable AST.

Grammar (lowest to highest precedence)::

    expression := concat (('=' | '<>' | '<' | '>' | '<=' | '>=') concat)*
    concat     := additive ('&' additive)*
    additive   := term (('+' | '-') term)*
    term       := power (('*' | '/') power)*
    power      := postfix ('^' postfix)*
    postfix    := unary '%'*
    unary      := ('-' | '+') unary | primary
    primary    := NUMBER | STRING | BOOLEAN | ERROR | CELL_REF | RANGE_REF
                | NAME '(' args ')' | '(' expression ')' | array | NAME
    array      := '{' row (';' row)* '}' | '[' row (';' row)* ']'
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass

from gridcalc._utils import InvalidReferenceError, a1_to_rowcol, normalize_ref, rowcol_to_a1
from gridcalc.config import settings

# ---------------------------------------------------------------------------
# Regex patterns for reference extraction
# ---------------------------------------------------------------------------

_CELL_REF = r"\$?([A-Z]+)\$?(\d+)"
_BOUNDARY_BEFORE = r"(?<![A-Z0-9_.$])"
_BOUNDARY_AFTER = r"(?![A-Z0-9_.(])"

# Single cell ref: A1, $A$1, $A1, A$1
_SINGLE_REF_RE = re.compile(
    rf"{_BOUNDARY_BEFORE}{_CELL_REF}{_BOUNDARY_AFTER}",
    re.IGNORECASE,
)

# Range: A1:B5
_RANGE_REF_RE = re.compile(
    rf"{_BOUNDARY_BEFORE}{_CELL_REF}\s*:\s*{_CELL_REF}{_BOUNDARY_AFTER}",
    re.IGNORECASE,
)

# Function names: SUM(...), VLOOKUP(...)
_FUNC_RE = re.compile(r"([A-Z][A-Z0-9_.]*)\s*\(", re.IGNORECASE)

# Strings in formulas (to skip refs inside string literals)
_STRING_RE = re.compile(r'"(?:[^"]|"")*"')


def _strip_strings(formula: str) -> str:
    """Remove string literals so refs inside quotes aren't matched."""
    return _STRING_RE.sub('""', formula)


# ---------------------------------------------------------------------------
# Reference extraction
# ---------------------------------------------------------------------------


def parse_references(formula: str) -> list[str]:
    """Extract all single cell references from a formula.

    Returns canonical ``"A1"`` strings (uppercase, no dollar signs).
    Does NOT include range references - use parse_range_references for those.
    """
    clean = _strip_strings(formula)
    refs: list[str] = []
    seen: set[str] = set()

    # First extract ranges so we can skip their individual refs
    range_spans = [(m.start(), m.end()) for m in _RANGE_REF_RE.finditer(clean)]

    for m in _SINGLE_REF_RE.finditer(clean):
        pos = m.start()
        if any(s <= pos < e for s, e in range_spans):
            continue
        canonical = f"{m.group(1).upper()}{m.group(2)}"
        if canonical not in seen:
            refs.append(canonical)
            seen.add(canonical)

    return refs


def parse_range_references(formula: str) -> list[str]:
    """Extract all range references from a formula as ``"A1:B5"`` strings."""
    clean = _strip_strings(formula)
    ranges: list[str] = []
    seen: set[str] = set()

    for m in _RANGE_REF_RE.finditer(clean):
        canonical = f"{m.group(1).upper()}{m.group(2)}:{m.group(3).upper()}{m.group(4)}"
        if canonical not in seen:
            ranges.append(canonical)
            seen.add(canonical)

    return ranges


def parse_functions(formula: str) -> list[str]:
    """Extract all function names used in a formula."""
    clean = _strip_strings(formula)
    funcs: list[str] = []
    seen: set[str] = set()
    for m in _FUNC_RE.finditer(clean):
        name = m.group(1).upper()
        if name not in seen:
            funcs.append(name)
            seen.add(name)
    return funcs


# ---------------------------------------------------------------------------
# Range expansion
# ---------------------------------------------------------------------------


def range_bounds(start: str, end: str | None = None) -> tuple[int, int, int, int]:
    """Normalized ``(min_row, min_col, max_row, max_col)`` of a range.

    Accepts ``range_bounds("A1:B5")`` or ``range_bounds("A1", "B5")``.
    """
    if end is None:
        parts = start.split(":")
        if len(parts) != 2:
            raise InvalidReferenceError(f"Invalid range: {start!r}")
        start, end = parts
    start_row, start_col = a1_to_rowcol(start)
    end_row, end_col = a1_to_rowcol(end)
    return (
        min(start_row, end_row),
        min(start_col, end_col),
        max(start_row, end_row),
        max(start_col, end_col),
    )


def range_shape(start: str, end: str | None = None) -> tuple[int, int]:
    """``(n_rows, n_cols)`` of a range."""
    r_min, c_min, r_max, c_max = range_bounds(start, end)
    return (r_max - r_min + 1, c_max - c_min + 1)


def expand_range(start: str, end: str | None = None) -> list[str]:
    """Expand a range into individual refs, row-major from the top-left.

    ``expand_range("B5", "A1")`` and ``expand_range("A1:B5")`` both yield
    ``["A1", "B1", "A2", "B2", ..., "B5"]``.
    """
    r_min, c_min, r_max, c_max = range_bounds(start, end)
    return [
        rowcol_to_a1(r, c)
        for r in range(r_min, r_max + 1)
        for c in range(c_min, c_max + 1)
    ]


def all_references(formula: str) -> list[str]:
    """Extract all cell references (single + range-expanded) from a formula."""
    refs: list[str] = []
    seen: set[str] = set()

    for ref in parse_references(formula):
        if ref not in seen:
            refs.append(ref)
            seen.add(ref)

    for rng in parse_range_references(formula):
        for ref in expand_range(rng):
            if ref not in seen:
                refs.append(ref)
                seen.add(ref)

    return refs


# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------


class FormulaSyntaxError(ValueError):
    """Raised for malformed formula text (evaluates to ``#ERROR!``)."""


@dataclass(frozen=True)
class Number:
    value: int | float


@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Bool:
    value: bool


@dataclass(frozen=True)
class ErrorLiteral:
    code: str


@dataclass(frozen=True)
class Ref:
    ref: str  # canonical "A1"


@dataclass(frozen=True)
class RangeRef:
    start: str
    end: str


@dataclass(frozen=True)
class Name:
    """A bare identifier that is neither a reference nor a boolean."""

    name: str


@dataclass(frozen=True)
class Missing:
    """An omitted function argument, as in ``IF(A1,,0)``."""


@dataclass(frozen=True)
class Call:
    name: str
    args: tuple


@dataclass(frozen=True)
class Unary:
    op: str
    operand: object


@dataclass(frozen=True)
class Percent:
    operand: object


@dataclass(frozen=True)
class Binary:
    op: str
    left: object
    right: object


@dataclass(frozen=True)
class ArrayLiteral:
    rows: tuple  # tuple of tuples of nodes


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    pos: int


_NUMBER_TOKEN_RE = re.compile(r"(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_REF_TOKEN_RE = re.compile(r"\$?[A-Za-z]+\$?\d+(?![A-Za-z0-9_.])")
_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_.]*")
_ERROR_CODES = sorted(("#DIV/0!", "#CIRCULAR!", "#NAME?", "#VALUE!", "#REF!", "#N/A", "#ERROR!", "#NUM!"),
                      key=len, reverse=True)
_PUNCT = {
    "(": "LPAREN", ")": "RPAREN", ",": "COMMA", ";": "SEMI", ":": "COLON",
    "{": "LBRACE", "}": "RBRACE", "[": "LBRACKET", "]": "RBRACKET", "%": "PERCENT",
}
_TWO_CHAR_OPS = ("<=", ">=", "<>")
_ONE_CHAR_OPS = "+-*/^&=<>"


def tokenize(text: str) -> list[Token]:
    """Split formula text into tokens. Quotes suppress delimiter handling."""
    tokens: list[Token] = []
    i = 0
    length = len(text)

    while i < length:
        ch = text[i]

        if ch.isspace():
            i += 1
            continue

        if ch in ('"', "'"):
            quote = ch
            j = i + 1
            buf: list[str] = []
            while True:
                if j >= length:
                    raise FormulaSyntaxError(f"Unterminated string at position {i}")
                if text[j] == quote:
                    # Excel escaped quote ("")
                    if quote == '"' and j + 1 < length and text[j + 1] == '"':
                        buf.append('"')
                        j += 2
                        continue
                    break
                buf.append(text[j])
                j += 1
            tokens.append(Token("STRING", "".join(buf), i))
            i = j + 1
            continue

        if ch.isdigit() or (ch == "." and i + 1 < length and text[i + 1].isdigit()):
            m = _NUMBER_TOKEN_RE.match(text, i)
            tokens.append(Token("NUMBER", m.group(0), i))
            i = m.end()
            continue

        if ch == "#":
            upper = text[i:].upper()
            for code in _ERROR_CODES:
                if upper.startswith(code):
                    tokens.append(Token("ERROR", code, i))
                    i += len(code)
                    break
            else:
                raise FormulaSyntaxError(f"Unknown error literal at position {i}")
            continue

        if ch == "$" or ch.isalpha() or ch == "_":
            m = _REF_TOKEN_RE.match(text, i)
            if m and not _followed_by_paren(text, m.end()):
                tokens.append(Token("REF", m.group(0), i))
                i = m.end()
                continue
            m = _IDENT_RE.match(text, i)
            if not m:
                raise FormulaSyntaxError(f"Unexpected character {ch!r} at position {i}")
            kind = "FUNC" if _followed_by_paren(text, m.end()) else "NAME"
            tokens.append(Token(kind, m.group(0), i))
            i = m.end()
            continue

        two = text[i:i + 2]
        if two in _TWO_CHAR_OPS:
            tokens.append(Token("OP", two, i))
            i += 2
            continue
        if ch in _ONE_CHAR_OPS:
            tokens.append(Token("OP", ch, i))
            i += 1
            continue
        if ch in _PUNCT:
            tokens.append(Token(_PUNCT[ch], ch, i))
            i += 1
            continue

        raise FormulaSyntaxError(f"Unexpected character {ch!r} at position {i}")

    tokens.append(Token("EOF", "", length))
    return tokens


def _followed_by_paren(text: str, pos: int) -> bool:
    while pos < len(text) and text[pos] == " ":
        pos += 1
    return pos < len(text) and text[pos] == "("


# ---------------------------------------------------------------------------
# Recursive-descent parser
# ---------------------------------------------------------------------------

_COMPARISON_OPS = ("=", "<>", "<", ">", "<=", ">=")


class _Parser:
    def __init__(self, tokens: list[Token], max_depth: int) -> None:
        self._tokens = tokens
        self._pos = 0
        self._depth = 0
        self._max_depth = max_depth

    # -- token helpers -------------------------------------------------

    def _peek(self) -> Token:
        return self._tokens[self._pos]

    def _advance(self) -> Token:
        tok = self._tokens[self._pos]
        self._pos += 1
        return tok

    def _at_op(self, *ops: str) -> bool:
        tok = self._peek()
        return tok.kind == "OP" and tok.text in ops

    def _expect(self, kind: str) -> Token:
        tok = self._advance()
        if tok.kind != kind:
            raise FormulaSyntaxError(
                f"Expected {kind} at position {tok.pos}, found {tok.text or 'end of formula'!r}"
            )
        return tok

    def _enter(self) -> None:
        self._depth += 1
        if self._depth > self._max_depth:
            raise FormulaSyntaxError(f"Formula nesting exceeds {self._max_depth} levels")

    def _leave(self) -> None:
        self._depth -= 1

    # -- grammar -------------------------------------------------------

    def parse(self) -> object:
        node = self.expression()
        tok = self._peek()
        if tok.kind != "EOF":
            raise FormulaSyntaxError(f"Unexpected {tok.text!r} at position {tok.pos}")
        return node

    def expression(self) -> object:
        node = self._concat()
        while self._at_op(*_COMPARISON_OPS):
            op = self._advance().text
            node = Binary(op, node, self._concat())
        return node

    def _concat(self) -> object:
        node = self._additive()
        while self._at_op("&"):
            self._advance()
            node = Binary("&", node, self._additive())
        return node

    def _additive(self) -> object:
        node = self._term()
        while self._at_op("+", "-"):
            op = self._advance().text
            node = Binary(op, node, self._term())
        return node

    def _term(self) -> object:
        node = self._power()
        while self._at_op("*", "/"):
            op = self._advance().text
            node = Binary(op, node, self._power())
        return node

    def _power(self) -> object:
        node = self._postfix()
        while self._at_op("^"):
            self._advance()
            node = Binary("^", node, self._postfix())
        return node

    def _postfix(self) -> object:
        node = self._unary()
        while self._peek().kind == "PERCENT":
            self._advance()
            node = Percent(node)
        return node

    def _unary(self) -> object:
        if self._at_op("-", "+"):
            op = self._advance().text
            self._enter()
            operand = self._unary()
            self._leave()
            return Unary(op, operand)
        return self._primary()

    def _primary(self) -> object:
        tok = self._advance()
        kind = tok.kind

        if kind == "NUMBER":
            text = tok.text
            if text.isdigit():
                return Number(int(text))
            return Number(float(text))

        if kind == "STRING":
            return Text(tok.text)

        if kind == "ERROR":
            return ErrorLiteral(tok.text)

        if kind == "REF":
            start = normalize_ref(tok.text)
            if self._peek().kind == "COLON":
                self._advance()
                end_tok = self._expect("REF")
                return RangeRef(start, normalize_ref(end_tok.text))
            return Ref(start)

        if kind == "NAME":
            upper = tok.text.upper()
            if upper == "TRUE":
                return Bool(True)
            if upper == "FALSE":
                return Bool(False)
            return Name(tok.text)

        if kind == "FUNC":
            return self._call(tok)

        if kind == "LPAREN":
            self._enter()
            node = self.expression()
            self._expect("RPAREN")
            self._leave()
            return node

        if kind in ("LBRACE", "LBRACKET"):
            return self._array("RBRACE" if kind == "LBRACE" else "RBRACKET")

        raise FormulaSyntaxError(
            f"Unexpected {tok.text or 'end of formula'!r} at position {tok.pos}"
        )

    def _call(self, name_tok: Token) -> Call:
        self._enter()
        self._expect("LPAREN")
        args: list[object] = []
        if self._peek().kind == "RPAREN":
            self._advance()
            self._leave()
            return Call(name_tok.text.upper(), ())
        while True:
            if self._peek().kind in ("COMMA", "RPAREN"):
                args.append(Missing())
            else:
                args.append(self.expression())
            tok = self._advance()
            if tok.kind == "COMMA":
                continue
            if tok.kind == "RPAREN":
                break
            raise FormulaSyntaxError(
                f"Expected ',' or ')' at position {tok.pos}, found {tok.text or 'end of formula'!r}"
            )
        self._leave()
        return Call(name_tok.text.upper(), tuple(args))

    def _array(self, closing: str) -> ArrayLiteral:
        self._enter()
        rows: list[tuple] = []
        row: list[object] = []
        if self._peek().kind == closing:
            raise FormulaSyntaxError("Empty array literal")
        while True:
            row.append(self.expression())
            tok = self._advance()
            if tok.kind == "COMMA":
                continue
            if tok.kind == "SEMI":
                rows.append(tuple(row))
                row = []
                continue
            if tok.kind == closing:
                rows.append(tuple(row))
                break
            raise FormulaSyntaxError(f"Malformed array literal at position {tok.pos}")
        self._leave()
        return ArrayLiteral(tuple(rows))


def _parse_uncached(formula: str, max_depth: int) -> object:
    return _Parser(tokenize(formula), max_depth).parse()


# Shared by every evaluator; sized from the module settings at import time
_parse_cached = functools.lru_cache(maxsize=settings.parse_cache_size)(_parse_uncached)


def parse_formula(formula: str, max_depth: int | None = None) -> object:
    """Parse formula text (leading ``=`` optional) into an AST node.

    Raises :class:`FormulaSyntaxError` for malformed input, including nesting
    deeper than *max_depth*.
    """
    body = formula.strip()
    if body.startswith("="):
        body = body[1:].strip()
    if not body:
        raise FormulaSyntaxError("Empty formula")
    depth = settings.max_nesting_depth if max_depth is None else max_depth
    try:
        return _parse_cached(body, depth)
    except InvalidReferenceError as e:
        raise FormulaSyntaxError(str(e)) from e
