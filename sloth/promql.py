"""A syntax checker for Prometheus query expressions."""

from __future__ import annotations

import re
from dataclasses import dataclass


class PromQLSyntaxError(ValueError):
    """Raised when an expression is not valid PromQL."""


_LEXER_RE = re.compile(
    r"""
    (?P<ws>\s+)
    |(?P<comment>\#[^\n]*)
    |(?P<duration>(?:\d+(?:ms|[smhdwy]))+)(?![\w:])
    |(?P<number>0[xX][0-9a-fA-F]+|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
    |(?P<string>"(?:[^"\\\n]|\\.)*"|'(?:[^'\\\n]|\\.)*'|`[^`]*`)
    |(?P<ident>[a-zA-Z_:][a-zA-Z0-9_:]*)
    |(?P<op>=~|!~|==|!=|<=|>=|[-+*/%^<>=(){}\[\],:@])
    """,
    re.VERBOSE,
)

_PRECEDENCE = {
    "or": 1, "and": 2, "unless": 2,
    "==": 3, "!=": 3, "<=": 3, "<": 3, ">=": 3, ">": 3,
    "+": 4, "-": 4,
    "*": 5, "/": 5, "%": 5, "atan2": 5,
    "^": 6,
}
_COMPARISONS = {"==", "!=", "<=", "<", ">=", ">"}
_AGGREGATORS = {
    "sum", "min", "max", "avg", "group", "stddev", "stdvar", "count",
    "count_values", "bottomk", "topk", "quantile",
}
_KEYWORDS = {
    "by", "without", "on", "ignoring", "group_left", "group_right", "bool",
    "offset", "and", "or", "unless", "atan2",
}
_MATCH_OPS = {"=", "!=", "=~", "!~"}


@dataclass(frozen=True)
class _Lexeme:
    kind: str
    value: str
    pos: int


def _tokenize(expr: str) -> list[_Lexeme]:
    lexemes: list[_Lexeme] = []
    pos = 0
    while pos < len(expr):
        match = _LEXER_RE.match(expr, pos)
        if not match:
            raise PromQLSyntaxError(f"unexpected character {expr[pos]!r} at {pos}")
        kind = match.lastgroup
        if kind not in ("ws", "comment"):
            lexemes.append(_Lexeme(kind, match.group(kind), pos))
        pos = match.end()
    lexemes.append(_Lexeme("eof", "", pos))
    return lexemes


class _Parser:
    def __init__(self, expr: str):
        self.lexemes = _tokenize(expr)
        self.pos = 0

    def peek(self, offset: int = 0) -> _Lexeme:
        return self.lexemes[min(self.pos + offset, len(self.lexemes) - 1)]

    def advance(self) -> _Lexeme:
        lex = self.peek()
        self.pos += 1
        return lex

    def is_op(self, value: str, offset: int = 0) -> bool:
        lex = self.peek(offset)
        return lex.kind == "op" and lex.value == value

    def is_ident(self, *values: str) -> bool:
        lex = self.peek()
        return lex.kind == "ident" and lex.value in values

    def fail(self, message: str) -> None:
        lex = self.peek()
        raise PromQLSyntaxError(f"{message}, got {lex.value or 'end of input'!r} at {lex.pos}")

    def expect_op(self, value: str) -> None:
        if not self.is_op(value):
            self.fail(f"expected {value!r}")
        self.advance()

    def expect_kind(self, kind: str) -> _Lexeme:
        if self.peek().kind != kind:
            self.fail(f"expected {kind}")
        return self.advance()

    def parse(self) -> None:
        if self.peek().kind == "eof":
            raise PromQLSyntaxError("empty expression")
        self.parse_expr(1)
        if self.peek().kind != "eof":
            self.fail("unexpected token")

    def binary_op(self) -> str | None:
        lex = self.peek()
        if lex.kind == "op" and lex.value in _PRECEDENCE:
            return lex.value
        if lex.kind == "ident" and lex.value in ("and", "or", "unless", "atan2"):
            return lex.value
        return None

    def parse_expr(self, min_prec: int) -> None:
        self.parse_unary()
        while True:
            op = self.binary_op()
            if op is None or _PRECEDENCE[op] < min_prec:
                return
            self.advance()
            self.parse_bin_modifiers(op)
            prec = _PRECEDENCE[op]
            self.parse_expr(prec if op == "^" else prec + 1)

    def parse_bin_modifiers(self, op: str) -> None:
        if self.is_ident("bool"):
            if op not in _COMPARISONS:
                self.fail("bool modifier only allowed on comparisons")
            self.advance()
        if self.is_ident("on", "ignoring"):
            self.advance()
            self.parse_label_list()
            if self.is_ident("group_left", "group_right"):
                self.advance()
                if self.is_op("("):
                    self.parse_label_list()

    def parse_label_list(self) -> None:
        self.expect_op("(")
        while not self.is_op(")"):
            self.expect_kind("ident")
            if self.is_op(","):
                self.advance()
            elif not self.is_op(")"):
                self.fail("expected ',' or ')' in label list")
        self.advance()

    def parse_unary(self) -> None:
        if self.is_op("+") or self.is_op("-"):
            self.advance()
            self.parse_unary()
            return
        self.parse_postfix()

    def parse_postfix(self) -> None:
        self.parse_primary()
        while True:
            if self.is_op("["):
                self.advance()
                self.expect_kind("duration")
                if self.is_op(":"):
                    self.advance()
                    if self.peek().kind == "duration":
                        self.advance()
                self.expect_op("]")
            elif self.is_ident("offset"):
                self.advance()
                if self.is_op("-"):
                    self.advance()
                self.expect_kind("duration")
            elif self.is_op("@"):
                self.advance()
                if self.is_op("-") or self.is_op("+"):
                    self.advance()
                    self.expect_kind("number")
                elif self.peek().kind == "number":
                    self.advance()
                elif self.is_ident("start", "end"):
                    self.advance()
                    self.expect_op("(")
                    self.expect_op(")")
                else:
                    self.fail("expected timestamp after '@'")
            else:
                return

    def parse_args(self) -> None:
        self.expect_op("(")
        if not self.is_op(")"):
            self.parse_expr(1)
            while self.is_op(","):
                self.advance()
                self.parse_expr(1)
        self.expect_op(")")

    def parse_primary(self) -> None:
        lex = self.peek()
        if lex.kind in ("number", "string"):
            self.advance()
            return
        if self.is_op("("):
            self.advance()
            self.parse_expr(1)
            self.expect_op(")")
            return
        if self.is_op("{"):
            if not self.parse_matchers():
                self.fail("vector selector must contain at least one matcher")
            return
        if lex.kind != "ident":
            self.fail("unexpected token")
        name = lex.value
        if name.lower() in ("inf", "nan") and not (self.is_op("(", 1) or self.is_op("{", 1)):
            self.advance()
            return
        if name in _AGGREGATORS and (self.is_op("(", 1) or self.peek(1).value in ("by", "without")):
            self.advance()
            grouped = False
            if self.is_ident("by", "without"):
                self.advance()
                self.parse_label_list()
                grouped = True
            self.parse_args()
            if not grouped and self.is_ident("by", "without"):
                self.advance()
                self.parse_label_list()
            return
        if self.is_op("(", 1):
            self.advance()
            self.parse_args()
            return
        if name in _KEYWORDS:
            self.fail("unexpected keyword")
        self.advance()
        if self.is_op("{"):
            self.parse_matchers()

    def parse_matchers(self) -> int:
        self.expect_op("{")
        count = 0
        while not self.is_op("}"):
            self.expect_kind("ident")
            op = self.peek()
            if op.kind != "op" or op.value not in _MATCH_OPS:
                self.fail("expected label matching operator")
            self.advance()
            self.expect_kind("string")
            count += 1
            if self.is_op(","):
                self.advance()
            elif not self.is_op("}"):
                self.fail("expected ',' or '}' in label matchers")
        self.advance()
        return count


def validate_expression(expr: str) -> None:
    """Check ``expr`` is syntactically valid PromQL, raising :class:`PromQLSyntaxError`."""
    _Parser(expr).parse()


def is_valid_expression(expr: str) -> bool:
    """Return whether ``expr`` is syntactically valid PromQL."""
    try:
        validate_expression(expr)
    except PromQLSyntaxError:
        return False
    return True