"""Compile scalar expressions of a single variable into callables.

The grammar covers what body motion needs::

    expr    := term (("+" | "-") term)*
    term    := unary (("*" | "/" | "%") unary)*
    unary   := ("+" | "-") unary | power
    power   := primary (("^" | "**") unary)?
    primary := NUMBER | NAME | NAME "(" expr ("," expr)* ")" | "(" expr ")"

``^`` is right-associative and binds tighter than unary minus, so ``-t^2``
is ``-(t^2)``. ``log`` is the natural logarithm.
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import math
import re

Evaluator = Callable[[float], float]


class ExpressionError(ValueError):
    """Expression could not be compiled.

    ``position`` is the 1-based character index near which parsing stopped.
    """

    def __init__(self, message: str, expression: str, position: int) -> None:
        super().__init__(f"{message} near character {position}")
        self.expression = expression
        self.position = position


_CONSTANTS: dict[str, float] = {"pi": math.pi, "e": math.e}

_FUNCTIONS: dict[str, tuple[int, Callable[..., float]]] = {
    "sin": (1, math.sin),
    "cos": (1, math.cos),
    "tan": (1, math.tan),
    "asin": (1, math.asin),
    "acos": (1, math.acos),
    "atan": (1, math.atan),
    "sinh": (1, math.sinh),
    "cosh": (1, math.cosh),
    "tanh": (1, math.tanh),
    "sqrt": (1, math.sqrt),
    "exp": (1, math.exp),
    "log": (1, math.log),
    "ln": (1, math.log),
    "log10": (1, math.log10),
    "abs": (1, abs),
    "floor": (1, math.floor),
    "ceil": (1, math.ceil),
    "atan2": (2, math.atan2),
    "pow": (2, math.pow),
    "min": (2, min),
    "max": (2, max),
}

_TOKEN_RE = re.compile(
    r"\s*(?:"
    r"(?P<num>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)"
    r"|(?P<name>[A-Za-z_]\w*)"
    r"|(?P<op>\*\*|[-+*/%^(),])"
    r")"
)


@dataclass(frozen=True, slots=True)
class _Token:
    kind: str       # "num", "name", "op" or "end"
    text: str
    pos: int        # 0-based offset into the source


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    i = 0
    n = len(text)
    while i < n:
        if text[i].isspace():
            i += 1
            continue
        m = _TOKEN_RE.match(text, i)
        if m is None or m.lastgroup is None:
            raise ExpressionError(f"unexpected character {text[i]!r}", text, i + 1)
        kind = m.lastgroup
        tokens.append(_Token(kind, m.group(kind), m.start(kind)))
        i = m.end()
    tokens.append(_Token("end", "", n))
    return tokens


class _Parser:
    def __init__(self, text: str, variable: str) -> None:
        self.text = text
        self.variable = variable
        self.tokens = _tokenize(text)
        self.k = 0

    @property
    def tok(self) -> _Token:
        return self.tokens[self.k]

    def error(self, message: str) -> ExpressionError:
        return ExpressionError(message, self.text, self.tok.pos + 1)

    def accept(self, *ops: str) -> str | None:
        if self.tok.kind == "op" and self.tok.text in ops:
            self.k += 1
            return self.tokens[self.k - 1].text
        return None

    def expect(self, op: str) -> None:
        if self.accept(op) is None:
            raise self.error(f"expected {op!r}")

    def parse(self) -> Evaluator:
        if self.tok.kind == "end":
            raise self.error("empty expression")
        node = self.expr()
        if self.tok.kind != "end":
            raise self.error(f"unexpected {self.tok.text!r}")
        return node

    def expr(self) -> Evaluator:
        node = self.term()
        while True:
            op = self.accept("+", "-")
            if op is None:
                return node
            node = _binary(op, node, self.term())

    def term(self) -> Evaluator:
        node = self.unary()
        while True:
            op = self.accept("*", "/", "%")
            if op is None:
                return node
            node = _binary(op, node, self.unary())

    def unary(self) -> Evaluator:
        op = self.accept("+", "-")
        if op is None:
            return self.power()
        inner = self.unary()
        if op == "-":
            return lambda t: -inner(t)
        return inner

    def power(self) -> Evaluator:
        base = self.primary()
        if self.accept("^", "**") is not None:
            expo = self.unary()
            return lambda t: math.pow(base(t), expo(t))
        return base

    def primary(self) -> Evaluator:
        tok = self.tok
        if tok.kind == "num":
            self.k += 1
            value = float(tok.text)
            return lambda t: value
        if tok.kind == "name":
            self.k += 1
            if tok.text == self.variable:
                return lambda t: t
            if tok.text in _CONSTANTS:
                value = _CONSTANTS[tok.text]
                return lambda t: value
            if tok.text in _FUNCTIONS:
                return self.call(tok)
            self.k -= 1
            raise self.error(f"unknown name {tok.text!r}")
        if self.accept("(") is not None:
            node = self.expr()
            self.expect(")")
            return node
        if tok.kind == "end":
            raise self.error("unexpected end of expression")
        raise self.error(f"unexpected {tok.text!r}")

    def call(self, name: _Token) -> Evaluator:
        arity, fn = _FUNCTIONS[name.text]
        self.expect("(")
        args = [self.expr()]
        while self.accept(",") is not None:
            args.append(self.expr())
        if len(args) != arity:
            raise self.error(f"{name.text}() takes {arity} argument(s), got {len(args)}")
        self.expect(")")
        if arity == 1:
            a = args[0]
            return lambda t: float(fn(a(t)))
        a, b = args
        return lambda t: float(fn(a(t), b(t)))


def _binary(op: str, lhs: Evaluator, rhs: Evaluator) -> Evaluator:
    if op == "+":
        return lambda t: lhs(t) + rhs(t)
    if op == "-":
        return lambda t: lhs(t) - rhs(t)
    if op == "*":
        return lambda t: lhs(t) * rhs(t)
    if op == "/":
        return lambda t: lhs(t) / rhs(t)
    return lambda t: math.fmod(lhs(t), rhs(t))


@dataclass(frozen=True, slots=True)
class CompiledExpression:
    """A compiled expression; call it with the value of its variable.

    Domain errors (``sqrt(-1)``, ``1/0``) and overflow (``exp(1000)``) evaluate
    to NaN.
    """
    source: str
    variable: str
    func: Evaluator

    def __call__(self, value: float) -> float:
        try:
            return float(self.func(float(value)))
        except (ArithmeticError, ValueError):
            return math.nan


def compile_expression(text: str, variable: str = "t") -> CompiledExpression:
    """Compile ``text`` with ``variable`` as its only free name.

    Raises ExpressionError on any syntax error or unknown name.
    """
    return CompiledExpression(text, variable, _Parser(text, variable).parse())
