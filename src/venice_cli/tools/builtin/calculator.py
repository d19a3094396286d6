"""Calculator tool backed by a small recursive-descent evaluator.

Grammar::

    expr    := term (("+" | "-") term)*
    term    := unary (("*" | "/" | "%") unary)*
    unary   := ("+" | "-") unary | power
    power   := primary (("^" | "**") unary)?
    primary := NUMBER | NAME | NAME "(" [expr ("," expr)*] ")" | "(" expr ")"

Only numeric literals, the operators above, parentheses and the
allow-listed names in ``FUNCTIONS`` / ``CONSTANTS`` are accepted.  All
arithmetic is done in floats.
"""

from __future__ import annotations

import math
import re
from typing import Any, Callable

from venice_cli.tools.base import Tool
from venice_cli.types import ToolParameter, ToolResult


class CalculatorError(ValueError):
    """Raised for any expression that cannot be evaluated."""


CONSTANTS: dict[str, float] = {
    "pi": math.pi,
    "e": math.e,
}

FUNCTIONS: dict[str, tuple[Callable[..., float], int, int]] = {
    # name: (function, min args, max args)
    "sqrt": (math.sqrt, 1, 1),
    "sin": (math.sin, 1, 1),
    "cos": (math.cos, 1, 1),
    "tan": (math.tan, 1, 1),
    "asin": (math.asin, 1, 1),
    "acos": (math.acos, 1, 1),
    "atan": (math.atan, 1, 1),
    "log": (math.log, 1, 2),
    "log10": (math.log10, 1, 1),
    "log2": (math.log2, 1, 1),
    "exp": (math.exp, 1, 1),
    "abs": (abs, 1, 1),
    "floor": (math.floor, 1, 1),
    "ceil": (math.ceil, 1, 1),
    "round": (lambda x: math.floor(x + 0.5), 1, 1),
    "pow": (math.pow, 2, 2),
    "min": (min, 1, 64),
    "max": (max, 1, 64),
}

_TOKEN_RE = re.compile(
    r"\s*(?:"
    r"(?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)"
    r"|(?P<name>[A-Za-z_][A-Za-z_0-9]*)"
    r"|(?P<op>\*\*|[-+*/%^(),])"
    r")"
)

_MAX_LENGTH = 1000


def tokenize(expression: str) -> list[tuple[str, str]]:
    """Split *expression* into ``(kind, text)`` tokens."""
    tokens: list[tuple[str, str]] = []
    pos = 0
    stripped = expression.rstrip()
    while pos < len(stripped):
        match = _TOKEN_RE.match(stripped, pos)
        if not match or match.end() == pos:
            raise CalculatorError(f"unexpected character {stripped[pos:].lstrip()[:1]!r}")
        kind = match.lastgroup or ""
        tokens.append((kind, match.group(kind)))
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, tokens: list[tuple[str, str]]) -> None:
        self._tokens = tokens
        self._pos = 0

    def _peek(self) -> tuple[str, str] | None:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return None

    def _next(self) -> tuple[str, str]:
        tok = self._peek()
        if tok is None:
            raise CalculatorError("unexpected end of expression")
        self._pos += 1
        return tok

    def _accept(self, *ops: str) -> str | None:
        tok = self._peek()
        if tok is not None and tok[0] == "op" and tok[1] in ops:
            self._pos += 1
            return tok[1]
        return None

    def _expect(self, op: str) -> None:
        if self._accept(op) is None:
            tok = self._peek()
            found = tok[1] if tok else "end of expression"
            raise CalculatorError(f"expected {op!r}, found {found!r}")

    def parse(self) -> float:
        value = self._expr()
        tok = self._peek()
        if tok is not None:
            raise CalculatorError(f"unexpected token {tok[1]!r}")
        return value

    def _expr(self) -> float:
        value = self._term()
        while (op := self._accept("+", "-")) is not None:
            rhs = self._term()
            value = value + rhs if op == "+" else value - rhs
        return value

    def _term(self) -> float:
        value = self._unary()
        while (op := self._accept("*", "/", "%")) is not None:
            rhs = self._unary()
            if op == "*":
                value = value * rhs
            elif rhs == 0:
                raise CalculatorError("division by zero")
            elif op == "/":
                value = value / rhs
            else:
                value = math.fmod(value, rhs)
        return value

    def _unary(self) -> float:
        op = self._accept("+", "-")
        if op == "-":
            return -self._unary()
        if op == "+":
            return self._unary()
        return self._power()

    def _power(self) -> float:
        base = self._primary()
        if self._accept("^", "**") is not None:
            exponent = self._unary()
            return math.pow(base, exponent)
        return base

    def _primary(self) -> float:
        kind, text = self._next()
        if kind == "number":
            return float(text)
        if kind == "name":
            return self._name(text.lower())
        if kind == "op" and text == "(":
            value = self._expr()
            self._expect(")")
            return value
        raise CalculatorError(f"unexpected token {text!r}")

    def _name(self, name: str) -> float:
        if self._accept("(") is None:
            if name in CONSTANTS:
                return CONSTANTS[name]
            if name in FUNCTIONS:
                raise CalculatorError(f"function {name!r} needs arguments")
            raise CalculatorError(f"unknown name {name!r}")

        if name not in FUNCTIONS:
            raise CalculatorError(f"unknown function {name!r}")
        args: list[float] = []
        if self._accept(")") is None:
            args.append(self._expr())
            while self._accept(",") is not None:
                args.append(self._expr())
            self._expect(")")

        func, min_args, max_args = FUNCTIONS[name]
        if not min_args <= len(args) <= max_args:
            raise CalculatorError(f"wrong number of arguments for {name}()")
        return float(func(*args))


def evaluate(expression: str) -> float:
    """Evaluate an arithmetic expression."""
    if not expression or not expression.strip():
        raise CalculatorError("empty expression")
    if len(expression) > _MAX_LENGTH:
        raise CalculatorError("expression too long")
    try:
        value = _Parser(tokenize(expression)).parse()
    except CalculatorError:
        raise
    except (OverflowError, RecursionError, ValueError) as e:
        raise CalculatorError(str(e)) from e
    if math.isnan(value) or math.isinf(value):
        raise CalculatorError("result is not a finite number")
    return value


def format_number(value: float) -> str:
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


class CalculatorTool(Tool):
    name = "calculator"
    description = (
        "Perform mathematical calculations. Supports basic arithmetic, "
        "powers, roots, and common math functions."
    )
    parameters = [
        ToolParameter(
            name="expression",
            type="string",
            description=(
                'Mathematical expression to evaluate '
                '(e.g., "2 + 2", "sqrt(16)", "sin(3.14)")'
            ),
        ),
    ]

    async def execute(self, **kwargs: Any) -> ToolResult:
        expression = str(kwargs.get("expression", ""))
        try:
            value = evaluate(expression)
        except CalculatorError as e:
            return ToolResult(success=True, output=f"Error evaluating expression: {e}")
        return ToolResult(success=True, output=f"Result: {format_number(value)}")
