"""Formula parsing and evaluation for single-variable real functions.

Pipeline
--------
1) ``tokenize``: formula text -> immutable tuple of :class:`Token`.
2) ``_Parser``: recursive descent over the tokens -> small expression tree.
3) :class:`Expression`: walks the tree once per sample point, memoized per
   ``CACHE_PRECISION`` bucket.

Precedence, highest first: parentheses / calls, unary sign, ``^`` (left to
right), ``*`` ``/``, ``+`` ``-``. A leading sign belongs to the operand it
prefixes, so ``-x^2`` reads as ``(-x)^2``.
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Callable, Dict, NamedTuple, Optional, Tuple, Union

from .errors import EvaluationError, ParseError

__all__ = [
    "CACHE_PRECISION",
    "CONSTANTS",
    "FUNCTIONS",
    "Expression",
    "Token",
    "parse",
    "tokenize",
]

logger = logging.getLogger(__name__)

CACHE_PRECISION = 1e-10

VARIABLE = "x"
CONSTANTS: Dict[str, float] = {"e": math.e, "pi": math.pi}
FUNCTIONS: Dict[str, Callable[[float], float]] = {
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "sqrt": math.sqrt,
    "log": math.log,
    "ln": math.log,
    "exp": math.exp,
}

_TOKEN_RE = re.compile(
    r"""
    (?P<number>(?:\d+\.?\d*|\.\d+)(?:e[+-]?\d+)?)
    |(?P<name>[a-z_]+)
    |(?P<op>[-+*/^])
    |(?P<lparen>\()
    |(?P<rparen>\))
    |(?P<space>\s+)
    """,
    re.VERBOSE,
)


class Token(NamedTuple):
    kind: str
    text: str
    position: int


def tokenize(text: str) -> Tuple[Token, ...]:
    """Split ``text`` (case-insensitive) into tokens, dropping whitespace."""
    source = text.lower()
    tokens = []
    pos = 0
    while pos < len(source):
        m = _TOKEN_RE.match(source, pos)
        if m is None:
            raise ParseError(f"Unexpected character {source[pos]!r}", pos)
        if m.lastgroup != "space":
            tokens.append(Token(m.lastgroup, m.group(), pos))
        pos = m.end()
    return tuple(tokens)


# -----------------------------
# Expression tree
# -----------------------------

@dataclass(frozen=True)
class Number:
    value: float

    def evaluate(self, x: float) -> float:
        return self.value


@dataclass(frozen=True)
class Variable:
    def evaluate(self, x: float) -> float:
        return x


@dataclass(frozen=True)
class Negate:
    operand: "Node"

    def evaluate(self, x: float) -> float:
        return -self.operand.evaluate(x)


@dataclass(frozen=True)
class BinaryOp:
    operator: str
    left: "Node"
    right: "Node"

    def evaluate(self, x: float) -> float:
        a = self.left.evaluate(x)
        b = self.right.evaluate(x)
        if self.operator == "+":
            return a + b
        if self.operator == "-":
            return a - b
        if self.operator == "*":
            return a * b
        if self.operator == "/":
            if b == 0:
                raise EvaluationError("Division by zero")
            return a / b
        return math.pow(a, b)


@dataclass(frozen=True)
class Call:
    name: str
    argument: "Node"

    def evaluate(self, x: float) -> float:
        return FUNCTIONS[self.name](self.argument.evaluate(x))


Node = Union[Number, Variable, Negate, BinaryOp, Call]


class _Parser:
    """Recursive descent: sum -> term -> power -> signed -> primary."""

    def __init__(self, tokens: Tuple[Token, ...], length: int):
        self.tokens = tokens
        self.length = length
        self.index = 0

    def peek(self) -> Optional[Token]:
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return None

    def advance(self) -> Token:
        tok = self.tokens[self.index]
        self.index += 1
        return tok

    def at_operator(self, symbols: str) -> bool:
        tok = self.peek()
        return tok is not None and tok.kind == "op" and tok.text in symbols

    def parse(self) -> Node:
        if not self.tokens:
            raise ParseError("Empty expression")
        node = self.parse_sum()
        tok = self.peek()
        if tok is not None:
            if tok.kind == "rparen":
                raise ParseError("Unmatched ')'", tok.position)
            raise ParseError(f"Unexpected token {tok.text!r}", tok.position)
        return node

    def parse_sum(self) -> Node:
        node = self.parse_term()
        while self.at_operator("+-"):
            op = self.advance().text
            node = BinaryOp(op, node, self.parse_term())
        return node

    def parse_term(self) -> Node:
        node = self.parse_power()
        while self.at_operator("*/"):
            op = self.advance().text
            node = BinaryOp(op, node, self.parse_power())
        return node

    def parse_power(self) -> Node:
        node = self.parse_signed()
        while self.at_operator("^"):
            self.advance()
            node = BinaryOp("^", node, self.parse_signed())
        return node

    def parse_signed(self) -> Node:
        if self.at_operator("+-"):
            sign = self.advance().text
            operand = self.parse_signed()
            return Negate(operand) if sign == "-" else operand
        return self.parse_primary()

    def expect_close(self, opening: Token, what: str) -> None:
        tok = self.peek()
        if tok is None or tok.kind != "rparen":
            raise ParseError(f"Missing closing parenthesis for {what}", opening.position)
        self.advance()

    def parse_primary(self) -> Node:
        tok = self.peek()
        if tok is None:
            raise ParseError("Unexpected end of expression", self.length)
        if tok.kind == "number":
            self.advance()
            value = float(tok.text)
            if not math.isfinite(value):
                raise ParseError(f"Number out of range: {tok.text}", tok.position)
            return Number(value)
        if tok.kind == "lparen":
            self.advance()
            node = self.parse_sum()
            self.expect_close(tok, "group")
            return node
        if tok.kind == "name":
            return self.parse_name()
        raise ParseError(f"Missing operand before {tok.text!r}", tok.position)

    def parse_name(self) -> Node:
        tok = self.advance()
        name = tok.text
        nxt = self.peek()
        opens_call = nxt is not None and nxt.kind == "lparen"
        if name == VARIABLE:
            return Variable()
        if name in CONSTANTS:
            return Number(CONSTANTS[name])
        if name not in FUNCTIONS:
            if opens_call:
                raise ParseError(f"Unknown function {name!r}", tok.position)
            raise ParseError(f"Unknown symbol {name!r}", tok.position)
        if not opens_call:
            raise ParseError(f"Function {name!r} requires a parenthesized argument", tok.position)
        opening = self.advance()
        argument = self.parse_sum()
        self.expect_close(opening, f"function {name!r}")
        return Call(name, argument)


# Closed forms perform the same float operations, in the same order, as the
# tree walk for the same text.
_CLOSED_FORMS: Dict[str, Callable[[float], float]] = {
    "sin(x)": math.sin,
    "cos(x)": math.cos,
    "tan(x)": math.tan,
    "sqrt(x)": math.sqrt,
    "exp(x)": math.exp,
    "log(x)": math.log,
    "ln(x)": math.log,
    "x^2": lambda x: math.pow(x, 2.0),
    "x*x": lambda x: x * x,
    "x^3": lambda x: math.pow(x, 3.0),
    "x^2-4": lambda x: math.pow(x, 2.0) - 4.0,
    "x*x-4": lambda x: x * x - 4.0,
    "x^3-x-2": lambda x: math.pow(x, 3.0) - x - 2.0,
    "cos(x)-x": lambda x: math.cos(x) - x,
}


def _normalize(text: str) -> str:
    return "".join(text.lower().split())


class Expression:
    """A parsed formula ``f(x)``.

    Calling :meth:`evaluate` (or the instance itself) returns ``f(x)``.
    Results are memoized per ``CACHE_PRECISION`` bucket of ``x``;
    ``evaluations`` counts how many times the formula was actually computed.
    """

    def __init__(self, text: str, tree: Node, closed_form: Optional[Callable[[float], float]] = None):
        self._text = text
        self._tree = tree
        self._compute = closed_form if closed_form is not None else tree.evaluate
        self._cache: Dict[int, float] = {}
        self.evaluations = 0

    @property
    def text(self) -> str:
        return self._text

    @property
    def tree(self) -> Node:
        return self._tree

    def __repr__(self) -> str:
        return f"Expression({self._text!r})"

    def __call__(self, x: float) -> float:
        return self.evaluate(x)

    def evaluate(self, x: float) -> float:
        x = float(x)
        scaled = x / CACHE_PRECISION
        if not math.isfinite(scaled):
            return self._evaluate_uncached(x)

        key = math.floor(scaled + 0.5)
        if key in self._cache:
            return self._cache[key]
        result = self._evaluate_uncached(x)
        self._cache[key] = result
        return result

    def _evaluate_uncached(self, x: float) -> float:
        self.evaluations += 1
        try:
            return float(self._compute(x))
        except EvaluationError:
            raise
        except ZeroDivisionError as exc:
            raise EvaluationError("Division by zero") from exc
        except (ValueError, OverflowError) as exc:
            raise EvaluationError(f"Cannot evaluate {self._text!r} at x = {x}: {exc}") from exc


def parse(text: str) -> Expression:
    """Parse ``text`` into an :class:`Expression` or raise :class:`ParseError`."""
    if not isinstance(text, str):
        raise ParseError(f"Expected formula text, got {type(text).__name__}")
    tokens = tokenize(text)
    tree = _Parser(tokens, len(text)).parse()
    closed_form = _CLOSED_FORMS.get(_normalize(text))
    logger.debug("Parsed %r into %r (closed form: %s)", text, tree, closed_form is not None)
    return Expression(text.strip(), tree, closed_form=closed_form)
