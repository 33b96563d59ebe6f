"""Exception classes for the root finder."""
from __future__ import annotations


class RootFinderError(Exception):
    """Base exception; ``kind`` tells callers which guidance to give."""

    kind = "error"


class ParseError(RootFinderError, ValueError):
    """Raised when formula text cannot be parsed."""

    kind = "parse"

    def __init__(self, message: str, position: int | None = None):
        if position is not None:
            message = f"{message} (at position {position})"
        super().__init__(message)
        self.position = position


class EvaluationError(RootFinderError, ArithmeticError):
    """Raised when a parsed expression cannot be evaluated at a point."""

    kind = "arithmetic"


class InvalidArgumentError(RootFinderError, ValueError):
    """Raised for bad solver settings (tolerance, iterations, bounds)."""

    kind = "invalid_argument"


class InvalidBracketError(InvalidArgumentError):
    """Raised when the bisection interval has no sign change."""

    def __init__(self, lower: float, upper: float, f_lower: float, f_upper: float):
        super().__init__(
            "Bisection requires opposite signs at the interval ends: "
            f"f({lower}) = {f_lower}, f({upper}) = {f_upper}"
        )
        self.lower = lower
        self.upper = upper
        self.f_lower = f_lower
        self.f_upper = f_upper
