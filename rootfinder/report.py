"""Iteration tables and user-facing diagnostics for solver runs."""
from __future__ import annotations

import math
from dataclasses import asdict
from typing import Callable, Dict, Optional, Sequence

import pandas as pd

from .solver import BisectionStep, SolveResult, Step

BISECTION_COLUMNS = ["iteration", "left", "right", "midpoint", "f_midpoint", "error"]
FIXED_POINT_COLUMNS = ["iteration", "x", "g_x", "error"]

_HEADERS = {
    "iteration": "Iter",
    "left": "a",
    "right": "b",
    "midpoint": "c",
    "f_midpoint": "f(c)",
    "x": "xn",
    "g_x": "g(xn)",
    "error": "Error",
}


def _fmt(decimals: int) -> Callable[[float], str]:
    return lambda v: f"{v:.{decimals}f}"


_BISECTION_FORMATS: Dict[str, Callable[[float], str]] = {
    "left": _fmt(6),
    "right": _fmt(6),
    "midpoint": _fmt(6),
    "f_midpoint": _fmt(12),
    "error": _fmt(12),
}
_FIXED_POINT_FORMATS: Dict[str, Callable[[float], str]] = {
    "x": _fmt(10),
    "g_x": _fmt(10),
    "error": _fmt(10),
}


def history_frame(history: Sequence[Step]) -> pd.DataFrame:
    """One row per recorded step; columns follow the step dataclass fields."""
    if history and isinstance(history[0], BisectionStep):
        columns = BISECTION_COLUMNS
    else:
        columns = FIXED_POINT_COLUMNS
    return pd.DataFrame([asdict(h) for h in history], columns=columns)


def format_history(history: Sequence[Step]) -> str:
    """Render the trace as a fixed-width text table ('' for an empty trace)."""
    if not history:
        return ""
    df = history_frame(history)
    formats = _BISECTION_FORMATS if isinstance(history[0], BisectionStep) else _FIXED_POINT_FORMATS
    return df.rename(columns=_HEADERS).to_string(
        index=False,
        formatters={_HEADERS[k]: f for k, f in formats.items()},
    )


def bracket_hint(f_lower: float, f_upper: float) -> Optional[str]:
    """Suggest how to move the interval when both endpoint values share a sign."""
    if f_lower > 0 and f_upper > 0:
        return "Both values are positive. Try a smaller lower bound."
    if f_lower < 0 and f_upper < 0:
        return "Both values are negative. Try a larger upper bound."
    return None


def tolerance_warning(lower: float, upper: float, tolerance: float) -> Optional[str]:
    if tolerance < (upper - lower) * math.ulp(1.0):
        return (
            "The tolerance is very small relative to the interval size; floating-point "
            "precision limits may keep the result from reaching it. Consider a larger "
            "tolerance or a smaller interval."
        )
    return None


def convergence_warning(result: SolveResult) -> Optional[str]:
    if result.residual <= result.tolerance:
        return None
    if result.method == "fixed_point":
        return (
            f"The method did not converge within the tolerance (final error {result.residual}). "
            "Try more iterations or a different initial value."
        )
    return (
        f"|f(root)| = {result.residual} is larger than the tolerance. "
        "Consider adjusting the parameters."
    )
