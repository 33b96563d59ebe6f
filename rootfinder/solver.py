from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, List, Tuple, Union

from .cache import EvaluationCache
from .errors import InvalidArgumentError, InvalidBracketError

logger = logging.getLogger(__name__)

# Extra bisection steps allowed beyond the analytic count.
SAFETY_MARGIN = 10


@dataclass(frozen=True)
class BisectionStep:
    iteration: int
    left: float
    right: float
    midpoint: float
    f_midpoint: float
    error: float


@dataclass(frozen=True)
class FixedPointStep:
    iteration: int
    x: float
    g_x: float
    error: float


Step = Union[BisectionStep, FixedPointStep]


@dataclass(frozen=True)
class SolveResult:
    method: str
    root: float
    residual: float
    iterations: int
    converged: bool
    tolerance: float
    history: Tuple[Step, ...] = ()


def check_tolerance(tolerance: Any) -> float:
    """Return ``tolerance`` as a float, or raise if it is not a positive finite number."""
    if isinstance(tolerance, bool) or not isinstance(tolerance, (int, float)):
        raise InvalidArgumentError(f"Tolerance must be a number, got {tolerance!r}")
    tolerance = float(tolerance)
    if not (tolerance > 0 and math.isfinite(tolerance)):
        raise InvalidArgumentError(f"Tolerance must be positive, got {tolerance}")
    return tolerance


def bisection_iteration_cap(lower: float, upper: float, tolerance: float) -> int:
    """Hard cap on bisection steps: ``ceil(log2((b - a) / tol)) + SAFETY_MARGIN``."""
    ratio = (upper - lower) / tolerance
    if math.isfinite(ratio):
        return math.ceil(math.log2(ratio)) + SAFETY_MARGIN
    return math.ceil(math.log2(upper - lower) - math.log2(tolerance)) + SAFETY_MARGIN


class BisectionSolver:
    """Bracketing root search on ``[lower, upper]``.

    The function is sampled through a private :class:`EvaluationCache`. The
    iteration cap keeps the loop finite even when rounding stops the interval
    from shrinking below the tolerance.
    """

    def __init__(self, function: Callable[[float], float], lower: float, upper: float, tolerance: float):
        self.tolerance = check_tolerance(tolerance)
        self.lower, self.upper = float(lower), float(upper)
        if not (math.isfinite(self.lower) and math.isfinite(self.upper)):
            raise InvalidArgumentError(f"Interval bounds must be finite, got [{lower}, {upper}]")
        if self.upper <= self.lower:
            raise InvalidArgumentError(
                f"Upper bound must be greater than lower bound, got [{lower}, {upper}]"
            )
        if not math.isfinite(self.upper - self.lower):
            raise InvalidArgumentError(f"Interval [{lower}, {upper}] is too wide to bisect")
        self.function = function
        self.cache = EvaluationCache(function, self.tolerance)
        self.max_iterations = bisection_iteration_cap(self.lower, self.upper, self.tolerance)
        self._history: Tuple[BisectionStep, ...] = ()

    @property
    def history(self) -> Tuple[BisectionStep, ...]:
        return self._history

    def solve(self) -> float:
        self._history = ()
        tol = self.tolerance
        left, right = self.lower, self.upper
        f_left, f_right = self.cache(left), self.cache(right)

        if abs(f_left) < tol:
            logger.info("Root at lower bound %s (f = %s)", left, f_left)
            return left
        if abs(f_right) < tol:
            logger.info("Root at upper bound %s (f = %s)", right, f_right)
            return right
        if not f_left * f_right < 0:
            raise InvalidBracketError(left, right, f_left, f_right)

        logger.debug("Bisection on [%s, %s], tol=%s, cap=%d", left, right, tol, self.max_iterations)
        hist: List[BisectionStep] = []
        mid = left + (right - left) / 2.0
        it = 0
        while (right - left) > tol and it < self.max_iterations:
            it += 1
            mid = left + (right - left) / 2.0
            f_mid = self.cache(mid)
            hist.append(BisectionStep(it, left, right, mid, f_mid, right - left))
            logger.debug("iter %d: [%s, %s] c=%s f(c)=%s", it, left, right, mid, f_mid)

            if abs(f_mid) < tol:
                break

            if f_left * f_mid < 0:
                right = mid
            else:
                left, f_left = mid, f_mid

        self._history = tuple(hist)
        logger.info("Bisection finished after %d iterations: %s", it, mid)
        return mid


class FixedPointSolver:
    """Successive substitution ``x <- g(x)`` from ``initial_guess``.

    Convergence is not enforced: a divergent ``g`` simply runs to
    ``max_iterations``. The returned value is the ``x`` of the last recorded
    step, i.e. the iterate *before* ``g`` was applied.
    """

    def __init__(self, function: Callable[[float], float], initial_guess: float, max_iterations: int,
                 tolerance: float):
        if (isinstance(max_iterations, bool) or not isinstance(max_iterations, (int, float))
                or not (0 < max_iterations < math.inf) or int(max_iterations) != max_iterations):
            raise InvalidArgumentError(f"Maximum iterations must be a positive integer, got {max_iterations}")
        self.tolerance = check_tolerance(tolerance)
        self.initial_guess = float(initial_guess)
        self.max_iterations = int(max_iterations)
        self.function = function
        self.cache = EvaluationCache(function, self.tolerance)
        self._history: Tuple[FixedPointStep, ...] = ()

    @property
    def history(self) -> Tuple[FixedPointStep, ...]:
        return self._history

    def solve(self) -> float:
        self._history = ()
        x = self.initial_guess
        hist: List[FixedPointStep] = []

        for it in range(1, self.max_iterations + 1):
            g_x = self.cache(x)
            error = abs(g_x - x)
            hist.append(FixedPointStep(it, x, g_x, error))
            logger.debug("iter %d: x=%s g(x)=%s error=%s", it, x, g_x, error)

            if error < self.tolerance:
                break
            if it < self.max_iterations:
                x = g_x
        else:
            logger.info("Fixed point did not converge within %d iterations", self.max_iterations)

        self._history = tuple(hist)
        return x


def solve_bisection(
    f: Callable[[float], float],
    lower: float,
    upper: float,
    tolerance: float = 1e-6,
) -> SolveResult:
    """Run :class:`BisectionSolver` and check ``|f(root)|`` afterwards."""
    solver = BisectionSolver(f, lower, upper, tolerance)
    root = solver.solve()
    residual = abs(float(f(root)))
    hist = solver.history
    width = hist[-1].error if hist else 0.0
    return SolveResult(
        method="bisection",
        root=root,
        residual=residual,
        iterations=len(hist),
        converged=residual < solver.tolerance or width / 2.0 <= solver.tolerance,
        tolerance=solver.tolerance,
        history=hist,
    )


def solve_fixed_point(
    g: Callable[[float], float],
    initial_guess: float,
    max_iterations: int = 100,
    tolerance: float = 1e-8,
) -> SolveResult:
    """Run :class:`FixedPointSolver` and check ``|g(root) - root|`` afterwards."""
    solver = FixedPointSolver(g, initial_guess, max_iterations, tolerance)
    root = solver.solve()
    residual = abs(float(g(root)) - root)
    hist = solver.history
    return SolveResult(
        method="fixed_point",
        root=root,
        residual=residual,
        iterations=len(hist),
        converged=bool(hist) and hist[-1].error < solver.tolerance,
        tolerance=solver.tolerance,
        history=hist,
    )
