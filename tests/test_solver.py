from __future__ import annotations

import math
from typing import List

import pytest
from scipy.optimize import brentq

from rootfinder.errors import EvaluationError, InvalidArgumentError, InvalidBracketError
from rootfinder.expression import parse
from rootfinder.solver import (
    BisectionSolver,
    BisectionStep,
    FixedPointSolver,
    FixedPointStep,
    bisection_iteration_cap,
    solve_bisection,
    solve_fixed_point,
)

DOTTIE = 0.7390851332151607


# ----------------------------------------------------------------------
# Bisection
# ----------------------------------------------------------------------

def test_bisection_finds_square_root_of_four() -> None:
    solver = BisectionSolver(parse("x^2 - 4"), 0.0, 3.0, 1e-6)
    root = solver.solve()

    assert abs(root - 2.0) <= 1e-6
    cap = math.ceil(math.log2(3 / 1e-6)) + 10
    assert solver.max_iterations == cap
    assert 0 < len(solver.history) <= cap
    assert root == solver.history[-1].midpoint


def test_bisection_trace_records_each_step() -> None:
    solver = BisectionSolver(parse("x^2 - 4"), 0.0, 3.0, 1e-6)
    solver.solve()
    hist = solver.history

    assert isinstance(hist, tuple)
    assert all(isinstance(h, BisectionStep) for h in hist)
    assert hist[0] == BisectionStep(1, 0.0, 3.0, 1.5, -1.75, 3.0)
    assert [h.iteration for h in hist] == list(range(1, len(hist) + 1))
    for prev, cur in zip(hist, hist[1:]):
        assert cur.error == pytest.approx(prev.error / 2)
        assert cur.left <= 2.0 <= cur.right


def test_bisection_rejects_interval_without_sign_change() -> None:
    solver = BisectionSolver(parse("x^2 - 4"), -1.0, 1.0, 1e-6)
    with pytest.raises(InvalidBracketError) as excinfo:
        solver.solve()

    assert isinstance(excinfo.value, InvalidArgumentError)
    assert excinfo.value.f_lower == -3.0
    assert excinfo.value.f_upper == -3.0
    assert solver.history == ()


def test_bisection_exact_root_at_lower_bound() -> None:
    solver = BisectionSolver(parse("x - 2"), 2.0, 5.0, 1e-6)
    assert solver.solve() == 2.0
    assert solver.history == ()


def test_bisection_exact_root_at_upper_bound() -> None:
    solver = BisectionSolver(parse("x - 5"), 2.0, 5.0, 1e-6)
    assert solver.solve() == 5.0
    assert solver.history == ()


def test_bisection_interval_narrower_than_tolerance() -> None:
    solver = BisectionSolver(lambda x: 100 * (x - 0.5), 0.0, 1.0, 2.0)
    assert solver.solve() == 0.5
    assert solver.history == ()


@pytest.mark.parametrize("tolerance", [0.0, -1e-3, float("nan"), "1e-6", True])
def test_bisection_rejects_bad_tolerance(tolerance: float) -> None:
    with pytest.raises(InvalidArgumentError):
        BisectionSolver(lambda x: x, -1.0, 1.0, tolerance)


@pytest.mark.parametrize("lower, upper", [(1.0, 1.0), (2.0, 1.0), (0.0, float("inf")), (-1e308, 1e308)])
def test_bisection_rejects_bad_interval(lower: float, upper: float) -> None:
    with pytest.raises(InvalidArgumentError):
        BisectionSolver(lambda x: x, lower, upper, 1e-6)


def test_bisection_agrees_with_brentq() -> None:
    formula = "x^3 - x - 2"
    root = BisectionSolver(parse(formula), 1.0, 2.0, 1e-10).solve()
    reference = brentq(lambda x: x ** 3 - x - 2, 1.0, 2.0, xtol=1e-14)
    assert abs(root - reference) < 1e-9


def test_bisection_resolve_rebuilds_trace_and_reuses_cache() -> None:
    calls: List[float] = []

    def f(x: float) -> float:
        calls.append(x)
        return math.cos(x) - x

    solver = BisectionSolver(f, 0.0, 1.0, 1e-8)
    first = solver.solve()
    first_trace = solver.history
    n_calls = len(calls)

    assert solver.solve() == first
    assert solver.history == first_trace
    assert len(calls) == n_calls


def test_bisection_evaluation_error_propagates() -> None:
    solver = BisectionSolver(parse("1/(x-1)"), 1.0, 3.0, 1e-6)
    with pytest.raises(EvaluationError):
        solver.solve()
    assert solver.history == ()


def test_iteration_cap_formula() -> None:
    assert bisection_iteration_cap(0.0, 1.0, 1e-3) == 10 + 10
    assert bisection_iteration_cap(0.0, 1.0, 2.0) == 9


def test_iteration_cap_for_tiny_tolerance_on_wide_interval() -> None:
    solver = BisectionSolver(lambda x: x, -1e300, 1e300, 1e-20)
    assert solver.max_iterations == math.ceil(math.log2(2e300) - math.log2(1e-20)) + 10
    assert solver.solve() == 0.0


# ----------------------------------------------------------------------
# Fixed point
# ----------------------------------------------------------------------

def test_fixed_point_converges_to_dottie_number() -> None:
    solver = FixedPointSolver(parse("cos(x)"), 0.0, 100, 1e-8)
    root = solver.solve()
    hist = solver.history

    assert abs(root - DOTTIE) < 1e-7
    assert len(hist) < 100
    assert hist[-1].error < 1e-8
    assert all(isinstance(h, FixedPointStep) for h in hist)
    assert hist[0] == FixedPointStep(1, 0.0, 1.0, 1.0)


def test_fixed_point_returns_iterate_before_final_substitution() -> None:
    solver = FixedPointSolver(parse("cos(x)"), 0.0, 100, 1e-8)
    root = solver.solve()
    # The value that met the tolerance was g(x); the solver reports x.
    assert root == solver.history[-1].x
    assert root == solver.history[-2].g_x


def test_fixed_point_divergent_runs_to_cap_without_raising() -> None:
    solver = FixedPointSolver(parse("2*x"), 1.0, 5, 1e-8)
    root = solver.solve()
    hist = solver.history

    assert len(hist) == 5
    assert [h.x for h in hist] == [1.0, 2.0, 4.0, 8.0, 16.0]
    assert root == 16.0
    assert root == hist[-1].x == hist[-2].g_x
    assert hist[-1].g_x == 32.0


def test_fixed_point_long_divergent_run_keeps_full_trace() -> None:
    solver = FixedPointSolver(parse("2*x"), 1.0, 1000, 1e-8)
    root = solver.solve()
    hist = solver.history

    assert len(hist) == 1000
    assert root == hist[-1].x == 2.0 ** 999
    assert hist[-1].g_x == 2.0 ** 1000


def test_fixed_point_overflowing_iterates_run_to_cap() -> None:
    solver = FixedPointSolver(parse("x*x"), 2.0, 20, 1e-8)
    root = solver.solve()
    hist = solver.history

    assert len(hist) == 20
    assert hist[9].x == 2.0 ** 512
    assert math.isinf(hist[9].g_x)
    assert math.isinf(root)


def test_fixed_point_oscillating_function() -> None:
    solver = FixedPointSolver(lambda x: -x, 1.0, 4, 1e-6)
    assert solver.solve() == -1.0
    assert [h.error for h in solver.history] == [2.0, 2.0, 2.0, 2.0]


def test_fixed_point_immediate_convergence() -> None:
    solver = FixedPointSolver(lambda x: x, 3.0, 10, 1e-6)
    assert solver.solve() == 3.0
    assert solver.history == (FixedPointStep(1, 3.0, 3.0, 0.0),)


@pytest.mark.parametrize("max_iterations", [0, -3, 2.5])
def test_fixed_point_rejects_bad_iteration_count(max_iterations) -> None:
    with pytest.raises(InvalidArgumentError):
        FixedPointSolver(lambda x: x, 0.0, max_iterations, 1e-6)


def test_fixed_point_rejects_bad_tolerance() -> None:
    with pytest.raises(InvalidArgumentError):
        FixedPointSolver(lambda x: x, 0.0, 10, 0.0)


def test_fixed_point_evaluation_error_leaves_empty_trace() -> None:
    solver = FixedPointSolver(parse("sqrt(x - 5)"), 0.0, 10, 1e-6)
    with pytest.raises(EvaluationError):
        solver.solve()
    assert solver.history == ()


# ----------------------------------------------------------------------
# Functional API
# ----------------------------------------------------------------------

def test_solve_bisection_result() -> None:
    res = solve_bisection(parse("x^3 - x - 2"), 1.0, 2.0, 1e-6)
    assert res.method == "bisection"
    assert res.converged
    assert res.iterations == len(res.history)
    assert res.residual == pytest.approx(abs(res.root ** 3 - res.root - 2))
    assert abs(res.root - 1.5213797068045676) < 1e-6


def test_solve_fixed_point_result_flags_divergence() -> None:
    res = solve_fixed_point(parse("2*x"), 1.0, 5, 1e-8)
    assert res.method == "fixed_point"
    assert not res.converged
    assert res.iterations == 5
    assert res.residual == 16.0


def test_solve_fixed_point_result_converged() -> None:
    res = solve_fixed_point(parse("(x + 5/x)/2"), 1.0, 50, 1e-10)
    assert res.converged
    assert res.root == pytest.approx(math.sqrt(5), abs=1e-9)
