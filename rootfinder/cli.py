"""Command-line interface around :mod:`rootfinder.solver`."""
from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Callable, Dict, Optional

import yaml

from . import report
from .config import BisectionConfig, FixedPointConfig, bisection_config, fixed_point_config, load_config
from .errors import InvalidArgumentError, InvalidBracketError, RootFinderError
from .expression import Expression, parse
from .solver import SolveResult, solve_bisection, solve_fixed_point

__all__ = ["main", "menu", "run_bisection", "run_fixed_point"]

InputFn = Callable[[str], str]

EXIT_CODES = {"parse": 2, "arithmetic": 3, "invalid_argument": 4}

GUIDANCE = {
    "parse": "Check the formula: use x as the variable, '*' for multiplication and balanced parentheses.",
    "arithmetic": "The function could not be evaluated at a sample point. Try a different interval or initial value.",
    "invalid_argument": "Try again with different interval bounds, tolerance or iteration count.",
}

SUPPORTED = (
    "Operators: + - * / ^   Functions: sin, cos, tan, exp, log, ln, sqrt   Constants: e, pi"
)


def _report_error(exc: RootFinderError) -> int:
    print(f"Error: {exc}", file=sys.stderr)
    if isinstance(exc, InvalidBracketError):
        hint = report.bracket_hint(exc.f_lower, exc.f_upper)
        if hint:
            print(hint, file=sys.stderr)
    print(GUIDANCE.get(exc.kind, ""), file=sys.stderr)
    return EXIT_CODES.get(exc.kind, 1)


def _print_table(result: SolveResult, show_table: bool) -> None:
    if show_table and result.history:
        print("\nIteration table:")
        print(report.format_history(result.history))


def run_bisection(expression: Expression, settings: BisectionConfig, show_table: bool = True) -> SolveResult:
    warning = report.tolerance_warning(settings.lower, settings.upper, settings.tolerance)
    if warning:
        print(f"Warning: {warning}")

    result = solve_bisection(expression, settings.lower, settings.upper, settings.tolerance)

    print(f"\nResults for f(x) = {expression.text}")
    print(f"Approximate root: {result.root}")
    print(f"Error is less than: {settings.tolerance}")
    warning = report.convergence_warning(result)
    if warning:
        print(f"\nWarning: {warning}")
    _print_table(result, show_table)
    return result


def run_fixed_point(expression: Expression, settings: FixedPointConfig, show_table: bool = True) -> SolveResult:
    result = solve_fixed_point(expression, settings.initial_guess, settings.max_iterations, settings.tolerance)

    print(f"\nResults for g(x) = {expression.text}")
    print(f"Approximate fixed point: {result.root}")
    print(f"Final error |g(x) - x|: {result.residual}")
    warning = report.convergence_warning(result)
    if warning:
        print(f"\nWarning: {warning}")
    _print_table(result, show_table)
    return result


# --- Interactive menu -------------------------------------------------------------------------

def _ask_formula(input_fn: InputFn, label: str) -> Optional[str]:
    formula = input_fn(f"\n{label}").strip()
    if formula.lower() == "back":
        return None
    if not formula:
        print("The function cannot be empty. Please try again.")
        return None
    return formula


def _ask_number(input_fn: InputFn, label: str, default: Any, convert: Callable[[str], Any] = float) -> Any:
    raw = input_fn(f"{label} [{default}]: ").strip()
    if not raw:
        return default
    try:
        return convert(raw)
    except ValueError:
        raise InvalidArgumentError(f"Invalid value for {label.lower()}: {raw!r}") from None


def _menu_bisection(cfg: Dict[str, Any], show_table: bool, input_fn: InputFn) -> None:
    print("\nBisection method")
    print("================")
    print("Enter f(x) in terms of x (or 'back' to return to the main menu).")
    print(f"Examples: {', '.join(cfg['examples']['bisection'])}")
    print(SUPPORTED)

    formula = _ask_formula(input_fn, "f(x): ")
    if formula is None:
        return
    expression = parse(formula)

    sec = cfg["bisection"]
    settings = bisection_config(
        cfg,
        lower=_ask_number(input_fn, "Lower bound a", sec["lower"]),
        upper=_ask_number(input_fn, "Upper bound b", sec["upper"]),
        tolerance=_ask_number(input_fn, "Tolerance", sec["tolerance"]),
    )
    run_bisection(expression, settings, show_table)


def _menu_fixed_point(cfg: Dict[str, Any], show_table: bool, input_fn: InputFn) -> None:
    print("\nFixed-point method")
    print("==================")
    print("Enter the iteration function g(x) (or 'back' to return to the main menu).")
    print("g(x) is derived from the original f(x) so that f(x) = 0 when x = g(x).")
    print(f"Examples: {', '.join(cfg['examples']['fixed_point'])}")
    print(SUPPORTED)

    formula = _ask_formula(input_fn, "g(x): ")
    if formula is None:
        return
    expression = parse(formula)

    sec = cfg["fixed_point"]
    settings = fixed_point_config(
        cfg,
        initial_guess=_ask_number(input_fn, "Initial value x0", sec["initial_guess"]),
        max_iterations=_ask_number(input_fn, "Maximum iterations", sec["max_iterations"], int),
        tolerance=_ask_number(input_fn, "Tolerance", sec["tolerance"]),
    )
    run_fixed_point(expression, settings, show_table)


def menu(cfg: Dict[str, Any], show_table: bool = True, input_fn: InputFn = input) -> None:
    """Prompt for a method and its inputs until the user picks 0 (or input ends)."""
    actions = {"1": _menu_bisection, "2": _menu_fixed_point}

    print("Root Finder - Numerical Methods")
    print("===============================")
    while True:
        print("\nSelect a method:")
        print("1. Bisection")
        print("2. Fixed point")
        print("0. Exit")
        try:
            option = input_fn("\nOption: ").strip()
            if option == "0":
                break
            action = actions.get(option)
            if action is None:
                print("Invalid option. Please choose 0, 1 or 2.")
                continue
            action(cfg, show_table, input_fn)
        except RootFinderError as exc:
            _report_error(exc)
        except EOFError:
            break
    print("Program finished.")


# --- Argument parsing -------------------------------------------------------------------------

def _parse_cli(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="rootfinder",
        description="Approximate roots of f(x) by bisection or fixed-point iteration",
    )
    parser.add_argument("--config", help="YAML file overriding the default solver parameters")
    parser.add_argument(
        "--log-level",
        choices=["WARNING", "INFO", "DEBUG"],
        default="WARNING",
        help="Logging level for rootfinder",
    )
    parser.add_argument("--no-table", action="store_true", help="Do not print the iteration table")

    sub = parser.add_subparsers(dest="command")

    bis = sub.add_parser("bisect", help="Bracketing search for f(x) = 0 on [a, b]")
    bis.add_argument("formula", nargs="?", help="f(x), e.g. 'x^3 - x - 2' (default from config)")
    bis.add_argument("-a", "--lower", type=float, help="Lower bound of the interval")
    bis.add_argument("-b", "--upper", type=float, help="Upper bound of the interval")
    bis.add_argument("-t", "--tolerance", type=float, help="Error tolerance (> 0)")

    fp = sub.add_parser("fixed-point", help="Iterate x <- g(x) from an initial value")
    fp.add_argument("formula", nargs="?", help="g(x), e.g. 'cos(x)' (default from config)")
    fp.add_argument("-x", "--initial-guess", type=float, help="Initial value x0")
    fp.add_argument("-n", "--max-iterations", type=int, help="Maximum number of iterations (> 0)")
    fp.add_argument("-t", "--tolerance", type=float, help="Error tolerance (> 0)")

    sub.add_parser("menu", help="Interactive menu (default)")
    return parser.parse_args(argv)


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name)
    pkg_logger = logging.getLogger("rootfinder")
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(logging.BASIC_FORMAT))
    handler.setLevel(level)
    pkg_logger.addHandler(handler)
    pkg_logger.propagate = False
    pkg_logger.setLevel(level)


def main(argv: list[str] | None = None) -> None:
    ns = _parse_cli(argv)
    _configure_logging(ns.log_level)

    try:
        cfg = load_config(ns.config)
    except (OSError, yaml.YAMLError) as exc:
        sys.exit(f"Error reading config {ns.config}: {exc}")
    except RootFinderError as exc:
        sys.exit(_report_error(exc))

    show_table = not ns.no_table
    try:
        if ns.command == "bisect":
            settings = bisection_config(cfg, lower=ns.lower, upper=ns.upper, tolerance=ns.tolerance)
            expression = parse(ns.formula or cfg["bisection"]["formula"])
            run_bisection(expression, settings, show_table)
        elif ns.command == "fixed-point":
            settings = fixed_point_config(
                cfg,
                initial_guess=ns.initial_guess,
                max_iterations=ns.max_iterations,
                tolerance=ns.tolerance,
            )
            expression = parse(ns.formula or cfg["fixed_point"]["formula"])
            run_fixed_point(expression, settings, show_table)
        else:
            menu(cfg, show_table)
    except RootFinderError as exc:
        sys.exit(_report_error(exc))


if __name__ == "__main__":  # pragma: no cover
    main()
