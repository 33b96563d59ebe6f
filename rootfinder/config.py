from __future__ import annotations
import copy
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional
import yaml

from .errors import InvalidArgumentError
from .solver import check_tolerance

DEFAULTS: Dict[str, Any] = {
    "bisection": {
        "formula": "x^3 - x - 2",
        "lower": 1.0,
        "upper": 2.0,
        "tolerance": 1e-6,
    },
    "fixed_point": {
        "formula": "cos(x)",
        "initial_guess": 0.0,
        "max_iterations": 100,
        "tolerance": 1e-8,
    },
    "examples": {
        "bisection": ["x^3 - x - 2", "cos(x) - x", "x^2 - 4", "sin(x)", "exp(x) - 5"],
        "fixed_point": ["(x^2 + 2)/3", "cos(x)", "(x + 5/x)/2", "sqrt(10 - x^2)"],
    },
}


@dataclass(frozen=True)
class BisectionConfig:
    lower: float
    upper: float
    tolerance: float

    def __post_init__(self):
        check_tolerance(self.tolerance)
        if not self.upper > self.lower:
            raise InvalidArgumentError(
                f"Upper bound must be greater than lower bound, got [{self.lower}, {self.upper}]"
            )


@dataclass(frozen=True)
class FixedPointConfig:
    initial_guess: float
    max_iterations: int
    tolerance: float

    def __post_init__(self):
        check_tolerance(self.tolerance)
        if isinstance(self.max_iterations, bool) or not isinstance(self.max_iterations, int) \
                or self.max_iterations <= 0:
            raise InvalidArgumentError(
                f"Maximum iterations must be a positive integer, got {self.max_iterations!r}"
            )


def load_config(path: Optional[str | Path] = None) -> Dict[str, Any]:
    """Return ``DEFAULTS`` overlaid with the YAML file at ``path`` (if any)."""
    if path is None:
        return copy.deepcopy(DEFAULTS)
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        loaded = yaml.safe_load(f) or {}
    if not isinstance(loaded, dict):
        raise InvalidArgumentError(f"Config file {path} must contain a mapping")
    unknown = set(loaded) - set(DEFAULTS)
    if unknown:
        raise InvalidArgumentError(f"Unknown config sections {sorted(unknown)}. Available: {list(DEFAULTS)}")
    return deep_update(DEFAULTS, loaded)


def deep_update(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in updates.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = deep_update(out[k], v)
        else:
            out[k] = v
    return out


def _float(section: str, key: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InvalidArgumentError(f"{section}.{key} must be a number, got {value!r}") from None


def bisection_config(cfg: Dict[str, Any], **overrides: Any) -> BisectionConfig:
    """Build a validated :class:`BisectionConfig`; ``None`` overrides are ignored."""
    sec = deep_update(cfg["bisection"], {k: v for k, v in overrides.items() if v is not None})
    return BisectionConfig(
        lower=_float("bisection", "lower", sec["lower"]),
        upper=_float("bisection", "upper", sec["upper"]),
        tolerance=_float("bisection", "tolerance", sec["tolerance"]),
    )


def fixed_point_config(cfg: Dict[str, Any], **overrides: Any) -> FixedPointConfig:
    """Build a validated :class:`FixedPointConfig`; ``None`` overrides are ignored."""
    sec = deep_update(cfg["fixed_point"], {k: v for k, v in overrides.items() if v is not None})
    max_iter = sec["max_iterations"]
    if isinstance(max_iter, float) and max_iter.is_integer():
        max_iter = int(max_iter)
    return FixedPointConfig(
        initial_guess=_float("fixed_point", "initial_guess", sec["initial_guess"]),
        max_iterations=max_iter,
        tolerance=_float("fixed_point", "tolerance", sec["tolerance"]),
    )
