from __future__ import annotations

import math
from typing import Callable, Dict, Optional

from .errors import InvalidArgumentError

# Sample points are bucketed at this fraction of the solver tolerance.
STEP_FACTOR = 0.01


class EvaluationCache:
    """Memoize ``function`` at points rounded to ``tolerance * STEP_FACTOR``.

    ``function`` is evaluated at the first point seen in a bucket, not at the
    rounded multiple ``k * step``; later points in the same bucket reuse that
    value. Points too large to round (``x / step`` not finite, e.g. the
    iterates of a divergent map) are evaluated directly and never stored.
    """

    def __init__(self, function: Callable[[float], float], tolerance: float):
        tolerance = float(tolerance)
        if not (math.isfinite(tolerance) and tolerance > 0):
            raise InvalidArgumentError(f"Tolerance must be a positive finite number, got {tolerance}")
        step = tolerance * STEP_FACTOR
        if step == 0.0:
            raise InvalidArgumentError(f"Tolerance {tolerance} is too small to round sample points")

        self.function = function
        self.tolerance = tolerance
        self.step = step
        self._values: Dict[int, float] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._values)

    def key(self, x: float) -> Optional[int]:
        """Bucket index of ``x``, or ``None`` when ``x`` cannot be rounded."""
        scaled = float(x) / self.step
        if not math.isfinite(scaled):
            return None
        return math.floor(scaled + 0.5)

    def evaluate(self, x: float) -> float:
        k = self.key(x)
        if k is None:
            self.misses += 1
            return float(self.function(x))
        if k in self._values:
            self.hits += 1
            return self._values[k]
        self.misses += 1
        value = float(self.function(x))
        self._values[k] = value
        return value

    __call__ = evaluate
