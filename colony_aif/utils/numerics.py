"""
Scalar helpers shared by the decision core.

Every observation channel, precision and temperature in the package passes
through these functions, so they are kept small and free of side effects.
"""

import logging
import math
from typing import Any, Iterable, Mapping, Optional

import numpy as np

try:
    from pymdp.maths import softmax as _pymdp_softmax
except ImportError:
    raise ImportError("pymdp package required for softmax action selection")

logger = logging.getLogger(__name__)


def clamp01(x: float) -> float:
    """Clamp a scalar to the closed interval [0, 1]."""
    return min(1.0, max(0.0, float(x)))


def clamp(x: float, lo: float, hi: float) -> float:
    """Clamp a scalar to [lo, hi]."""
    return min(float(hi), max(float(lo), float(x)))


def normalize(value: Optional[float], max_val: float, min_val: float = 0.0) -> float:
    """
    Normalize a scalar into [0, 1] given inclusive bounds.

    Args:
        value: Raw value, or None
        max_val: Upper bound of the raw range
        min_val: Lower bound of the raw range

    Returns:
        Normalized value. None and degenerate ranges (max <= min) give 0.0.
    """
    if value is None:
        return 0.0
    if max_val <= min_val:
        return 0.0
    return clamp01((float(value) - min_val) / float(max_val - min_val))


def invert(x: float) -> float:
    """Return 1 - x with x clamped to [0, 1]."""
    return 1.0 - clamp01(x)


def drift(value: float, toward: float, rate: float) -> float:
    """Move value toward a target by rate, clamped to [0, 1]."""
    value = float(value)
    return clamp01(value + rate * (toward - value))


def mean(values: Iterable[float]) -> float:
    values = [float(v) for v in values]
    if not values:
        return 0.0
    return sum(values) / len(values)


def lookup(mapping: Optional[Mapping[str, Any]], *keys: str, default: Any = None) -> Any:
    """
    Return the first present value among keys.

    A key counts as present when it maps to anything other than None, so an
    explicit 0.0 wins over later keys and the default.
    """
    if mapping:
        for key in keys:
            value = mapping.get(key)
            if value is not None:
                return value
    return default


def softmax(logits: Iterable[float]) -> np.ndarray:
    """
    Numerically stable softmax over a 1-D sequence of logits.

    Uses pymdp's max-subtracted softmax and falls back to a uniform
    distribution when the result is not a finite probability vector.
    """
    x = np.asarray(list(logits), dtype=np.float64)
    if x.size == 0:
        return x
    probs = np.asarray(_pymdp_softmax(x), dtype=np.float64)
    total = float(np.sum(probs))
    if not np.all(np.isfinite(probs)) or total <= 0.0 or not math.isfinite(total):
        logger.debug(f"Degenerate softmax over {x.size} logits, using uniform")
        return np.full(x.size, 1.0 / x.size)
    return probs / total
