"""Rounding helpers.

Python's ``round`` uses banker's rounding; scores and averages here round
halves up (``round_half_up(2.5) == 3``).
"""

from __future__ import annotations

import math


def round_half_up(value: float, ndigits: int = 0) -> float | int:
    """Round half away from zero. Returns an int when ``ndigits`` is 0."""
    factor = 10**ndigits
    # absorb binary noise such as 0.7 * 45 == 31.499999999999996
    scaled = round(abs(value) * factor, 9)
    rounded = math.floor(scaled + 0.5) / factor
    rounded = math.copysign(rounded, value) if value else 0.0
    if ndigits == 0:
        return int(rounded)
    return rounded


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0
