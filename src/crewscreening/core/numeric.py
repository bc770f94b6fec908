"""Small numeric helpers shared by scoring and tuning."""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def round_half_away(value: float, ndigits: int = 0) -> float:
    """Round halves away from zero (2.5 -> 3, -2.5 -> -3)."""
    if not math.isfinite(value):
        raise ValueError(f"cannot round non-finite value {value!r}")
    quantum = Decimal(1).scaleb(-ndigits)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def mean(values: list[float], default: float = 0.0) -> float:
    if not values:
        return default
    return sum(values) / len(values)


__all__ = ["clamp", "mean", "round_half_away"]
