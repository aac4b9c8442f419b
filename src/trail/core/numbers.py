"""Numeric helpers whose rounding is stable across implementations."""
from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal


def clamp(value: float, minimum: float, maximum: float) -> float:
    return max(minimum, min(maximum, value))


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going toward +infinity."""
    return math.floor(value + 0.5)


def to_fixed(value: float, digits: int) -> float:
    """Round the exact binary value to ``digits`` decimals, ties away from zero."""
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))
