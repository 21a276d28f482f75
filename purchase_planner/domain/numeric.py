"""
Numeric helpers shared by the projection, distribution and coverage code.
"""
import math
from numbers import Real
from typing import Any


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer, halves toward +infinity.

    Emitted quantities use this instead of round(), whose half-to-even
    rule would make 2.5 and 3.5 round in different directions.
    """
    return int(math.floor(value + 0.5))


def is_quantity(value: Any) -> bool:
    """True for a real, non-NaN number (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return not math.isnan(value)


def to_quantity(value: Any) -> float:
    """
    Coerce a demand/stock value to a float.

    Missing, non-numeric and NaN values become 0.
    """
    return float(value) if is_quantity(value) else 0.0
