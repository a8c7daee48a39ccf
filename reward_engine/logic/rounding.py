"""
Rounding policies applied at two fixed points of a calculation:
amount rounding before multiplication, points rounding after it.
"""

import math

from reward_engine.types import AmountRounding, PointsRounding

# Absorbs float noise such as 19.99 * 100 == 1998.9999999999998
EPSILON = 1e-9


def _floor(value: float) -> float:
    return float(math.floor(value + EPSILON))


def _ceil(value: float) -> float:
    return float(math.ceil(value - EPSILON))


def _nearest(value: float) -> float:
    # Half-up, not Python's banker's rounding
    return float(math.floor(value + 0.5 + EPSILON))


def round_amount(value: float, strategy: AmountRounding | str) -> float:
    """Round a spend amount to whole currency units (or multiples of 5)."""
    strategy = _coerce(strategy, AmountRounding, AmountRounding.FLOOR)

    if strategy == AmountRounding.NONE:
        return value
    if strategy == AmountRounding.CEILING:
        return _ceil(value)
    if strategy == AmountRounding.NEAREST:
        return _nearest(value)
    if strategy == AmountRounding.FLOOR5:
        return _floor(value / 5) * 5
    return _floor(value)


def round_points(value: float, strategy: PointsRounding | str) -> float:
    strategy = _coerce(strategy, PointsRounding, PointsRounding.FLOOR)

    if strategy == PointsRounding.CEILING:
        return _ceil(value)
    if strategy == PointsRounding.NEAREST:
        return _nearest(value)
    return _floor(value)


def quantize(amount: float, block_size: float) -> float:
    """
    Number of whole spend blocks in `amount` (e.g. "1 point per $5").
    Remainders earn nothing. Block sizes <= 1 leave the amount unchanged.
    """
    if block_size is None or block_size <= 1:
        return amount
    return _floor(amount / block_size)


def _coerce(strategy, enum_cls, default):
    if isinstance(strategy, enum_cls):
        return strategy
    try:
        return enum_cls(strategy)
    except ValueError:
        return default
