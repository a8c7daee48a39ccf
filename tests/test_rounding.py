"""Tests for amount and points rounding."""

import pytest

from reward_engine.logic.rounding import quantize, round_amount, round_points
from reward_engine.types import AmountRounding, PointsRounding


class TestRoundAmount:
    @pytest.mark.parametrize(
        "strategy,value,expected",
        [
            (AmountRounding.FLOOR, 50.75, 50),
            (AmountRounding.CEILING, 50.25, 51),
            (AmountRounding.NEAREST, 50.5, 51),
            (AmountRounding.NEAREST, 50.49, 50),
            (AmountRounding.FLOOR5, 54.99, 50),
            (AmountRounding.NONE, 50.75, 50.75),
        ],
    )
    def test_strategies(self, strategy: AmountRounding, value: float, expected: float) -> None:
        assert round_amount(value, strategy) == expected

    def test_float_noise_is_absorbed(self) -> None:
        # 19.99 * 100 == 1998.9999999999998
        assert round_amount(19.99 * 100, AmountRounding.FLOOR) == 1999
        assert round_amount(0.1 * 3 * 10, AmountRounding.CEILING) == 3

    def test_string_strategy(self) -> None:
        assert round_amount(12.7, "ceiling") == 13

    def test_unknown_strategy_defaults_to_floor(self) -> None:
        assert round_amount(12.7, "banker") == 12

    @pytest.mark.parametrize("strategy", list(AmountRounding))
    def test_idempotent(self, strategy: AmountRounding) -> None:
        once = round_amount(123.456, strategy)
        assert round_amount(once, strategy) == once


class TestRoundPoints:
    @pytest.mark.parametrize(
        "strategy,value,expected",
        [
            (PointsRounding.FLOOR, 4.9, 4),
            (PointsRounding.CEILING, 4.1, 5),
            (PointsRounding.NEAREST, 4.5, 5),
            (PointsRounding.NEAREST, 2.5, 3),
        ],
    )
    def test_strategies(self, strategy: PointsRounding, value: float, expected: float) -> None:
        assert round_points(value, strategy) == expected

    @pytest.mark.parametrize("strategy", list(PointsRounding))
    def test_idempotent(self, strategy: PointsRounding) -> None:
        once = round_points(87.65, strategy)
        assert round_points(once, strategy) == once


class TestQuantize:
    def test_whole_blocks_only(self) -> None:
        assert quantize(24, 5) == 4
        assert quantize(25, 5) == 5

    def test_small_blocks_leave_amount(self) -> None:
        assert quantize(24, 1) == 24
        assert quantize(24, 0.5) == 24
