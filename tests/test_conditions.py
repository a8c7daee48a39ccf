"""Tests for the condition evaluator."""

import pytest

from reward_engine.logic.conditions import matches, matches_all, transaction_tags
from reward_engine.types import (
    AmountCondition,
    CategoryCondition,
    CompoundCondition,
    CurrencyCondition,
    MccCondition,
    MerchantCondition,
    TransactionTypeCondition,
    UnsupportedCondition,
)
from tests.conftest import make_input


class TestMccCondition:
    def test_include(self) -> None:
        condition = MccCondition(operation="include", values=["5621", "5651"])
        assert matches(condition, make_input(mcc="5621"))
        assert not matches(condition, make_input(mcc="5812"))

    def test_exclude(self) -> None:
        condition = MccCondition(operation="exclude", values=["3000", "4511"])
        assert matches(condition, make_input(mcc="5812"))
        assert not matches(condition, make_input(mcc="4511"))

    def test_equals(self) -> None:
        condition = MccCondition(operation="equals", values=["5812"])
        assert matches(condition, make_input(mcc="5812"))
        assert not matches(condition, make_input(mcc="5813"))

    def test_numeric_values_compare_as_codes(self) -> None:
        condition = MccCondition(operation="include", values=[5621])
        assert matches(condition, make_input(mcc="5621"))

    @pytest.mark.parametrize("operation,expected", [("include", False), ("exclude", True)])
    def test_missing_mcc(self, operation: str, expected: bool) -> None:
        condition = MccCondition(operation=operation, values=["5621"])
        assert matches(condition, make_input(mcc=None)) is expected
        assert matches(condition, make_input(mcc="  ")) is expected

    def test_unsupported_operation_fails_closed(self) -> None:
        condition = MccCondition(operation="greater_than", values=["5000"])
        assert not matches(condition, make_input(mcc="5621"))


class TestMerchantCondition:
    def test_include_is_case_insensitive_substring(self) -> None:
        condition = MerchantCondition(operation="include", values=["zara"])
        assert matches(condition, make_input(merchant_name="ZARA Orchard"))

    def test_exclude(self) -> None:
        condition = MerchantCondition(operation="exclude", values=["grab"])
        assert not matches(condition, make_input(merchant_name="GrabPay Wallet"))
        assert matches(condition, make_input(merchant_name="Uniqlo"))

    def test_equals_is_exact(self) -> None:
        condition = MerchantCondition(operation="equals", values=["Amazon"])
        assert matches(condition, make_input(merchant_name="amazon"))
        assert not matches(condition, make_input(merchant_name="Amazon Prime"))

    def test_missing_merchant(self) -> None:
        assert not matches(
            MerchantCondition(operation="include", values=["zara"]), make_input()
        )
        assert matches(
            MerchantCondition(operation="exclude", values=["zara"]), make_input()
        )


class TestTransactionTypeCondition:
    def test_online_tag(self) -> None:
        condition = TransactionTypeCondition(operation="include", values=["online"])
        assert matches(condition, make_input(is_online=True))
        assert not matches(condition, make_input(is_online=False))
        assert not matches(condition, make_input(is_online=None))

    def test_in_store_means_not_online(self) -> None:
        condition = TransactionTypeCondition(operation="include", values=["in_store"])
        assert matches(condition, make_input(is_online=False))
        assert not matches(condition, make_input(is_online=True))

    def test_contactless_or_online(self) -> None:
        condition = TransactionTypeCondition(
            operation="include", values=["contactless", "online"]
        )
        assert matches(condition, make_input(is_contactless=True, is_online=False))
        assert not matches(condition, make_input(is_online=False))

    def test_exclude_refunds(self) -> None:
        condition = TransactionTypeCondition(operation="exclude", values=["refund"])
        assert matches(condition, make_input())
        assert not matches(condition, make_input(transaction_type="refund"))

    def test_tags(self) -> None:
        tags = transaction_tags(make_input(is_online=False, is_contactless=True))
        assert tags == {"purchase", "in_store", "contactless"}


class TestCurrencyAndCategoryConditions:
    def test_currency_ignores_case(self) -> None:
        condition = CurrencyCondition(operation="exclude", values=["SGD"])
        assert matches(condition, make_input(currency="usd"))
        assert not matches(condition, make_input(currency="sgd"))

    def test_category(self) -> None:
        condition = CategoryCondition(operation="include", values=["Dining"])
        assert matches(condition, make_input(category="dining"))
        assert not matches(condition, make_input(category="groceries"))
        assert not matches(condition, make_input())


class TestAmountCondition:
    def test_greater_than(self) -> None:
        condition = AmountCondition(operation="greater_than", values=[100])
        assert matches(condition, make_input(amount=100.01))
        assert not matches(condition, make_input(amount=100))

    def test_less_than(self) -> None:
        condition = AmountCondition(operation="less_than", values=[50])
        assert matches(condition, make_input(amount=49.99))
        assert not matches(condition, make_input(amount=50))

    def test_equals_tolerates_float_noise(self) -> None:
        condition = AmountCondition(operation="equals", values=[0.3])
        assert matches(condition, make_input(amount=0.1 + 0.2))

    def test_range_is_inclusive(self) -> None:
        condition = AmountCondition(operation="range", values=[10, 20])
        assert matches(condition, make_input(amount=10))
        assert matches(condition, make_input(amount=20))
        assert not matches(condition, make_input(amount=20.5))

    def test_range_needs_two_bounds(self) -> None:
        condition = AmountCondition(operation="range", values=[10])
        assert not matches(condition, make_input(amount=15))

    def test_non_numeric_bound_fails_closed(self) -> None:
        condition = AmountCondition(operation="greater_than", values=["lots"])
        assert not matches(condition, make_input(amount=1000))

    def test_uses_original_amount(self) -> None:
        condition = AmountCondition(operation="greater_than", values=[100])
        assert not matches(condition, make_input(amount=90, converted_amount=120))


class TestCompoundCondition:
    def test_any(self) -> None:
        condition = CompoundCondition(
            operation="any",
            sub_conditions=[
                MccCondition(operation="include", values=["5812"]),
                MerchantCondition(operation="include", values=["starbucks"]),
            ],
        )
        assert matches(condition, make_input(merchant_name="Starbucks", mcc="5814"))
        assert not matches(condition, make_input(merchant_name="Zara", mcc="5621"))

    def test_all(self) -> None:
        condition = CompoundCondition(
            operation="all",
            sub_conditions=[
                TransactionTypeCondition(operation="include", values=["online"]),
                AmountCondition(operation="greater_than", values=[20]),
            ],
        )
        assert matches(condition, make_input(amount=25, is_online=True))
        assert not matches(condition, make_input(amount=15, is_online=True))

    def test_nested(self) -> None:
        inner = CompoundCondition(
            operation="any",
            sub_conditions=[CurrencyCondition(operation="include", values=["EUR"])],
        )
        outer = CompoundCondition(operation="all", sub_conditions=[inner])
        assert matches(outer, make_input(currency="EUR"))

    @pytest.mark.parametrize("operation", ["any", "all"])
    def test_empty_never_matches(self, operation: str) -> None:
        condition = CompoundCondition(operation=operation, sub_conditions=[])
        assert not matches(condition, make_input())

    def test_accepts_camel_case_payload(self) -> None:
        condition = CompoundCondition.model_validate(
            {
                "type": "compound",
                "operation": "any",
                "subConditions": [
                    {"type": "mcc", "operation": "include", "values": ["5812"]}
                ],
            }
        )
        assert matches(condition, make_input(mcc="5812"))


class TestMatchesAll:
    def test_no_conditions_match_everything(self) -> None:
        assert matches_all([], make_input())

    def test_conditions_are_anded(self) -> None:
        conditions = [
            TransactionTypeCondition(operation="include", values=["online"]),
            MccCondition(operation="exclude", values=["3000"]),
        ]
        assert matches_all(conditions, make_input(is_online=True, mcc="5621"))
        assert not matches_all(conditions, make_input(is_online=True, mcc="3000"))

    def test_unsupported_condition_blocks_rule(self) -> None:
        conditions = [
            MccCondition(operation="include", values=["5621"]),
            UnsupportedCondition(raw={"type": "weather"}, reason="unknown condition type"),
        ]
        assert not matches_all(conditions, make_input(mcc="5621"))
