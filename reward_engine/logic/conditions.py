"""
Condition Evaluator - decides whether a transaction satisfies a rule's conditions.

Every check is pure and total: unknown condition types, operations a type
does not support and malformed values all evaluate to "no match" rather
than raising. A rule therefore fails closed on bad data.
"""

import math
from logging import getLogger
from typing import Iterable, Optional, Set

from reward_engine.types import (
    AmountCondition,
    CalculationInput,
    CategoryCondition,
    CompoundCondition,
    ConditionOperation,
    CurrencyCondition,
    MccCondition,
    MerchantCondition,
    RuleCondition,
    TransactionTag,
    TransactionTypeCondition,
)

logger = getLogger(__name__)

AMOUNT_EPSILON = 1e-9

Op = ConditionOperation


def matches_all(conditions: Iterable[RuleCondition], input: CalculationInput) -> bool:
    """Conditions within one rule are AND-ed. No conditions = applies to everything."""
    return all(matches(condition, input) for condition in conditions)


def matches(condition: RuleCondition, input: CalculationInput) -> bool:
    try:
        return _evaluate(condition, input)
    except (TypeError, ValueError, AttributeError) as e:
        logger.debug(f"Condition {condition!r} treated as no-match: {e}")
        return False


def _evaluate(condition: RuleCondition, input: CalculationInput) -> bool:
    if isinstance(condition, MccCondition):
        return _match_set(condition, _clean(input.mcc))

    if isinstance(condition, CurrencyCondition):
        return _match_set(condition, _clean(input.currency), fold_case=True)

    if isinstance(condition, CategoryCondition):
        return _match_set(condition, _clean(input.category), fold_case=True)

    if isinstance(condition, MerchantCondition):
        return _match_merchant(condition, _clean(input.merchant_name))

    if isinstance(condition, TransactionTypeCondition):
        return _match_transaction_type(condition, input)

    if isinstance(condition, AmountCondition):
        return _match_amount(condition, input.amount)

    if isinstance(condition, CompoundCondition):
        return _match_compound(condition, input)

    # UnsupportedCondition and anything else
    return False


def _clean(value) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _match_set(condition, value: Optional[str], fold_case: bool = False) -> bool:
    """include / exclude / equals against a single input field."""
    if value is None:
        return condition.operation == Op.EXCLUDE

    values = [str(v).strip() for v in condition.values]
    if fold_case:
        value = value.lower()
        values = [v.lower() for v in values]

    if condition.operation == Op.INCLUDE:
        return value in values
    if condition.operation == Op.EXCLUDE:
        return value not in values
    if condition.operation == Op.EQUALS:
        return len(values) > 0 and values[0] == value
    return False


def _match_merchant(condition: MerchantCondition, merchant: Optional[str]) -> bool:
    if merchant is None:
        return condition.operation == Op.EXCLUDE

    merchant = merchant.lower()
    values = [str(v).strip().lower() for v in condition.values]
    values = [v for v in values if v]

    if condition.operation == Op.INCLUDE:
        return any(v in merchant for v in values)
    if condition.operation == Op.EXCLUDE:
        return not any(v in merchant for v in values)
    if condition.operation == Op.EQUALS:
        return len(values) > 0 and merchant == values[0]
    return False


def transaction_tags(input: CalculationInput) -> Set[str]:
    """Derived type tags, e.g. {"purchase", "online"} or {"purchase", "in_store", "contactless"}."""
    tags = set()
    if input.transaction_type:
        tags.add(str(input.transaction_type))
    if input.is_online is True:
        tags.add(TransactionTag.ONLINE.value)
    elif input.is_online is False:
        tags.add(TransactionTag.IN_STORE.value)
    if input.is_contactless is True:
        tags.add(TransactionTag.CONTACTLESS.value)
    return tags


def _match_transaction_type(
    condition: TransactionTypeCondition, input: CalculationInput
) -> bool:
    tags = transaction_tags(input)
    values = [str(v).strip() for v in condition.values]

    if condition.operation == Op.INCLUDE:
        return any(v in tags for v in values)
    if condition.operation == Op.EXCLUDE:
        return not any(v in tags for v in values)
    if condition.operation == Op.EQUALS:
        return len(values) > 0 and values[0] in tags
    return False


def _numbers(values) -> list[float]:
    numbers = []
    for v in values:
        if isinstance(v, bool):
            raise ValueError(f"Boolean is not an amount: {v!r}")
        number = float(v)
        if not math.isfinite(number):
            raise ValueError(f"Non-finite amount bound: {v!r}")
        numbers.append(number)
    return numbers


def _match_amount(condition: AmountCondition, amount) -> bool:
    if amount is None:
        return False
    amount = float(amount)
    bounds = _numbers(condition.values)

    if condition.operation == Op.GREATER_THAN:
        return len(bounds) > 0 and amount > bounds[0] + AMOUNT_EPSILON
    if condition.operation == Op.LESS_THAN:
        return len(bounds) > 0 and amount < bounds[0] - AMOUNT_EPSILON
    if condition.operation == Op.EQUALS:
        return len(bounds) > 0 and abs(amount - bounds[0]) <= AMOUNT_EPSILON
    if condition.operation == Op.RANGE:
        if len(bounds) < 2:
            return False
        low, high = bounds[0], bounds[1]
        return low - AMOUNT_EPSILON <= amount <= high + AMOUNT_EPSILON
    return False


def _match_compound(condition: CompoundCondition, input: CalculationInput) -> bool:
    if not condition.sub_conditions:
        return False

    # Generators keep any()/all() short-circuiting
    results = (matches(sub, input) for sub in condition.sub_conditions)
    if condition.operation == Op.ANY:
        return any(results)
    if condition.operation == Op.ALL:
        return all(results)
    return False
