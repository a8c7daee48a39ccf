"""Pytest configuration and fixtures."""

from datetime import datetime

import pytest

from reward_engine.types import (
    CalculationInput,
    Instrument,
    MccCondition,
    RewardConfig,
    RewardRule,
    TransactionTypeCondition,
)

CITI_TYPE = "citibank-rewards-card"
FASHION_MCCS = ["5621", "5651", "5661", "5691", "5699"]
TRAVEL_MCCS = ["3000", "3001", "4511", "4722", "7011"]


def make_input(amount: float = 100.0, currency: str = "USD", **kwargs) -> CalculationInput:
    """Transaction input with a fixed date unless one is given."""
    kwargs.setdefault("date", datetime(2024, 3, 15, 12, 0))
    return CalculationInput(amount=amount, currency=currency, **kwargs)


def make_rule(rule_id: str, card_type_id: str = CITI_TYPE, **kwargs) -> RewardRule:
    reward = kwargs.pop("reward", None) or RewardConfig(**kwargs.pop("reward_kwargs", {}))
    return RewardRule(
        id=rule_id,
        card_type_id=card_type_id,
        name=kwargs.pop("name", rule_id),
        reward=reward,
        **kwargs,
    )


@pytest.fixture
def fixed_date() -> datetime:
    return datetime(2024, 3, 15, 12, 0)


@pytest.fixture
def citi_rules() -> list[RewardRule]:
    """Fashion and Online share one 9,000 bonus pool; Base catches the rest."""
    shared = dict(base_multiplier=1, bonus_multiplier=9, monthly_cap=9000)
    return [
        make_rule(
            "fashion",
            name="Fashion",
            priority=20,
            conditions=[MccCondition(operation="include", values=FASHION_MCCS)],
            reward_kwargs=shared,
        ),
        make_rule(
            "online",
            name="Online",
            priority=10,
            conditions=[
                TransactionTypeCondition(operation="include", values=["online"]),
                MccCondition(operation="exclude", values=TRAVEL_MCCS),
            ],
            reward_kwargs=shared,
        ),
        make_rule("base", name="Base", priority=0, reward_kwargs={"base_multiplier": 1}),
    ]


@pytest.fixture
def citi_card() -> Instrument:
    return Instrument(
        id="card-citi",
        name="Citi Rewards",
        card_type_id=CITI_TYPE,
        points_currency="ThankYou Points",
        reward_currency_id="citi-thankyou",
    )
