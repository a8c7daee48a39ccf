from dataclasses import replace
from logging import getLogger
from typing import Optional

from reward_engine.exceptions import StoreError
from reward_engine.logic.rewards import (
    CapState,
    RewardCalculator,
    cap_group_key,
    validate_input,
)
from reward_engine.logic.tracker import MonthlySpendTracker
from reward_engine.stores.base import RuleStore
from reward_engine.types import (
    CalculationInput,
    CalculationMethod,
    CalculationResult,
    Instrument,
)

logger = getLogger(__name__)

LOW_CONFIDENCE_MESSAGE = (
    "Monthly spend or cap usage could not be read; assumed 0 (reduced confidence)"
)


def instrument_cap_key(instrument: Instrument, group_key: str) -> str:
    """History is per instrument: two cards of one type never share a pool."""
    return f"{instrument.id}:{group_key}"


class RewardService:
    """
    Async front door of the calculator for one instrument.

    Loads the card type's rules, pre-selects the winning rule, reads the
    monthly aggregates that rule needs from the tracker, then hands
    everything to the pure RewardCalculator.
    """

    def __init__(
        self,
        rule_store: RuleStore,
        tracker: MonthlySpendTracker,
        calculator: Optional[RewardCalculator] = None,
    ):
        self.rule_store = rule_store
        self.tracker = tracker
        self.calculator = calculator or RewardCalculator()

    async def calculate_rewards(
        self, input: CalculationInput, instrument: Instrument
    ) -> CalculationResult:
        validate_input(input)

        try:
            rules = list(await self.rule_store.list_rules(instrument.card_type_id))
        except Exception as e:
            raise StoreError(
                f"Failed to load rules for card type '{instrument.card_type_id}': {e}"
            ) from e

        logger.debug(
            f"Loaded {len(rules)} rules for {instrument.name} ({instrument.card_type_id})"
        )

        rule = self.calculator.select_rule(input, rules)
        cap_state = CapState()
        degraded = False

        if rule is not None:
            reward = rule.reward
            period = reward.monthly_spend_period_type
            needs_spend = (
                reward.monthly_min_spend is not None
                or reward.calculation_method == CalculationMethod.TIERED
            )

            if needs_spend and input.monthly_spend is None:
                reading = await self.tracker.read_period_spend(
                    instrument.id, period, input.date, instrument.statement_day
                )
                degraded = degraded or reading.degraded
                input = replace(input, monthly_spend=reading.value)

            group = cap_group_key(rule)
            if group is not None:
                reading = await self.tracker.read_cap_group_earned(
                    instrument_cap_key(instrument, group),
                    period,
                    input.date,
                    instrument.statement_day,
                )
                degraded = degraded or reading.degraded
                cap_state.earned_bonus[group] = reading.value

        result = self.calculator.calculate(
            input,
            rules,
            cap_state,
            default_points_currency=instrument.points_currency,
        )

        if degraded:
            result.low_confidence = True
            result.messages.append(LOW_CONFIDENCE_MESSAGE)

        return result
