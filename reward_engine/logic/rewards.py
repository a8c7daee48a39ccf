import math
from dataclasses import dataclass, field
from logging import getLogger
from typing import Dict, List, Optional, Sequence, Tuple

from reward_engine.exceptions import InvalidCalculationInputError
from reward_engine.logic.conditions import matches_all
from reward_engine.logic.rounding import EPSILON, quantize, round_amount, round_points
from reward_engine.types import (
    AmountRounding,
    BonusTier,
    CalculationInput,
    CalculationMethod,
    CalculationResult,
    PointsRounding,
    RewardConfig,
    RewardRule,
)

logger = getLogger(__name__)

NO_RULE_MESSAGE = "No applicable reward rules; base rate applied"

# Implicit fallback: 1 point per whole currency unit, uncapped
BASE_REWARD = RewardConfig(
    calculation_method=CalculationMethod.STANDARD,
    base_multiplier=1.0,
    bonus_multiplier=0.0,
    points_rounding_strategy=PointsRounding.FLOOR,
    amount_rounding_strategy=AmountRounding.FLOOR,
)


def cap_group_key(rule: RewardRule) -> Optional[str]:
    """
    Rules that share one monthly bonus ceiling share a key.

    An explicit `cap_group_id` wins; otherwise rules of the same card type
    with the same cap value pool together (e.g. Fashion + Online at 9,000).
    """
    if rule.reward.monthly_cap is None:
        return None
    if rule.reward.cap_group_id:
        return rule.reward.cap_group_id
    return f"{rule.card_type_id}:{rule.reward.monthly_cap:g}"


@dataclass
class CapState:
    """Bonus points already earned this period, per cap group key."""

    earned_bonus: Dict[str, float] = field(default_factory=dict)

    def earned_for(self, key: Optional[str]) -> float:
        if key is None:
            return 0.0
        return max(0.0, float(self.earned_bonus.get(key, 0.0)))


def validate_input(input: CalculationInput) -> None:
    """Structural checks only; everything else degrades instead of failing."""
    amount = input.amount
    if amount is None or isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise InvalidCalculationInputError(f"Transaction amount is missing or not a number: {amount!r}")
    if not math.isfinite(amount):
        raise InvalidCalculationInputError(f"Transaction amount must be finite: {amount!r}")
    if not isinstance(input.currency, str) or not input.currency.strip():
        raise InvalidCalculationInputError(f"Transaction currency is missing: {input.currency!r}")
    converted = input.converted_amount
    if converted is not None and (
        isinstance(converted, bool)
        or not isinstance(converted, (int, float))
        or not math.isfinite(converted)
    ):
        raise InvalidCalculationInputError(f"Converted amount must be a finite number: {converted!r}")


class RewardCalculator:
    """
    Calculates points for one transaction through a series of gates.

    Flow: Validate → Select Rule → Min Spend Gate → Round & Quantize → Method → Cap

    - Selection is first-match-wins: the highest-priority enabled rule whose
      conditions all match is the only one evaluated. Specific merchant or
      category rules pre-empt broader "online" or "base" catch-alls.
    - No match never fails: an implicit 1x base rule applies instead.
    - Caps clip bonus points only; base points always flow through.

    The calculator is synchronous and side-effect free. Monthly spend and cap
    usage arrive pre-fetched (input.monthly_spend, CapState).
    """

    def select_rule(
        self, input: CalculationInput, rules: Sequence[RewardRule]
    ) -> Optional[RewardRule]:
        candidates = [
            r for r in rules if r.enabled and matches_all(r.conditions, input)
        ]
        if not candidates:
            logger.debug(f"No rule matched out of {len(rules)} rules")
            return None

        # sorted() is stable: equal priorities keep catalog (creation) order
        ranked = sorted(candidates, key=lambda r: r.priority, reverse=True)
        winner = ranked[0]
        logger.debug(
            f"Selected rule '{winner.name}' (priority {winner.priority}) "
            f"from {len(candidates)} matching rules"
        )
        return winner

    def calculate(
        self,
        input: CalculationInput,
        rules: Sequence[RewardRule],
        cap_state: Optional[CapState] = None,
        default_points_currency: str = "points",
    ) -> CalculationResult:
        """Main entry point. Raises InvalidCalculationInputError for malformed input only."""
        validate_input(input)
        cap_state = cap_state or CapState()

        rule = self.select_rule(input, rules)
        if rule is None:
            result = self._apply_base_rate(input, default_points_currency)
            result.messages.append(NO_RULE_MESSAGE)
            return result

        reward = rule.reward

        # GATE 1: Monthly minimum spend (pre-transaction spend)
        if reward.monthly_min_spend is not None:
            spent = input.monthly_spend or 0.0
            if spent + EPSILON < reward.monthly_min_spend:
                result = self._apply_base_rate(input, reward.points_currency)
                result.min_spend_met = False
                result.messages.append(
                    f"Monthly minimum spend of {reward.monthly_min_spend:g} not met "
                    f"({spent:g} spent); base rate applied instead of '{rule.name}'"
                )
                logger.debug(f"Rule '{rule.name}' skipped - minimum spend not met")
                return result

        result = CalculationResult(
            points_currency=reward.points_currency, applied_rule=rule
        )

        # GATE 2: Round the spend, then quantize into blocks
        units = self._spend_units(input.calculation_amount, reward)

        # GATE 3: Method
        raw_base, raw_bonus = self._raw_points(input, reward, units, result)

        base = round_points(raw_base, reward.points_rounding_strategy)
        bonus = round_points(raw_bonus, reward.points_rounding_strategy)

        # GATE 4: Monthly cap (bonus only)
        if reward.monthly_cap is not None:
            bonus = self._apply_cap(rule, bonus, cap_state, result)

        result.base_points = base
        result.bonus_points = bonus
        result.total_points = base + bonus

        logger.info(
            f"Applied rule '{rule.name}' ({reward.calculation_method.value}): "
            f"base={base:g} bonus={bonus:g} total={result.total_points:g} "
            f"{reward.points_currency}"
        )
        return result

    def _spend_units(self, amount: float, reward: RewardConfig) -> float:
        rounded = round_amount(amount, reward.amount_rounding_strategy)
        return quantize(rounded, reward.block_size)

    def _raw_points(
        self,
        input: CalculationInput,
        reward: RewardConfig,
        units: float,
        result: CalculationResult,
    ) -> Tuple[float, float]:
        method = reward.calculation_method

        if method == CalculationMethod.TIERED:
            tier = self._select_tier(input, reward.bonus_tiers)
            result.applied_tier = tier
            if tier is None:
                result.messages.append("No bonus tier matched; bonus not applied")
                return units * reward.base_multiplier, 0.0
            return units * reward.base_multiplier, units * tier.multiplier

        if method == CalculationMethod.FLAT_RATE:
            return reward.base_multiplier, 0.0

        if method == CalculationMethod.DIRECT:
            if input.direct_points is None:
                result.messages.append(
                    "No direct point value supplied; points equal the rounded amount"
                )
                return units, 0.0
            return float(input.direct_points), 0.0

        # STANDARD
        return units * reward.base_multiplier, units * reward.bonus_multiplier

    def _select_tier(
        self, input: CalculationInput, tiers: List[BonusTier]
    ) -> Optional[BonusTier]:
        """
        Picks the tier whose ranges contain this transaction.

        Spend ranges are tested against the post-transaction cumulative
        spend; amount ranges against this transaction alone. Overlaps go to
        the lowest priority value (tier 1 before tier 2), then to list order.
        """
        amount = input.calculation_amount
        cumulative = (input.monthly_spend or 0.0) + amount

        def contains(value: float, low: Optional[float], high: Optional[float]) -> bool:
            if low is not None and value < low - EPSILON:
                return False
            if high is not None and value > high + EPSILON:
                return False
            return True

        eligible = [
            t
            for t in tiers
            if contains(cumulative, t.min_spend, t.max_spend)
            and contains(amount, t.min_amount, t.max_amount)
        ]
        if not eligible:
            return None
        return sorted(eligible, key=lambda t: t.priority)[0]

    def _apply_cap(
        self,
        rule: RewardRule,
        bonus: float,
        cap_state: CapState,
        result: CalculationResult,
    ) -> float:
        cap = rule.reward.monthly_cap
        key = cap_group_key(rule)
        earned = cap_state.earned_for(key)
        headroom = max(0.0, cap - earned)

        if bonus > headroom + EPSILON:
            result.is_capped = True
            if headroom <= EPSILON:
                result.messages.append(
                    f"Monthly bonus cap reached ({cap:g} {rule.reward.points_currency}); "
                    f"bonus not awarded"
                )
                bonus = 0.0
            else:
                result.messages.append(
                    f"Monthly bonus cap reached: bonus capped at {headroom:g} "
                    f"of {bonus:g} points"
                )
                bonus = headroom

        result.remaining_monthly_bonus_points = max(0.0, headroom - bonus)
        return bonus

    def _apply_base_rate(
        self, input: CalculationInput, points_currency: str
    ) -> CalculationResult:
        units = self._spend_units(input.calculation_amount, BASE_REWARD)
        base = round_points(units * BASE_REWARD.base_multiplier, BASE_REWARD.points_rounding_strategy)
        return CalculationResult(
            total_points=base,
            base_points=base,
            bonus_points=0.0,
            points_currency=points_currency,
        )


def calculate_rewards(
    input: CalculationInput,
    rules: Sequence[RewardRule],
    cap_state: Optional[CapState] = None,
    default_points_currency: str = "points",
) -> CalculationResult:
    calculator = RewardCalculator()
    return calculator.calculate(input, rules, cap_state, default_points_currency)
