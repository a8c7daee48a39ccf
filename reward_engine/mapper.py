"""
Maps persisted reward rules (snake_case rows, JSON strings or decoded
lists) to RewardRule objects and back.

Handles:
- JSON parsing for conditions and bonus_tiers
- Defaults and numeric coercion for missing or garbled fields
- Legacy condition shapes (`online` conditions, `statement_month` periods)
- Conditions that cannot be parsed, kept as UnsupportedCondition so the
  rule can never match
"""

import json
import math
from datetime import datetime
from logging import getLogger
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from reward_engine.types import (
    AmountRounding,
    BonusTier,
    CalculationMethod,
    PeriodType,
    PointsRounding,
    RewardConfig,
    RewardRule,
    RuleCondition,
    parse_rule_condition,
)

logger = getLogger(__name__)


def _load_json_list(value: Any, field_name: str) -> List[Any]:
    if value is None or value == "":
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse {field_name}: {e}")
            return []
    if not isinstance(value, list):
        logger.warning(f"Expected a list for {field_name}, got {type(value).__name__}")
        return []
    return value


def _number(value: Any, default: Optional[float]) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return default
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    return parsed if math.isfinite(parsed) else default


def _enum(enum_cls, value: Any, default):
    if value is None or value == "":
        return default
    if enum_cls is PeriodType and value == "statement_month":
        return PeriodType.STATEMENT
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning(f"Unknown {enum_cls.__name__} '{value}', using '{default.value}'")
        return default


def normalize_condition(raw: Any) -> Any:
    """
    Rewrites legacy shapes into the current condition vocabulary.

    `online equals true`  -> transaction_type include ["online"]
    `online equals false` -> transaction_type exclude ["online"]
    """
    if not isinstance(raw, dict):
        return raw

    condition = dict(raw)

    if condition.get("type") == "online":
        condition["type"] = "transaction_type"
        values = condition.get("values") or []
        if condition.get("operation") == "equals" and values:
            flag = str(values[0]).lower()
            if flag == "true":
                condition.update(operation="include", values=["online"])
            elif flag == "false":
                condition.update(operation="exclude", values=["online"])

    for key in ("subConditions", "sub_conditions"):
        if isinstance(condition.get(key), list):
            condition[key] = [normalize_condition(c) for c in condition[key]]

    return condition


def parse_condition(raw: Any) -> RuleCondition:
    return parse_rule_condition(normalize_condition(raw))


def parse_tiers(raw_tiers: Any) -> List[BonusTier]:
    tiers = []
    for raw in _load_json_list(raw_tiers, "bonus_tiers"):
        try:
            tiers.append(BonusTier.model_validate(raw))
        except ValidationError as e:
            logger.warning(f"Skipping malformed bonus tier {raw!r}: {e.error_count()} errors")
    return tiers


def record_to_rule(record: Dict[str, Any]) -> RewardRule:
    """Maps a persisted rule row to a RewardRule."""
    defaults = RewardConfig()

    monthly_cap = _number(record.get("monthly_cap"), None)
    min_spend = _number(record.get("monthly_min_spend"), None)

    reward = RewardConfig(
        calculation_method=_enum(
            CalculationMethod, record.get("calculation_method"), defaults.calculation_method
        ),
        base_multiplier=_number(record.get("base_multiplier"), defaults.base_multiplier),
        bonus_multiplier=_number(record.get("bonus_multiplier"), defaults.bonus_multiplier),
        points_rounding_strategy=_enum(
            PointsRounding,
            record.get("points_rounding_strategy"),
            defaults.points_rounding_strategy,
        ),
        amount_rounding_strategy=_enum(
            AmountRounding,
            record.get("amount_rounding_strategy"),
            defaults.amount_rounding_strategy,
        ),
        block_size=_number(record.get("block_size"), defaults.block_size),
        bonus_tiers=parse_tiers(record.get("bonus_tiers")),
        monthly_cap=monthly_cap,
        monthly_min_spend=min_spend,
        monthly_spend_period_type=_enum(
            PeriodType,
            record.get("monthly_spend_period_type"),
            defaults.monthly_spend_period_type,
        ),
        cap_group_id=record.get("cap_group_id") or None,
        points_currency=record.get("points_currency") or defaults.points_currency,
    )

    created_at = record.get("created_at")
    if isinstance(created_at, str):
        try:
            created_at = datetime.fromisoformat(created_at)
        except ValueError:
            created_at = None

    priority = _number(record.get("priority"), 0)
    enabled = record.get("enabled")

    return RewardRule(
        id=str(record.get("id")),
        card_type_id=str(record.get("card_type_id") or ""),
        name=record.get("name") or "Unnamed rule",
        description=record.get("description") or "",
        enabled=True if enabled is None else bool(enabled),
        priority=int(priority),
        conditions=[
            parse_condition(c)
            for c in _load_json_list(record.get("conditions"), "conditions")
        ],
        reward=reward,
        created_at=created_at if isinstance(created_at, datetime) else None,
    )


def rule_to_record(rule: RewardRule) -> Dict[str, Any]:
    """Maps a RewardRule to a persistable row (JSON-ready conditions and tiers)."""
    reward = rule.reward
    return {
        "id": rule.id,
        "card_type_id": rule.card_type_id,
        "name": rule.name,
        "description": rule.description,
        "enabled": rule.enabled,
        "priority": rule.priority,
        "conditions": [
            c.model_dump(mode="json", by_alias=True, exclude_none=True)
            for c in rule.conditions
        ],
        "bonus_tiers": [
            t.model_dump(mode="json", by_alias=True, exclude_none=True)
            for t in reward.bonus_tiers
        ],
        "calculation_method": reward.calculation_method.value,
        "base_multiplier": reward.base_multiplier,
        "bonus_multiplier": reward.bonus_multiplier,
        "points_rounding_strategy": reward.points_rounding_strategy.value,
        "amount_rounding_strategy": reward.amount_rounding_strategy.value,
        "block_size": reward.block_size,
        "monthly_cap": reward.monthly_cap,
        "monthly_min_spend": reward.monthly_min_spend,
        "monthly_spend_period_type": reward.monthly_spend_period_type.value,
        "cap_group_id": reward.cap_group_id,
        "points_currency": reward.points_currency,
        "created_at": rule.created_at.isoformat() if rule.created_at else None,
    }
