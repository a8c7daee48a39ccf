from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from logging import getLogger
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

logger = getLogger(__name__)

# --- 0. Enums for Rules & Periods ---


class CalculationMethod(str, Enum):
    """How a rule turns spend into points."""

    STANDARD = "standard"
    TIERED = "tiered"
    FLAT_RATE = "flat_rate"  # Fixed points once per transaction
    DIRECT = "direct"  # Caller supplies the point value


class PointsRounding(str, Enum):
    FLOOR = "floor"
    CEILING = "ceiling"
    NEAREST = "nearest"


class AmountRounding(str, Enum):
    FLOOR = "floor"
    CEILING = "ceiling"
    NEAREST = "nearest"
    FLOOR5 = "floor5"  # Down to a multiple of 5
    NONE = "none"


class PeriodType(str, Enum):
    """Defines when monthly spend and caps reset."""

    CALENDAR = "calendar"  # 1st of the month
    STATEMENT = "statement"  # Instrument's statement day (~30 days)

    @classmethod
    def _missing_(cls, value: object) -> Optional["PeriodType"]:
        if value == "statement_month":
            return cls.STATEMENT
        return None


class ConditionType(str, Enum):
    MCC = "mcc"
    MERCHANT = "merchant"
    TRANSACTION_TYPE = "transaction_type"
    CURRENCY = "currency"
    AMOUNT = "amount"
    CATEGORY = "category"
    COMPOUND = "compound"


class ConditionOperation(str, Enum):
    INCLUDE = "include"
    EXCLUDE = "exclude"
    EQUALS = "equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    RANGE = "range"
    ANY = "any"
    ALL = "all"


class TransactionTag(str, Enum):
    PURCHASE = "purchase"
    REFUND = "refund"
    ADJUSTMENT = "adjustment"
    ONLINE = "online"
    CONTACTLESS = "contactless"
    IN_STORE = "in_store"


# --- 1. Rule Conditions (closed tagged union on `type`) ---

ConditionValue = Union[str, int, float]


class _ConditionBase(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    operation: ConditionOperation
    values: list[ConditionValue] = Field(default_factory=list)
    display_name: Optional[str] = Field(default=None, alias="displayName")


class MccCondition(_ConditionBase):
    type: Literal["mcc"] = "mcc"


class MerchantCondition(_ConditionBase):
    type: Literal["merchant"] = "merchant"


class TransactionTypeCondition(_ConditionBase):
    type: Literal["transaction_type"] = "transaction_type"


class CurrencyCondition(_ConditionBase):
    type: Literal["currency"] = "currency"


class AmountCondition(_ConditionBase):
    type: Literal["amount"] = "amount"


class CategoryCondition(_ConditionBase):
    type: Literal["category"] = "category"


class CompoundCondition(_ConditionBase):
    type: Literal["compound"] = "compound"
    sub_conditions: list["RuleCondition"] = Field(
        default_factory=list, alias="subConditions"
    )

    @field_validator("sub_conditions", mode="before")
    @classmethod
    def _isolate_malformed(cls, value: Any) -> Any:
        # Each branch validates alone; a malformed one becomes UnsupportedCondition
        if not isinstance(value, list):
            return value
        return [parse_rule_condition(v) for v in value]


class UnsupportedCondition(BaseModel):
    """
    Anything that failed to parse into a known condition.

    Kept (instead of dropped) so a rule carrying it can never match.
    """

    model_config = ConfigDict(frozen=True)

    type: Literal["unsupported"] = "unsupported"
    raw: Any = None
    reason: str = ""

    @model_validator(mode="before")
    @classmethod
    def _wrap_unknown(cls, data: Any) -> Any:
        if isinstance(data, UnsupportedCondition):
            return {"raw": data.raw, "reason": data.reason}
        if (
            isinstance(data, dict)
            and data.get("type", "unsupported") == "unsupported"
            and set(data) <= {"type", "raw", "reason"}
        ):
            return data
        return {"raw": data, "reason": "unknown condition type"}


def _condition_tag(value: Any) -> str:
    raw = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    if raw in {t.value for t in ConditionType}:
        return raw
    return "unsupported"


RuleCondition = Annotated[
    Union[
        Annotated[MccCondition, Tag("mcc")],
        Annotated[MerchantCondition, Tag("merchant")],
        Annotated[TransactionTypeCondition, Tag("transaction_type")],
        Annotated[CurrencyCondition, Tag("currency")],
        Annotated[AmountCondition, Tag("amount")],
        Annotated[CategoryCondition, Tag("category")],
        Annotated[CompoundCondition, Tag("compound")],
        Annotated[UnsupportedCondition, Tag("unsupported")],
    ],
    Discriminator(_condition_tag),
]

CompoundCondition.model_rebuild()

_condition_adapter: TypeAdapter = TypeAdapter(RuleCondition)


def parse_rule_condition(raw: Any) -> "RuleCondition":
    """Validates one condition; failures become an UnsupportedCondition."""
    if isinstance(raw, BaseModel):
        return raw
    try:
        return _condition_adapter.validate_python(raw)
    except ValidationError as e:
        logger.warning(f"Unparseable rule condition {raw!r}: {e.error_count()} errors")
        return UnsupportedCondition(raw=raw, reason="malformed condition")


# --- 2. Tiers, Reward Config & Rules ---


class BonusTier(BaseModel):
    """Maps a spend range (monthly or single transaction) to a bonus multiplier."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    multiplier: float
    min_spend: Optional[float] = Field(default=None, alias="minSpend")
    max_spend: Optional[float] = Field(default=None, alias="maxSpend")
    min_amount: Optional[float] = Field(default=None, alias="minAmount")
    max_amount: Optional[float] = Field(default=None, alias="maxAmount")
    priority: int = 0
    name: Optional[str] = None
    description: Optional[str] = None


class RewardConfig(BaseModel):
    """The math half of a rule: method, multipliers, rounding and monthly limits."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    calculation_method: CalculationMethod = CalculationMethod.STANDARD
    base_multiplier: float = 1.0
    bonus_multiplier: float = 0.0
    points_rounding_strategy: PointsRounding = PointsRounding.FLOOR
    amount_rounding_strategy: AmountRounding = AmountRounding.FLOOR
    block_size: float = 1.0
    bonus_tiers: list[BonusTier] = Field(default_factory=list)

    # Monthly limits (None = unlimited / no gate)
    monthly_cap: Optional[float] = None
    monthly_min_spend: Optional[float] = None
    monthly_spend_period_type: PeriodType = PeriodType.CALENDAR

    # Rules sharing a pool name the same group; otherwise (card type, cap) keys it
    cap_group_id: Optional[str] = None

    points_currency: str = "points"

    @field_validator("block_size")
    @classmethod
    def _positive_block(cls, v: float) -> float:
        if not math.isfinite(v) or v <= 0:
            return 1.0
        return v


class RewardRule(BaseModel):
    """
    One reward behaviour for one card type.

    Higher `priority` is evaluated first; only the first matching enabled
    rule is applied.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    card_type_id: str
    name: str
    description: str = ""
    enabled: bool = True
    priority: int = 0
    conditions: list[RuleCondition] = Field(default_factory=list)
    reward: RewardConfig = Field(default_factory=RewardConfig)
    created_at: Optional[datetime] = None


# --- 3. Calculation Input & Output ---


@dataclass
class CalculationInput:
    """Point-in-time facts about one transaction."""

    amount: Optional[float]
    currency: Optional[str]
    converted_amount: Optional[float] = None
    converted_currency: Optional[str] = None
    mcc: Optional[str] = None
    merchant_name: Optional[str] = None
    category: Optional[str] = None
    transaction_type: str = TransactionTag.PURCHASE.value
    is_online: Optional[bool] = None
    is_contactless: Optional[bool] = None
    date: datetime = field(default_factory=datetime.now)

    # Pre-transaction spend for the rule's period (filled by the tracker)
    monthly_spend: Optional[float] = None

    # Only read by the `direct` calculation method
    direct_points: Optional[float] = None

    @property
    def calculation_amount(self) -> float:
        if self.converted_amount is not None:
            return float(self.converted_amount)
        return float(self.amount or 0.0)


@dataclass
class CalculationResult:
    """Standardized output for the rewards engine."""

    total_points: float = 0.0
    base_points: float = 0.0
    bonus_points: float = 0.0
    points_currency: str = "points"
    min_spend_met: bool = True
    messages: list[str] = field(default_factory=list)

    applied_rule: Optional[RewardRule] = None
    applied_tier: Optional[BonusTier] = None
    remaining_monthly_bonus_points: Optional[float] = None
    is_capped: bool = False
    low_confidence: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "points": {
                "total": self.total_points,
                "base": self.base_points,
                "bonus": self.bonus_points,
            },
            "points_currency": self.points_currency,
            "min_spend_met": self.min_spend_met,
            "applied_rule": self.applied_rule.name if self.applied_rule else None,
            "applied_tier": self.applied_tier.name if self.applied_tier else None,
            "cap_status": {
                "is_capped": self.is_capped,
                "remaining_bonus_points": self.remaining_monthly_bonus_points,
            },
            "low_confidence": self.low_confidence,
            "messages": list(self.messages),
        }


# --- 4. Instruments & Currencies ---


def make_card_type_id(issuer: str, name: str) -> str:
    """
    Card type ids link rules to instruments: "{issuer}-{name}", lower-cased,
    whitespace collapsed to hyphens.

    e.g. ("American Express", "Gold Card") -> "american-express-gold-card"
    """
    if not issuer or not issuer.strip() or not name or not name.strip():
        raise ValueError("Both issuer and name are required to build a card type id")
    normalized_issuer = "-".join(issuer.lower().split())
    normalized_name = "-".join(name.lower().split())
    return f"{normalized_issuer}-{normalized_name}"


@dataclass
class Instrument:
    """A payment instrument the user holds (credit card, debit card...)."""

    id: str
    name: str
    card_type_id: str
    currency: str = "USD"
    points_currency: str = "points"
    reward_currency_id: Optional[str] = None
    active: bool = True
    statement_day: int = 1  # Day of month the statement period starts
    issuer: str = ""


@dataclass
class RewardCurrency:
    """A loyalty currency: bank points (transferrable) or airline miles."""

    id: str
    code: str
    display_name: str
    is_transferrable: bool = True


@dataclass
class ConversionRate:
    """
    Directed edge source -> target, `rate` miles per point.

    `reversible` explicitly allows target -> source at 1/rate; without it the
    edge is one-way.
    """

    source_currency_id: str
    target_currency_id: str
    rate: float
    updated_at: Optional[datetime] = None
    reversible: bool = False

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["updated_at"] = self.updated_at.isoformat() if self.updated_at else None
        return data
