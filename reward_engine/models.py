from datetime import datetime
from typing import Optional

from pydantic import NaiveDatetime

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

# --- 1. Payment Methods (the user's instruments) ---


class PaymentMethod(SQLModel, table=True):
    """
    A card the user holds.

    card_type_id links it to the reward rules of its product
    ("{issuer}-{name}", see make_card_type_id).
    """

    id: str = Field(primary_key=True)
    name: str = Field(index=True)
    issuer: str = ""
    card_type_id: str = Field(index=True)
    currency: str = "USD"

    # Reward Basics
    points_currency: str = "points"
    reward_currency_id: Optional[str] = Field(
        default=None, foreign_key="rewardcurrencyrecord.id"
    )

    active: bool = True
    statement_day: int = 1  # Day of month (e.g., 15)


# --- 2. Reward Rules (The "Logic") ---
class RewardRuleRecord(SQLModel, table=True):
    """
    Persisted shape of a reward rule, one row per rule.

    conditions and bonus_tiers are stored as JSON and parsed by
    reward_engine.mapper.record_to_rule.
    """

    id: str = Field(primary_key=True)
    card_type_id: str = Field(index=True)
    name: str
    description: str = ""
    enabled: bool = True
    priority: int = 0

    conditions: list = Field(default=[], sa_column=Column(JSON))

    # The Math
    calculation_method: str = "standard"
    base_multiplier: float = 1.0
    bonus_multiplier: float = 0.0
    points_rounding_strategy: str = "floor"
    amount_rounding_strategy: str = "floor"
    block_size: float = 1.0
    bonus_tiers: list = Field(default=[], sa_column=Column(JSON))

    # Constraints (None = unlimited / no gate)
    monthly_cap: Optional[float] = None
    monthly_min_spend: Optional[float] = None
    monthly_spend_period_type: str = "calendar"
    cap_group_id: Optional[str] = None

    points_currency: str = "points"
    created_at: NaiveDatetime = Field(default_factory=datetime.now)


# --- 3. The Transaction Model ---
class Transaction(SQLModel, table=True):
    """A committed transaction, the source of monthly spend and cap usage."""

    id: Optional[int] = Field(default=None, primary_key=True)
    payment_method_id: str = Field(index=True, foreign_key="paymentmethod.id")
    amount: float
    currency: str = "USD"
    merchant: Optional[str] = None
    mcc: Optional[str] = None

    # Stores the result of our calculation
    points_earned: float = 0.0
    bonus_points: float = 0.0

    # Which pool the bonus counted against ("{payment_method_id}:{group}")
    cap_group_key: Optional[str] = Field(default=None, index=True)

    # Useful to know WHICH rule triggered this reward (for debugging)
    applied_rule_id: Optional[str] = Field(default=None)

    # Local wall-clock time, compared against naive period windows
    date: NaiveDatetime = Field(default_factory=datetime.now, index=True)
    is_deleted: bool = False


# --- 4. Reward Currencies & Conversion Rates (The "Value") ---
class RewardCurrencyRecord(SQLModel, table=True):
    """A loyalty currency: bank points or airline miles."""

    id: str = Field(primary_key=True)
    code: str
    display_name: str
    is_transferrable: bool = True


class ConversionRateRecord(SQLModel, table=True):
    """Directed edge (e.g., Citi ThankYou -> KrisFlyer), miles per point."""

    id: Optional[int] = Field(default=None, primary_key=True)
    source_currency_id: str = Field(index=True, foreign_key="rewardcurrencyrecord.id")
    target_currency_id: str = Field(foreign_key="rewardcurrencyrecord.id")
    rate: float
    reversible: bool = False
    updated_at: NaiveDatetime = Field(default_factory=datetime.now)
