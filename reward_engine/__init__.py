from .config import EngineConfig
from .exceptions import (
    ConfigurationError,
    InvalidCalculationInputError,
    RewardEngineError,
    StoreError,
)
from .logic import (
    CardResult,
    CardSimulator,
    ConversionGraph,
    MonthlySpendTracker,
    RateCache,
    RewardCalculator,
    RewardService,
    calculate_rewards,
)
from .types import (
    BonusTier,
    CalculationInput,
    CalculationMethod,
    CalculationResult,
    ConversionRate,
    Instrument,
    PeriodType,
    RewardConfig,
    RewardCurrency,
    RewardRule,
    make_card_type_id,
)

__all__ = [
    "EngineConfig",
    "ConfigurationError",
    "InvalidCalculationInputError",
    "RewardEngineError",
    "StoreError",
    "CardResult",
    "CardSimulator",
    "ConversionGraph",
    "MonthlySpendTracker",
    "RateCache",
    "RewardCalculator",
    "RewardService",
    "calculate_rewards",
    "BonusTier",
    "CalculationInput",
    "CalculationMethod",
    "CalculationResult",
    "ConversionRate",
    "Instrument",
    "PeriodType",
    "RewardConfig",
    "RewardCurrency",
    "RewardRule",
    "make_card_type_id",
]
