from .conversion import ConversionGraph, ConversionResult, RateCache
from .rewards import CapState, RewardCalculator, calculate_rewards
from .service import RewardService
from .simulator import CardResult, CardSimulator, rank_results, simulate_all_cards
from .tracker import MonthlySpendTracker, TrackerReading

__all__ = [
    "CapState",
    "CardResult",
    "CardSimulator",
    "ConversionGraph",
    "ConversionResult",
    "MonthlySpendTracker",
    "RateCache",
    "RewardCalculator",
    "RewardService",
    "TrackerReading",
    "calculate_rewards",
    "rank_results",
    "simulate_all_cards",
]
