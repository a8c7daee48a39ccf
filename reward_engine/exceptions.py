"""Exception hierarchy for the reward engine."""


class RewardEngineError(Exception):
    """Base exception for all reward engine errors."""


class InvalidCalculationInputError(RewardEngineError):
    """Raised when a calculation input is structurally invalid (missing amount or currency)."""


class StoreError(RewardEngineError):
    """Raised when an external store (rules, history, rates, instruments) fails."""


class ConfigurationError(RewardEngineError):
    """Raised when configuration is invalid or missing."""
