from .base import (
    ConversionRateStore,
    InstrumentCatalog,
    RuleStore,
    TransactionHistoryStore,
)
from .memory import (
    HistoryEntry,
    InMemoryInstrumentCatalog,
    InMemoryRateStore,
    InMemoryRuleStore,
    InMemoryTransactionHistory,
)

__all__ = [
    "ConversionRateStore",
    "HistoryEntry",
    "InMemoryInstrumentCatalog",
    "InMemoryRateStore",
    "InMemoryRuleStore",
    "InMemoryTransactionHistory",
    "InstrumentCatalog",
    "RuleStore",
    "TransactionHistoryStore",
]
