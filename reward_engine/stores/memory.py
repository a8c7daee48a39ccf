"""In-memory collaborators, used by tests and scripts."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from reward_engine.types import ConversionRate, Instrument, RewardRule


class InMemoryRuleStore:
    def __init__(self, rules: Optional[List[RewardRule]] = None):
        self._rules: List[RewardRule] = list(rules or [])

    def add(self, rule: RewardRule) -> None:
        self._rules.append(rule)

    async def list_rules(self, card_type_id: str) -> List[RewardRule]:
        return [r for r in self._rules if r.card_type_id == card_type_id]


@dataclass
class HistoryEntry:
    """One committed transaction as the history store sees it."""

    instrument_id: str
    amount: float
    date: datetime
    cap_group_key: Optional[str] = None
    bonus_points: float = 0.0
    is_deleted: bool = False


class InMemoryTransactionHistory:
    def __init__(self, entries: Optional[List[HistoryEntry]] = None):
        self.entries: List[HistoryEntry] = list(entries or [])

    def record(self, entry: HistoryEntry) -> None:
        self.entries.append(entry)

    async def sum_amount(
        self, instrument_id: str, period_start: datetime, period_end: datetime
    ) -> float:
        return sum(
            e.amount
            for e in self.entries
            if e.instrument_id == instrument_id
            and not e.is_deleted
            and period_start <= e.date < period_end
        )

    async def sum_bonus_points(
        self, cap_group_key: str, period_start: datetime, period_end: datetime
    ) -> float:
        return sum(
            e.bonus_points
            for e in self.entries
            if e.cap_group_key == cap_group_key
            and not e.is_deleted
            and period_start <= e.date < period_end
        )


@dataclass
class InMemoryRateStore:
    rates: List[ConversionRate] = field(default_factory=list)
    calls: Dict[str, int] = field(default_factory=dict)

    async def list_rates(self, source_currency_id: str) -> List[ConversionRate]:
        self.calls[source_currency_id] = self.calls.get(source_currency_id, 0) + 1
        return [r for r in self.rates if r.source_currency_id == source_currency_id]


class InMemoryInstrumentCatalog:
    def __init__(self, instruments: Optional[List[Instrument]] = None):
        self._instruments = list(instruments or [])

    async def list_instruments(self) -> List[Instrument]:
        return list(self._instruments)
