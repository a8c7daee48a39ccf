"""
Interfaces of the external collaborators the engine reads from.

The engine owns none of this data: rules, transaction history, conversion
rates and instruments are persisted elsewhere and read fresh on each call.
"""

from datetime import datetime
from typing import List, Protocol, runtime_checkable

from reward_engine.types import ConversionRate, Instrument, RewardRule


@runtime_checkable
class RuleStore(Protocol):
    async def list_rules(self, card_type_id: str) -> List[RewardRule]:
        """Rules for a card type, in creation order. May be empty."""
        ...


@runtime_checkable
class TransactionHistoryStore(Protocol):
    async def sum_amount(
        self, instrument_id: str, period_start: datetime, period_end: datetime
    ) -> float:
        """Total spend on an instrument in [period_start, period_end)."""
        ...

    async def sum_bonus_points(
        self, cap_group_key: str, period_start: datetime, period_end: datetime
    ) -> float:
        """Bonus points already awarded to a cap group in [period_start, period_end)."""
        ...


@runtime_checkable
class ConversionRateStore(Protocol):
    async def list_rates(self, source_currency_id: str) -> List[ConversionRate]:
        """Outgoing conversion edges of a reward currency."""
        ...


@runtime_checkable
class InstrumentCatalog(Protocol):
    async def list_instruments(self) -> List[Instrument]: ...
