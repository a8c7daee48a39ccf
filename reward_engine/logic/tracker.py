import asyncio
from dataclasses import dataclass
from datetime import datetime
from logging import getLogger
from typing import Awaitable, Callable, Optional

from reward_engine.logic.periods import period_window
from reward_engine.stores.base import TransactionHistoryStore
from reward_engine.types import PeriodType

logger = getLogger(__name__)


@dataclass
class TrackerReading:
    """A period aggregate; `degraded` means the read failed and 0 was substituted."""

    value: float
    degraded: bool = False


class MonthlySpendTracker:
    """
    Period spend and cap-group usage, derived from transaction history.

    Nothing is cached or counted here: every call re-queries the history
    store so cap and tier decisions always see the latest committed
    transactions. A failed or timed-out read never blocks a calculation, it
    resolves to 0 (fail open) and is flagged as degraded.
    """

    def __init__(
        self,
        history_store: TransactionHistoryStore,
        timeout: Optional[float] = 5.0,
    ):
        self.history_store = history_store
        self.timeout = timeout

    async def get_period_spend(
        self,
        instrument_id: str,
        period_type: PeriodType,
        as_of: datetime,
        period_anchor_day: int = 1,
    ) -> float:
        reading = await self.read_period_spend(
            instrument_id, period_type, as_of, period_anchor_day
        )
        return reading.value

    async def get_cap_group_earned(
        self,
        group_key: str,
        period_type: PeriodType,
        as_of: datetime,
        period_anchor_day: int = 1,
    ) -> float:
        reading = await self.read_cap_group_earned(
            group_key, period_type, as_of, period_anchor_day
        )
        return reading.value

    async def read_period_spend(
        self,
        instrument_id: str,
        period_type: PeriodType,
        as_of: datetime,
        period_anchor_day: int = 1,
    ) -> TrackerReading:
        start, end = period_window(period_type, as_of, period_anchor_day)
        return await self._read(
            lambda: self.history_store.sum_amount(instrument_id, start, end),
            f"period spend for instrument {instrument_id} ({start:%Y-%m-%d} → {end:%Y-%m-%d})",
        )

    async def read_cap_group_earned(
        self,
        group_key: str,
        period_type: PeriodType,
        as_of: datetime,
        period_anchor_day: int = 1,
    ) -> TrackerReading:
        start, end = period_window(period_type, as_of, period_anchor_day)
        return await self._read(
            lambda: self.history_store.sum_bonus_points(group_key, start, end),
            f"bonus points for cap group {group_key} ({start:%Y-%m-%d} → {end:%Y-%m-%d})",
        )

    async def _read(
        self, query: Callable[[], Awaitable[float]], label: str
    ) -> TrackerReading:
        try:
            if self.timeout is not None:
                value = await asyncio.wait_for(query(), timeout=self.timeout)
            else:
                value = await query()
            value = float(value or 0.0)
        except asyncio.TimeoutError:
            logger.warning(f"Timed out reading {label}; assuming 0 (reduced confidence)")
            return TrackerReading(0.0, degraded=True)
        except Exception as e:
            logger.warning(f"Failed reading {label}: {e}; assuming 0 (reduced confidence)")
            return TrackerReading(0.0, degraded=True)

        return TrackerReading(value)
