"""
Points-to-Miles Conversion Graph.

Resolves how many miles a reward currency's points are worth in a target
currency. Edges are directed: A -> B says nothing about B -> A unless the
stored edge is explicitly marked `reversible`. When no direct edge exists,
a cross-rate is derived through a designated base currency
(source -> base -> target), the same way fiat cross-rates are derived
from a base currency.
"""

import time
from dataclasses import dataclass, field
from logging import getLogger
from typing import Callable, Dict, List, Optional, Tuple

from reward_engine.stores.base import ConversionRateStore
from reward_engine.types import ConversionRate

logger = getLogger(__name__)


@dataclass
class ConversionResult:
    """`miles is None` means no conversion path: unrankable, not an error."""

    miles: Optional[float]
    rate: Optional[float]
    path: List[str] = field(default_factory=list)

    @property
    def converted(self) -> bool:
        return self.miles is not None


class RateCache:
    """
    TTL cache of `list_rates(source)` responses.

    Owned and passed in by the caller; refresh is explicit via
    `invalidate()` / `clear()` or implicit when an entry outlives the TTL.
    """

    def __init__(
        self,
        ttl_seconds: float = 15 * 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, List[ConversionRate]]] = {}

    def get(self, source_currency_id: str) -> Optional[List[ConversionRate]]:
        entry = self._entries.get(source_currency_id)
        if entry is None:
            return None
        stored_at, rates = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            del self._entries[source_currency_id]
            return None
        return rates

    def put(self, source_currency_id: str, rates: List[ConversionRate]) -> None:
        self._entries[source_currency_id] = (self._clock(), list(rates))

    def invalidate(self, source_currency_id: str) -> None:
        self._entries.pop(source_currency_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class ConversionGraph:
    def __init__(
        self,
        rate_store: ConversionRateStore,
        base_currency_id: Optional[str] = None,
        cache: Optional[RateCache] = None,
    ):
        self.rate_store = rate_store
        self.base_currency_id = base_currency_id
        self.cache = cache

    async def convert(
        self, points: float, source_currency_id: str, target_currency_id: str
    ) -> ConversionResult:
        """Never raises: missing paths and store failures both yield miles=None."""
        if not source_currency_id or not target_currency_id:
            return ConversionResult(miles=None, rate=None)

        resolved = await self.resolve(source_currency_id, target_currency_id)
        if resolved is None:
            logger.info(
                f"No conversion path {source_currency_id} -> {target_currency_id}"
            )
            return ConversionResult(miles=None, rate=None)

        rate, path = resolved
        return ConversionResult(miles=points * rate, rate=rate, path=path)

    async def get_rate(
        self, source_currency_id: str, target_currency_id: str
    ) -> Optional[float]:
        resolved = await self.resolve(source_currency_id, target_currency_id)
        return resolved[0] if resolved else None

    async def resolve(
        self, source_currency_id: str, target_currency_id: str
    ) -> Optional[Tuple[float, List[str]]]:
        """Rate and the currencies it passes through, or None."""
        if source_currency_id == target_currency_id:
            return 1.0, [source_currency_id]

        direct = await self._edge_rate(source_currency_id, target_currency_id)
        if direct is not None:
            return direct, [source_currency_id, target_currency_id]

        base = self.base_currency_id
        if not base or base in (source_currency_id, target_currency_id):
            return None

        to_base = await self._edge_rate(source_currency_id, base)
        if to_base is None:
            return None
        from_base = await self._edge_rate(base, target_currency_id)
        if from_base is None:
            return None

        return to_base * from_base, [source_currency_id, base, target_currency_id]

    async def _edge_rate(self, source_id: str, target_id: str) -> Optional[float]:
        for edge in await self._rates_from(source_id):
            if edge.target_currency_id == target_id and edge.rate > 0:
                return edge.rate

        # Inverse only when the stored edge says so
        for edge in await self._rates_from(target_id):
            if edge.target_currency_id == source_id and edge.reversible and edge.rate > 0:
                return 1.0 / edge.rate

        return None

    async def _rates_from(self, source_id: str) -> List[ConversionRate]:
        if self.cache is not None:
            cached = self.cache.get(source_id)
            if cached is not None:
                return cached

        try:
            rates = list(await self.rate_store.list_rates(source_id))
        except Exception as e:
            logger.warning(f"Failed to load conversion rates for {source_id}: {e}")
            return []

        if self.cache is not None:
            self.cache.put(source_id, rates)
        return rates
