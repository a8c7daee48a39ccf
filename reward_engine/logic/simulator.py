"""
Card Simulator - ranks every instrument a user holds for one transaction.

Each active instrument is one independent unit of work (calculate points,
then convert them to the target miles currency). Units run concurrently and
each captures its own failure, so one broken card never hides the others.

Ranking:
  1. Instruments with a conversion, by converted miles DESC, then name ASC
  2. Instruments without one (no path, no reward currency, or failed),
     by name ASC
Ranks are 1..N over that sequence.
"""

import asyncio
from dataclasses import dataclass, replace
from logging import getLogger
from typing import Any, Dict, List, Optional, Sequence

from reward_engine.logic.conversion import ConversionGraph
from reward_engine.logic.service import RewardService
from reward_engine.types import CalculationInput, CalculationResult, Instrument

logger = getLogger(__name__)

FAILED_MESSAGE = "Calculation failed for this card"


@dataclass
class CardResult:
    """Result of simulating a single instrument for a transaction."""

    instrument: Instrument
    calculation: CalculationResult
    converted_miles: Optional[float] = None
    conversion_rate: Optional[float] = None
    rank: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rank": self.rank,
            "instrument_id": self.instrument.id,
            "card_name": self.instrument.name,
            "card_type_id": self.instrument.card_type_id,
            "calculation": self.calculation.to_dict(),
            "conversion": {
                "miles": self.converted_miles,
                "rate": self.conversion_rate,
                "target_reachable": self.converted_miles is not None,
            },
            "error": self.error,
        }


def rank_results(results: Sequence[CardResult]) -> List[CardResult]:
    """Deterministic ordering; instrument id breaks exact name ties."""
    ranked = sorted(
        (r for r in results if r.converted_miles is not None),
        key=lambda r: (-r.converted_miles, r.instrument.name, r.instrument.id),
    )
    unranked = sorted(
        (r for r in results if r.converted_miles is None),
        key=lambda r: (r.instrument.name, r.instrument.id),
    )

    ordered = ranked + unranked
    for i, result in enumerate(ordered):
        result.rank = i + 1
    return ordered


class CardSimulator:
    """
    Usage:
        simulator = CardSimulator(reward_service, conversion_graph)
        results = await simulator.simulate_all(input, instruments, "krisflyer")
        # results[0] is the best card
    """

    def __init__(
        self,
        reward_service: RewardService,
        conversion_graph: ConversionGraph,
        max_concurrency: Optional[int] = None,
    ):
        self.reward_service = reward_service
        self.conversion_graph = conversion_graph
        self.max_concurrency = max_concurrency

    async def simulate_all(
        self,
        input: CalculationInput,
        instruments: Sequence[Instrument],
        target_currency_id: str,
    ) -> List[CardResult]:
        """
        Main entry point: simulate every active instrument, return ranked results.

        Waits for every unit (no fail-fast). Abandoning the returned awaitable
        does not roll anything back; callers discard late results.
        """
        active = [i for i in instruments if i.active]
        if not active:
            return []

        semaphore = (
            asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None
        )

        async def unit(instrument: Instrument) -> CardResult:
            if semaphore is None:
                return await self._run_unit(input, instrument, target_currency_id)
            async with semaphore:
                return await self._run_unit(input, instrument, target_currency_id)

        results = await asyncio.gather(*(unit(i) for i in active))
        return rank_results(results)

    async def simulate_card(
        self,
        input: CalculationInput,
        instrument: Instrument,
        target_currency_id: str,
    ) -> CardResult:
        """One unit of work. Raises on failure; simulate_all isolates it."""
        calculation = await self.reward_service.calculate_rewards(
            replace(input), instrument
        )

        if not instrument.reward_currency_id:
            calculation.messages.append(
                "No reward currency configured; miles conversion unavailable"
            )
            return CardResult(instrument=instrument, calculation=calculation)

        conversion = await self.conversion_graph.convert(
            calculation.total_points, instrument.reward_currency_id, target_currency_id
        )
        if conversion.miles is None:
            calculation.messages.append(
                f"No conversion path to {target_currency_id}; card is unranked"
            )

        return CardResult(
            instrument=instrument,
            calculation=calculation,
            converted_miles=conversion.miles,
            conversion_rate=conversion.rate,
        )

    async def _run_unit(
        self,
        input: CalculationInput,
        instrument: Instrument,
        target_currency_id: str,
    ) -> CardResult:
        try:
            return await self.simulate_card(input, instrument, target_currency_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error simulating {instrument.name} ({instrument.id}): {e}")
            return CardResult(
                instrument=instrument,
                calculation=CalculationResult(
                    points_currency=instrument.points_currency,
                    messages=[FAILED_MESSAGE],
                ),
                error=str(e) or e.__class__.__name__,
            )


async def simulate_all_cards(
    reward_service: RewardService,
    conversion_graph: ConversionGraph,
    input: CalculationInput,
    instruments: Sequence[Instrument],
    target_currency_id: str,
) -> List[CardResult]:
    """
    Convenience function: rank all instruments for a transaction.

    Example:
        results = await simulate_all_cards(service, graph, input, cards, "krisflyer")
        for r in results:
            print(f"{r.rank}. {r.instrument.name}: {r.converted_miles}")
    """
    simulator = CardSimulator(reward_service, conversion_graph)
    return await simulator.simulate_all(input, instruments, target_currency_id)
