"""Tests for the multi-instrument simulator."""

import asyncio

import pytest

from reward_engine.logic.conversion import ConversionGraph
from reward_engine.logic.service import RewardService
from reward_engine.logic.simulator import (
    FAILED_MESSAGE,
    CardResult,
    CardSimulator,
    rank_results,
    simulate_all_cards,
)
from reward_engine.logic.tracker import MonthlySpendTracker
from reward_engine.stores.memory import (
    InMemoryRateStore,
    InMemoryRuleStore,
    InMemoryTransactionHistory,
)
from reward_engine.types import CalculationResult, ConversionRate, Instrument
from tests.conftest import make_input, make_rule


def card(card_id: str, name: str, currency_id=None, active: bool = True) -> Instrument:
    return Instrument(
        id=card_id,
        name=name,
        card_type_id=f"type-{card_id}",
        reward_currency_id=currency_id,
        active=active,
    )


@pytest.fixture
def rule_store() -> InMemoryRuleStore:
    return InMemoryRuleStore(
        [
            make_rule("a", card_type_id="type-a", reward_kwargs={"base_multiplier": 4}),
            make_rule("b", card_type_id="type-b", reward_kwargs={"base_multiplier": 1}),
            make_rule("c", card_type_id="type-c", reward_kwargs={"base_multiplier": 2}),
        ]
    )


@pytest.fixture
def graph() -> ConversionGraph:
    return ConversionGraph(
        InMemoryRateStore(
            [
                ConversionRate("citi", "krisflyer", 0.4),
                ConversionRate("dbs", "krisflyer", 2.0),
            ]
        )
    )


@pytest.fixture
def simulator(rule_store, graph) -> CardSimulator:
    service = RewardService(rule_store, MonthlySpendTracker(InMemoryTransactionHistory()))
    return CardSimulator(service, graph)


class ExplodingRuleStore(InMemoryRuleStore):
    async def list_rules(self, card_type_id):
        if card_type_id == "type-bad":
            raise ValueError("malformed rule data")
        return await super().list_rules(card_type_id)


class TestCardSimulator:
    @pytest.mark.asyncio
    async def test_ranks_by_converted_miles(self, simulator) -> None:
        instruments = [
            card("a", "Alpha", "citi"),  # 400 points * 0.4 = 160
            card("b", "Bravo", "dbs"),  # 100 points * 2.0 = 200
        ]
        results = await simulator.simulate_all(make_input(100), instruments, "krisflyer")

        assert [r.instrument.id for r in results] == ["b", "a"]
        assert [r.rank for r in results] == [1, 2]
        assert results[0].converted_miles == pytest.approx(200)
        assert results[1].calculation.total_points == 400

    @pytest.mark.asyncio
    async def test_unconvertible_cards_listed_last(self, simulator) -> None:
        instruments = [
            card("c", "Charlie", None),
            card("a", "Alpha", "unknown-points"),
            card("b", "Bravo", "dbs"),
        ]
        results = await simulator.simulate_all(make_input(100), instruments, "krisflyer")

        assert [r.instrument.id for r in results] == ["b", "a", "c"]
        assert results[1].converted_miles is None
        assert results[2].converted_miles is None
        assert any("reward currency" in m for m in results[2].calculation.messages)

    @pytest.mark.asyncio
    async def test_inactive_cards_excluded(self, simulator) -> None:
        instruments = [card("a", "Alpha", "citi"), card("b", "Bravo", "dbs", active=False)]
        results = await simulator.simulate_all(make_input(100), instruments, "krisflyer")

        assert [r.instrument.id for r in results] == ["a"]

    @pytest.mark.asyncio
    async def test_no_instruments(self, simulator) -> None:
        assert await simulator.simulate_all(make_input(100), [], "krisflyer") == []

    @pytest.mark.asyncio
    async def test_one_failure_does_not_hide_others(self, rule_store, graph) -> None:
        store = ExplodingRuleStore(rule_store._rules)
        service = RewardService(store, MonthlySpendTracker(InMemoryTransactionHistory()))
        simulator = CardSimulator(service, graph)
        instruments = [
            Instrument(id="bad", name="Broken", card_type_id="type-bad", reward_currency_id="dbs"),
            card("a", "Alpha", "citi"),
        ]

        results = await simulator.simulate_all(make_input(100), instruments, "krisflyer")

        assert [r.instrument.id for r in results] == ["a", "bad"]
        failed = results[1]
        assert failed.error
        assert failed.converted_miles is None
        assert failed.calculation.total_points == 0
        assert failed.calculation.messages == [FAILED_MESSAGE]

    @pytest.mark.asyncio
    async def test_units_get_their_own_input(self, simulator) -> None:
        input = make_input(100)
        await simulator.simulate_all(
            input, [card("a", "Alpha", "citi"), card("b", "Bravo", "dbs")], "krisflyer"
        )
        assert input.monthly_spend is None

    @pytest.mark.asyncio
    async def test_bounded_concurrency(self, rule_store, graph) -> None:
        in_flight = 0
        peak = 0

        class SlowRuleStore(InMemoryRuleStore):
            async def list_rules(self, card_type_id):
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1
                return await super().list_rules(card_type_id)

        service = RewardService(
            SlowRuleStore(rule_store._rules),
            MonthlySpendTracker(InMemoryTransactionHistory()),
        )
        simulator = CardSimulator(service, graph, max_concurrency=2)
        instruments = [card(i, f"Card {i}", "citi") for i in ("a", "b", "c", "a2", "b2")]

        results = await simulator.simulate_all(make_input(100), instruments, "krisflyer")

        assert len(results) == 5
        assert peak == 2

    @pytest.mark.asyncio
    async def test_convenience_function(self, simulator) -> None:
        results = await simulate_all_cards(
            simulator.reward_service,
            simulator.conversion_graph,
            make_input(100),
            [card("a", "Alpha", "citi")],
            "krisflyer",
        )
        assert results[0].to_dict()["conversion"]["miles"] == pytest.approx(160)


class TestRankResults:
    def test_ties_break_by_name_then_id(self) -> None:
        results = [
            CardResult(card("2", "Same"), CalculationResult(), converted_miles=100),
            CardResult(card("1", "Same"), CalculationResult(), converted_miles=100),
            CardResult(card("3", "Earlier"), CalculationResult(), converted_miles=100),
            CardResult(card("4", "Best"), CalculationResult(), converted_miles=500),
        ]
        ranked = rank_results(results)

        assert [r.instrument.id for r in ranked] == ["4", "3", "1", "2"]
        assert [r.rank for r in ranked] == [1, 2, 3, 4]

    def test_deterministic_regardless_of_input_order(self) -> None:
        results = [
            CardResult(card("x", "Zed"), CalculationResult()),
            CardResult(card("y", "Amber"), CalculationResult()),
            CardResult(card("z", "Mid"), CalculationResult(), converted_miles=1),
        ]
        forward = [r.instrument.id for r in rank_results(results)]
        backward = [r.instrument.id for r in rank_results(list(reversed(results)))]

        assert forward == backward == ["z", "y", "x"]
