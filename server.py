import traceback
from datetime import datetime
from logging import getLogger
from typing import Optional

from mcp.server.fastmcp import FastMCP
from sqlmodel import Session, col, select

from reward_engine.config import EngineConfig
from reward_engine.db import engine
from reward_engine.exceptions import InvalidCalculationInputError, RewardEngineError
from reward_engine.logging import setup_logging
from reward_engine.logic.conversion import ConversionGraph, RateCache
from reward_engine.logic.rewards import cap_group_key
from reward_engine.logic.service import RewardService, instrument_cap_key
from reward_engine.logic.simulator import CardSimulator
from reward_engine.logic.tracker import MonthlySpendTracker
from reward_engine.models import PaymentMethod, Transaction
from reward_engine.stores.sql import (
    SqlInstrumentCatalog,
    SqlRateStore,
    SqlRuleStore,
    SqlTransactionHistory,
    payment_method_to_instrument,
)
from reward_engine.types import CalculationInput, Instrument

config = EngineConfig.from_env()
setup_logging(level=config.log_level)

logger = getLogger(__name__)

mcp = FastMCP("reward-engine")

# --- Wiring: SQL collaborators -> tracker/graph -> service -> simulator ---
history = SqlTransactionHistory(engine)
catalog = SqlInstrumentCatalog(engine)
reward_service = RewardService(
    SqlRuleStore(engine),
    MonthlySpendTracker(history, timeout=config.store_timeout_seconds),
)
conversion_graph = ConversionGraph(
    SqlRateStore(engine),
    base_currency_id=config.base_currency_id,
    cache=RateCache(ttl_seconds=config.rate_cache_ttl_seconds),
)
simulator = CardSimulator(
    reward_service, conversion_graph, max_concurrency=config.max_concurrency
)


def _parse_date(date: Optional[str]) -> datetime:
    if not date:
        return datetime.now()
    return datetime.strptime(date, "%Y-%m-%d")


def _find_instrument(card_name: str) -> Instrument | dict:
    """Instrument for a card id or (partial) card name, or an error payload."""
    instrument = catalog.get(card_name)
    if instrument is not None:
        return instrument

    with Session(engine) as session:
        methods = session.exec(
            select(PaymentMethod).where(col(PaymentMethod.name).ilike(f"%{card_name}%"))
        ).all()

    if not methods:
        return {"status": "error", "message": f"Card matching '{card_name}' not found."}

    if len(methods) > 1:
        exact = [m for m in methods if m.name.lower() == card_name.lower()]
        if len(exact) != 1:
            return {
                "status": "error",
                "message": "Multiple cards found. Please be specific.",
                "matches": [{"id": m.id, "name": m.name} for m in methods],
            }
        methods = exact

    return payment_method_to_instrument(methods[0])


def _build_input(
    amount: float,
    currency: str,
    mcc: Optional[str],
    merchant: Optional[str],
    category: Optional[str],
    is_online: Optional[bool],
    is_contactless: Optional[bool],
    date: Optional[str],
    converted_amount: Optional[float] = None,
    converted_currency: Optional[str] = None,
    transaction_type: str = "purchase",
) -> CalculationInput:
    return CalculationInput(
        amount=amount,
        currency=currency,
        converted_amount=converted_amount,
        converted_currency=converted_currency,
        mcc=mcc,
        merchant_name=merchant,
        category=category,
        transaction_type=transaction_type,
        is_online=is_online,
        is_contactless=is_contactless,
        date=_parse_date(date),
    )


# ========================= TOOLS =========================
# Tools allow LLM clients to perform actions
# =========================================================


@mcp.tool()
async def get_my_cards() -> dict:
    """
    Lists every payment instrument in the wallet with its reward currency.

    Use the card names returned here for `calculate_rewards` and
    `record_transaction`.
    """
    try:
        instruments = await catalog.list_instruments()
        return {
            "status": "success",
            "count": len(instruments),
            "cards": [
                {
                    "id": i.id,
                    "name": i.name,
                    "issuer": i.issuer,
                    "card_type_id": i.card_type_id,
                    "points_currency": i.points_currency,
                    "reward_currency_id": i.reward_currency_id,
                    "statement_day": i.statement_day,
                    "active": i.active,
                }
                for i in instruments
            ],
        }
    except Exception as e:
        logger.error(f"Error listing cards: {e}")
        return {"status": "error", "message": str(e)}


@mcp.tool()
async def calculate_rewards(
    amount: float,
    card_name: str,
    currency: str = "USD",
    mcc: Optional[str] = None,
    merchant: Optional[str] = None,
    category: Optional[str] = None,
    is_online: Optional[bool] = None,
    is_contactless: Optional[bool] = None,
    date: Optional[str] = None,
    converted_amount: Optional[float] = None,
    converted_currency: Optional[str] = None,
) -> dict:
    """
    Calculates the points one card would earn for a purchase (nothing is saved).

    Args:
        amount: Transaction amount in `currency`.
        card_name: Card id from `get_my_cards`, or its name (or a unique part of it).
        currency: ISO currency code of the transaction (e.g., "USD", "SGD").
        mcc: 4-digit merchant category code, if known (e.g., "5812").
        merchant: Merchant name (e.g., "Zara").
        category: Spend category (e.g., "dining").
        is_online: True for online, False for in-store, None if unknown.
        is_contactless: True for tap-to-pay.
        date: Optional date in 'YYYY-MM-DD' format. Defaults to today.
        converted_amount: Amount in the card's billing currency, when it differs.
        converted_currency: Billing currency of converted_amount.

    Returns:
        dict: Points breakdown, applied rule, cap status and messages.
    """
    try:
        instrument = _find_instrument(card_name)
        if isinstance(instrument, dict):
            return instrument

        input = _build_input(
            amount, currency, mcc, merchant, category, is_online, is_contactless,
            date, converted_amount, converted_currency,
        )
        result = await reward_service.calculate_rewards(input, instrument)

        return {
            "status": "success",
            "card": instrument.name,
            "result": result.to_dict(),
        }

    except ValueError as e:
        return {"status": "error", "message": f"Invalid input: {e}"}
    except InvalidCalculationInputError as e:
        return {"status": "error", "message": str(e)}
    except Exception as e:
        logger.error(f"Error calculating rewards: {e}")
        logger.error(traceback.format_exc())
        return {"status": "error", "message": str(e)}


@mcp.tool()
async def simulate_cards(
    amount: float,
    target_currency_id: str,
    currency: str = "USD",
    mcc: Optional[str] = None,
    merchant: Optional[str] = None,
    category: Optional[str] = None,
    is_online: Optional[bool] = None,
    is_contactless: Optional[bool] = None,
    date: Optional[str] = None,
) -> dict:
    """
    Finds the BEST card for a purchase by simulating every active card.

    Call this tool when user asks:
    - "Which card should I use for X?"
    - "Which card earns the most KrisFlyer miles here?"

    Args:
        amount: Purchase amount in `currency`.
        target_currency_id: Miles currency to compare in (e.g., "krisflyer").
        currency: ISO currency code of the purchase.
        mcc: 4-digit merchant category code, if known.
        merchant: Merchant name.
        category: Spend category.
        is_online: True for online, False for in-store, None if unknown.
        is_contactless: True for tap-to-pay.
        date: Optional date in 'YYYY-MM-DD' format. Defaults to today.

    Returns:
        dict: Ranked cards. Cards that cannot reach the target currency are
        listed last with `conversion.target_reachable = false`.
    """
    try:
        instruments = await catalog.list_instruments()
        if not instruments:
            return {
                "status": "error",
                "message": "No cards found in wallet. Seed or add cards first.",
            }

        input = _build_input(
            amount, currency, mcc, merchant, category, is_online, is_contactless, date
        )
        results = await simulator.simulate_all(input, instruments, target_currency_id)
        ranked = [r.to_dict() for r in results]

        return {
            "status": "success",
            "target_currency_id": target_currency_id,
            "recommendation_count": len(ranked),
            "best_card": ranked[0] if ranked and ranked[0]["conversion"]["target_reachable"] else None,
            "all_recommendations": ranked,
        }

    except ValueError as e:
        return {"status": "error", "message": f"Invalid input: {e}"}
    except Exception as e:
        logger.error(f"Error in card simulation: {e}")
        return {"status": "error", "message": str(e)}


@mcp.tool()
async def convert_points(
    points: float, source_currency_id: str, target_currency_id: str
) -> dict:
    """
    Converts reward points to miles through the conversion rate graph.

    Args:
        points: Number of points to convert.
        source_currency_id: Reward currency the points are in (e.g., "citi-thankyou").
        target_currency_id: Currency to convert into (e.g., "krisflyer").
    """
    try:
        conversion = await conversion_graph.convert(
            points, source_currency_id, target_currency_id
        )
        if not conversion.converted:
            return {
                "status": "error",
                "message": f"No conversion path from {source_currency_id} to {target_currency_id}.",
            }
        return {
            "status": "success",
            "points": points,
            "miles": conversion.miles,
            "rate": conversion.rate,
            "path": conversion.path,
        }
    except Exception as e:
        logger.error(f"Error converting points: {e}")
        return {"status": "error", "message": str(e)}


@mcp.tool()
async def record_transaction(
    amount: float,
    card_name: str,
    currency: str = "USD",
    mcc: Optional[str] = None,
    merchant: Optional[str] = None,
    category: Optional[str] = None,
    is_online: Optional[bool] = None,
    is_contactless: Optional[bool] = None,
    date: Optional[str] = None,
) -> dict:
    """
    Calculates rewards for a purchase and saves it to the transaction history.

    Saved transactions count towards monthly spend, minimum spend gates and
    shared bonus caps of later calculations.

    Args: same as `calculate_rewards`.
    """
    try:
        if amount <= 0:
            return {"status": "error", "message": "Amount must be positive."}

        instrument = _find_instrument(card_name)
        if isinstance(instrument, dict):
            return instrument

        input = _build_input(
            amount, currency, mcc, merchant, category, is_online, is_contactless, date
        )
        result = await reward_service.calculate_rewards(input, instrument)

        group = cap_group_key(result.applied_rule) if result.applied_rule else None
        transaction = history.record(
            Transaction(
                payment_method_id=instrument.id,
                amount=input.calculation_amount,
                currency=input.converted_currency or input.currency,
                merchant=merchant,
                mcc=mcc,
                points_earned=result.total_points,
                bonus_points=result.bonus_points,
                cap_group_key=instrument_cap_key(instrument, group) if group else None,
                applied_rule_id=result.applied_rule.id if result.applied_rule else None,
                date=input.date,
            )
        )

        return {
            "status": "success",
            "message": "Transaction added successfully.",
            "transaction": {
                "id": transaction.id,
                "date": transaction.date.strftime("%Y-%m-%d"),
                "merchant": transaction.merchant,
                "amount": transaction.amount,
                "card": instrument.name,
                "points_earned": transaction.points_earned,
            },
            "result": result.to_dict(),
        }

    except ValueError as e:
        return {"status": "error", "message": f"Invalid input: {e}"}
    except RewardEngineError as e:
        return {"status": "error", "message": str(e)}
    except Exception as e:
        logger.error(f"Error adding transaction: {str(e)}")
        logger.error(traceback.format_exc())
        return {"status": "error", "message": str(e)}


if __name__ == "__main__":
    mcp.run()
