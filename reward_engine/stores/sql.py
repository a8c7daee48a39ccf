"""
SQLModel-backed collaborators over the tables in reward_engine.models.

Sessions are synchronous; every query runs on a worker thread through
asyncio.to_thread so the async engine never blocks the event loop.
"""

import asyncio
from datetime import datetime
from logging import getLogger
from typing import List

from sqlalchemy.engine import Engine
from sqlmodel import Session, col, func, select

from reward_engine.mapper import record_to_rule
from reward_engine.models import (
    ConversionRateRecord,
    PaymentMethod,
    RewardRuleRecord,
    Transaction,
)
from reward_engine.types import ConversionRate, Instrument, RewardRule

logger = getLogger(__name__)


def payment_method_to_instrument(method: PaymentMethod) -> Instrument:
    return Instrument(
        id=method.id,
        name=method.name,
        card_type_id=method.card_type_id,
        currency=method.currency,
        points_currency=method.points_currency,
        reward_currency_id=method.reward_currency_id,
        active=method.active,
        statement_day=method.statement_day,
        issuer=method.issuer,
    )


class SqlRuleStore:
    def __init__(self, engine: Engine):
        self.engine = engine

    async def list_rules(self, card_type_id: str) -> List[RewardRule]:
        return await asyncio.to_thread(self._list_rules, card_type_id)

    def _list_rules(self, card_type_id: str) -> List[RewardRule]:
        with Session(self.engine) as session:
            records = session.exec(
                select(RewardRuleRecord)
                .where(RewardRuleRecord.card_type_id == card_type_id)
                .order_by(col(RewardRuleRecord.created_at), col(RewardRuleRecord.id))
            ).all()
            return [record_to_rule(r.model_dump()) for r in records]


class SqlTransactionHistory:
    def __init__(self, engine: Engine):
        self.engine = engine

    async def sum_amount(
        self, instrument_id: str, period_start: datetime, period_end: datetime
    ) -> float:
        query = select(func.coalesce(func.sum(Transaction.amount), 0.0)).where(
            Transaction.payment_method_id == instrument_id,
            col(Transaction.is_deleted).is_(False),
            Transaction.date >= period_start,
            Transaction.date < period_end,
        )
        return await asyncio.to_thread(self._scalar, query)

    async def sum_bonus_points(
        self, cap_group_key: str, period_start: datetime, period_end: datetime
    ) -> float:
        query = select(func.coalesce(func.sum(Transaction.bonus_points), 0.0)).where(
            Transaction.cap_group_key == cap_group_key,
            col(Transaction.is_deleted).is_(False),
            Transaction.date >= period_start,
            Transaction.date < period_end,
        )
        return await asyncio.to_thread(self._scalar, query)

    def _scalar(self, query) -> float:
        with Session(self.engine) as session:
            return float(session.exec(query).one() or 0.0)

    def record(self, transaction: Transaction) -> Transaction:
        """Commits a transaction so later period reads include it."""
        with Session(self.engine) as session:
            session.add(transaction)
            session.commit()
            session.refresh(transaction)
            logger.debug(
                f"Recorded transaction {transaction.id} on {transaction.payment_method_id}"
            )
            return transaction


class SqlRateStore:
    def __init__(self, engine: Engine):
        self.engine = engine

    async def list_rates(self, source_currency_id: str) -> List[ConversionRate]:
        return await asyncio.to_thread(self._list_rates, source_currency_id)

    def _list_rates(self, source_currency_id: str) -> List[ConversionRate]:
        with Session(self.engine) as session:
            records = session.exec(
                select(ConversionRateRecord).where(
                    ConversionRateRecord.source_currency_id == source_currency_id
                )
            ).all()
            return [
                ConversionRate(
                    source_currency_id=r.source_currency_id,
                    target_currency_id=r.target_currency_id,
                    rate=r.rate,
                    updated_at=r.updated_at,
                    reversible=r.reversible,
                )
                for r in records
            ]


class SqlInstrumentCatalog:
    def __init__(self, engine: Engine):
        self.engine = engine

    async def list_instruments(self) -> List[Instrument]:
        return await asyncio.to_thread(self._list_instruments)

    def _list_instruments(self) -> List[Instrument]:
        with Session(self.engine) as session:
            methods = session.exec(
                select(PaymentMethod).order_by(col(PaymentMethod.name))
            ).all()
            return [payment_method_to_instrument(m) for m in methods]

    def get(self, instrument_id: str) -> Instrument | None:
        with Session(self.engine) as session:
            method = session.get(PaymentMethod, instrument_id)
            return payment_method_to_instrument(method) if method else None
