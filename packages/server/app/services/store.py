"""
Charity directory store: access layer for charities and transactions.

Uniqueness (one charity per wallet, one transaction per charity and on-chain
id) is enforced by database constraints. A constraint violation is classified by
re-reading the conflicting key in a fresh session, so concurrent writers in
separate worker processes resolve to exactly one winner.

Every operation runs in its own session and is bounded by a timeout. Timeouts
and driver errors surface as ``StoreError``; they never count as success.
"""

from __future__ import annotations

import asyncio
import uuid
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, TypeVar

import structlog
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from app.core.errors import DuplicateWallet, StoreError
from app.models.charity import Charity
from app.models.transaction import Transaction

log = structlog.get_logger()

T = TypeVar("T")


class InsertOutcome(str, Enum):
    INSERTED = "inserted"
    ALREADY_EXISTS = "already_exists"


class CharityStore:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        timeout: float = 5.0,
    ):
        self._session_factory = session_factory
        self._timeout = timeout

    async def _run(self, op: str, awaitable: Awaitable[T]) -> T:
        """Await a store operation under the timeout; IntegrityError passes through."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except IntegrityError:
            raise
        except asyncio.TimeoutError as exc:
            log.error("store.timeout", op=op, timeout=self._timeout)
            raise StoreError(f"Store operation '{op}' timed out") from exc
        except (SQLAlchemyError, OSError) as exc:
            log.error("store.error", op=op, error=str(exc))
            raise StoreError(f"Store operation '{op}' failed") from exc

    # ------------------------------------------------------------------
    # Charities
    # ------------------------------------------------------------------

    async def insert_charity(
        self,
        name: str,
        description: str,
        wallet_address: str,
        subscription_id: str,
    ) -> Charity:
        """Insert and commit a charity. Raises DuplicateWallet if the address is taken."""

        async def _insert() -> Charity:
            async with self._session_factory() as session:
                charity = Charity(
                    name=name,
                    description=description,
                    wallet_address=wallet_address,
                    subscription_id=subscription_id,
                )
                session.add(charity)
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    raise
                return charity

        try:
            return await self._run("insert_charity", _insert())
        except IntegrityError as exc:
            if await self._wallet_exists(wallet_address):
                raise DuplicateWallet(meta={"wallet_address": wallet_address}) from exc
            log.error("store.charity_integrity_error", wallet_address=wallet_address, error=str(exc))
            raise StoreError("Charity insert violated a constraint") from exc

    async def _wallet_exists(self, wallet_address: str) -> bool:
        async def _query() -> bool:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Charity.id).where(Charity.wallet_address == wallet_address)
                )
                return result.first() is not None

        return await self._run("wallet_exists", _query())

    async def get_charity(self, charity_id: uuid.UUID) -> Charity | None:
        async def _query() -> Charity | None:
            async with self._session_factory() as session:
                return await session.get(Charity, charity_id)

        return await self._run("get_charity", _query())

    async def find_charity_by_subscription(self, subscription_id: str) -> Charity | None:
        async def _query() -> Charity | None:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Charity).where(Charity.subscription_id == subscription_id)
                )
                return result.scalar_one_or_none()

        return await self._run("find_charity_by_subscription", _query())

    async def list_charities(self) -> list[Charity]:
        async def _query() -> list[Charity]:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Charity).order_by(Charity.created_at, Charity.id)
                )
                return list(result.scalars().all())

        return await self._run("list_charities", _query())

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def insert_transaction(
        self,
        charity_id: uuid.UUID,
        source_notification_id: str,
        amount: Decimal,
        raw_payload: dict[str, Any],
    ) -> tuple[InsertOutcome, Transaction]:
        """
        Insert a transaction keyed by charity and notification id.

        Returns ``ALREADY_EXISTS`` with the stored row when this charity has
        seen the id before, including when a concurrent delivery won the
        insert race. The same id for another charity is a separate row.
        """
        existing = await self._get_transaction_by_source(charity_id, source_notification_id)
        if existing:
            return InsertOutcome.ALREADY_EXISTS, existing

        async def _insert() -> Transaction:
            async with self._session_factory() as session:
                transaction = Transaction(
                    charity_id=charity_id,
                    source_notification_id=source_notification_id,
                    amount=amount,
                    raw_payload=raw_payload,
                )
                session.add(transaction)
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    raise
                return transaction

        try:
            transaction = await self._run("insert_transaction", _insert())
        except IntegrityError as exc:
            existing = await self._get_transaction_by_source(charity_id, source_notification_id)
            if existing:
                return InsertOutcome.ALREADY_EXISTS, existing
            log.error(
                "store.transaction_integrity_error",
                charity_id=str(charity_id),
                source_notification_id=source_notification_id,
                error=str(exc),
            )
            raise StoreError("Transaction insert violated a constraint") from exc

        return InsertOutcome.INSERTED, transaction

    async def _get_transaction_by_source(
        self, charity_id: uuid.UUID, source_notification_id: str
    ) -> Transaction | None:
        async def _query() -> Transaction | None:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Transaction).where(
                        Transaction.charity_id == charity_id,
                        Transaction.source_notification_id == source_notification_id,
                    )
                )
                return result.scalar_one_or_none()

        return await self._run("get_transaction_by_source", _query())

    async def list_transactions(self, charity_id: uuid.UUID) -> list[Transaction]:
        async def _query() -> list[Transaction]:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Transaction)
                    .where(Transaction.charity_id == charity_id)
                    .order_by(Transaction.received_at, Transaction.id)
                )
                return list(result.scalars().all())

        return await self._run("list_transactions", _query())

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def ping(self) -> None:
        async def _query() -> None:
            async with self._session_factory() as session:
                await session.execute(text("SELECT 1"))

        await self._run("ping", _query())
