"""
SQL store: accounts and transactions in any SQLAlchemy async database.

Works with SQLite (``sqlite+aiosqlite://``) and PostgreSQL
(``postgresql+asyncpg://``). Upserts use ``INSERT ... ON CONFLICT (id) DO
UPDATE ... RETURNING id``; the returned ids are the write confirmation.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from finsync.exceptions import ConfigurationError, StoreError, StoreUnavailableError
from finsync.models.financial import INVESTMENT_TYPE, Account, Transaction
from finsync.storage.base import BaseStore
from finsync.storage.tables import AccountRow, Base, TransactionRow, utc_now

logger = logging.getLogger("finsync.storage.sql")

# Keeps each statement under SQLite's bound-parameter limit.
_BATCH_SIZE = 500


def _to_decimal(value: float | None) -> Decimal | None:
    return None if value is None else Decimal(str(value))


def _to_float(value: Decimal | None) -> float | None:
    return None if value is None else float(value)


class SQLStore(BaseStore):
    """Persist accounts and transactions via SQLAlchemy.

    Usage::

        store = SQLStore("sqlite+aiosqlite:///finsync.db")
        await store.create_schema()
        written = await store.upsert_accounts(accounts)
    """

    name = "sql"

    def __init__(
        self,
        url: str | None = None,
        *,
        engine: AsyncEngine | None = None,
        echo: bool = False,
        log: logging.Logger | None = None,
    ) -> None:
        if engine is None:
            if not url:
                raise ConfigurationError("A database URL is required")
            try:
                engine = create_async_engine(url, echo=echo, pool_pre_ping=True)
            except (SQLAlchemyError, ImportError, ValueError) as e:
                raise ConfigurationError(f"Invalid database URL: {e}") from e
        self._engine = engine
        self._session_maker = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        self._log = log or logger

    @classmethod
    def from_config(cls, config: Any, log: logging.Logger | None = None) -> SQLStore:
        """Build a store from a :class:`~finsync.config.DatabaseConfig`."""
        return cls(config.url, echo=config.echo, log=log)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create_schema(self) -> None:
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Cannot create schema: {e}") from e
        self._log.info("Database schema is up to date")

    async def ping(self) -> None:
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailableError(f"Database is unreachable: {e}") from e

    async def close(self) -> None:
        await self._engine.dispose()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _insert(self) -> Any:
        """Dialect-specific ``insert`` that supports ON CONFLICT."""
        dialect = self._engine.dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            raise ConfigurationError(f"Upserts are not supported on {dialect}")
        return insert

    async def _upsert(self, table: type[Base], rows: list[dict[str, Any]]) -> int:
        if not rows:
            return 0

        # Last occurrence of an id wins; ON CONFLICT cannot touch a row twice.
        unique = list({row["id"]: row for row in rows}.values())
        insert = self._insert()
        columns = [c.name for c in table.__table__.columns if c.name != "id"]

        written = 0
        try:
            async with self._session_maker() as session, session.begin():
                for start in range(0, len(unique), _BATCH_SIZE):
                    stmt = insert(table).values(unique[start : start + _BATCH_SIZE])
                    stmt = stmt.on_conflict_do_update(
                        index_elements=["id"],
                        set_={name: stmt.excluded[name] for name in columns},
                    ).returning(table.id)
                    result = await session.execute(stmt)
                    written += len(result.scalars().all())
        except SQLAlchemyError as e:
            raise StoreError(f"Upsert into {table.__tablename__} failed: {e}") from e

        self._log.debug("Upserted %d/%d rows into %s", written, len(unique), table.__tablename__)
        return written

    async def upsert_accounts(self, accounts: Sequence[Account]) -> int:
        now = utc_now()
        rows = [
            {
                "id": a.id,
                "item_id": a.item_id,
                "name": a.name,
                "type": a.type,
                "subtype": a.subtype,
                "balance": _to_decimal(a.balance),
                "currency_code": a.currency_code,
                "credit_limit": _to_decimal(a.credit_limit),
                "available_credit": _to_decimal(a.available_credit),
                "current_invoice": _to_decimal(a.current_invoice),
                "synced_at": now,
            }
            for a in accounts
        ]
        return await self._upsert(AccountRow, rows)

    async def upsert_transactions(self, transactions: Sequence[Transaction]) -> int:
        now = utc_now()
        rows = [
            {
                "id": t.id,
                "account_id": t.account_id,
                "amount": _to_decimal(t.amount),
                "date": t.date,
                "category": t.category,
                "description": t.description,
                "currency_code": t.currency_code,
                "balance": _to_decimal(t.balance),
                "status": t.status,
                "type": t.type,
                "provider_code": t.provider_code,
                "payment_data": t.payment_data.model_dump(mode="json") if t.payment_data else None,
                "merchant": t.merchant.model_dump(mode="json") if t.merchant else None,
                "synced_at": now,
            }
            for t in transactions
        ]
        return await self._upsert(TransactionRow, rows)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _scalars(self, stmt: Any) -> list[Any]:
        try:
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise StoreError(f"Query failed: {e}") from e

    async def accounts_by_item(self, item_id: str) -> list[Account]:
        rows = await self._scalars(
            select(AccountRow).where(AccountRow.item_id == item_id).order_by(AccountRow.id)
        )
        return [_account_from_row(r) for r in rows]

    async def all_accounts(self) -> list[Account]:
        rows = await self._scalars(select(AccountRow).order_by(AccountRow.item_id, AccountRow.id))
        return [_account_from_row(r) for r in rows]

    async def item_ids(self) -> list[str]:
        return await self._scalars(
            select(AccountRow.item_id).distinct().order_by(AccountRow.item_id)
        )

    async def transactions(
        self,
        *,
        item_id: str | None = None,
        account_id: str | None = None,
        limit: int | None = None,
    ) -> list[Transaction]:
        stmt = select(TransactionRow)
        if item_id:
            stmt = stmt.join(AccountRow, TransactionRow.account_id == AccountRow.id).where(
                AccountRow.item_id == item_id
            )
        if account_id:
            stmt = stmt.where(TransactionRow.account_id == account_id)
        stmt = stmt.order_by(TransactionRow.date.desc(), TransactionRow.id)
        if limit is not None:
            stmt = stmt.limit(limit)

        rows = await self._scalars(stmt)
        return [_transaction_from_row(r) for r in rows]

    async def investments(self, item_id: str) -> list[Account]:
        rows = await self._scalars(
            select(AccountRow)
            .where(AccountRow.item_id == item_id, AccountRow.type == INVESTMENT_TYPE)
            .order_by(AccountRow.id)
        )
        return [_account_from_row(r) for r in rows]


def _account_from_row(row: AccountRow) -> Account:
    return Account(
        id=row.id,
        item_id=row.item_id,
        name=row.name,
        type=row.type,
        subtype=row.subtype,
        balance=_to_float(row.balance),
        currency_code=row.currency_code,
        credit_limit=_to_float(row.credit_limit),
        available_credit=_to_float(row.available_credit),
        current_invoice=_to_float(row.current_invoice),
    )


def _transaction_from_row(row: TransactionRow) -> Transaction:
    return Transaction.model_validate(
        {
            "id": row.id,
            "account_id": row.account_id,
            "amount": float(row.amount),
            "date": row.date,
            "category": row.category,
            "description": row.description,
            "currency_code": row.currency_code,
            "balance": _to_float(row.balance),
            "status": row.status,
            "type": row.type,
            "provider_code": row.provider_code,
            "payment_data": row.payment_data,
            "merchant": row.merchant,
        }
    )
