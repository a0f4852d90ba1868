"""SQLAlchemy table models for accounts and transactions."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> dt.datetime:
    return dt.datetime.now(tz=dt.timezone.utc)


class Base(DeclarativeBase):
    """Base class for all database models."""


class AccountRow(Base):
    """Accounts, credit cards and investments (``type = 'investment'``)."""

    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    item_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    name: Mapped[Optional[str]] = mapped_column(String(255))
    type: Mapped[Optional[str]] = mapped_column(String(50), index=True)
    subtype: Mapped[Optional[str]] = mapped_column(String(50))
    balance: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2))
    currency_code: Mapped[Optional[str]] = mapped_column(String(3))

    # Credit card only
    credit_limit: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2))
    available_credit: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2))
    current_invoice: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2))

    synced_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<AccountRow(id={self.id}, item_id={self.item_id}, type={self.type})>"


class TransactionRow(Base):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    account_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("accounts.id", name="fk_transactions_account", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Provider precision; rounding happens in reports only.
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    category: Mapped[Optional[str]] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(String(1024))
    currency_code: Mapped[Optional[str]] = mapped_column(String(3))
    balance: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2))
    status: Mapped[Optional[str]] = mapped_column(String(20))
    type: Mapped[Optional[str]] = mapped_column(String(20))
    provider_code: Mapped[Optional[str]] = mapped_column(String(64))
    payment_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)
    merchant: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)

    synced_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<TransactionRow(id={self.id}, account_id={self.account_id}, amount={self.amount})>"
