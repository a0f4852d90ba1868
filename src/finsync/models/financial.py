"""
Financial data models: accounts, transactions and connected banks.

These are the normalized shapes FinSync persists and serves. Provider
payloads are converted into them by the sync engine.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field

from finsync.models.provider import Merchant, PaymentData


class Subtype(str, Enum):
    """Canonical account subtypes.

    Unknown provider subtypes are kept as their folded lower-case string,
    so stored subtypes are not limited to these values.
    """

    CHECKING = "checking"
    SAVINGS = "savings"
    CREDIT_CARD = "credit_card"
    INVESTMENT = "investment"
    LOAN = "loan"
    OTHER = "other"


INVESTMENT_TYPE = "investment"


class Account(BaseModel):
    """A bank, credit-card or investment account.

    Credit fields are only populated when ``subtype`` is ``credit_card``.
    """

    id: str
    item_id: str
    name: str | None = None
    type: str | None = None
    subtype: str | None = None
    balance: float | None = None
    currency_code: str | None = None
    credit_limit: float | None = None
    available_credit: float | None = None
    current_invoice: float | None = None

    @property
    def is_credit_card(self) -> bool:
        return self.subtype == Subtype.CREDIT_CARD.value

    @property
    def is_investment(self) -> bool:
        return self.type == INVESTMENT_TYPE


class Transaction(BaseModel):
    """A single account movement.

    ``amount`` keeps the provider's sign: positive is an inflow, negative
    an outflow. A missing ``category`` is stored as ``None``.
    """

    id: str
    account_id: str
    amount: float
    date: date
    category: str | None = None
    description: str | None = None
    currency_code: str | None = None
    balance: float | None = None
    status: str | None = None  # PENDING, POSTED
    type: str | None = None  # DEBIT, CREDIT
    provider_code: str | None = None
    payment_data: PaymentData | None = None
    merchant: Merchant | None = None


class Bank(BaseModel):
    """A connected item resolved against the connector catalog."""

    item_id: str
    connector_id: int
    bank_name: str
    status: str | None = None
    created_at: datetime | None = None
    last_updated_at: datetime | None = None


class InstitutionStatus(BaseModel):
    """Connection state of one configured target institution."""

    name: str
    connector_id: int | None = None
    connector_name: str | None = None
    is_connected: bool = False
    status: str | None = None
    item_ids: list[str] = Field(default_factory=list)
