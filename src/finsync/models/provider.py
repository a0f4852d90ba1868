"""
Provider payload models: the raw shapes returned by the aggregation API.

Providers expose the same data under different keys (``creditData`` vs
``credit_data``, ``limit`` vs ``creditLimit``). Every alternative is declared
here as an optional field so the normalizer can apply its priority order on
typed attributes instead of probing dictionaries.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Any

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field


class _Payload(BaseModel):
    """Lenient base: accepts camelCase or snake_case, ignores unknown keys."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def _coerce_date(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and len(value) >= 10:
        return date.fromisoformat(value[:10])
    return value


class CreditData(_Payload):
    """Nested credit-card block of an account payload."""

    total_credit_limit: float | None = Field(
        default=None, validation_alias=AliasChoices("totalCreditLimit", "total_credit_limit")
    )
    limit: float | None = None
    available_credit_limit: float | None = Field(
        default=None, validation_alias=AliasChoices("availableCreditLimit", "available_credit_limit")
    )
    available_credit: float | None = Field(
        default=None, validation_alias=AliasChoices("availableCredit", "available_credit")
    )
    available: float | None = None
    balance: float | None = None
    level: str | None = None
    brand: str | None = None
    minimum_payment: float | None = Field(
        default=None, validation_alias=AliasChoices("minimumPayment", "minimum_payment")
    )


class ProviderAccount(_Payload):
    """An account as returned by ``GET /accounts``."""

    id: str
    item_id: str | None = Field(default=None, validation_alias=AliasChoices("itemId", "item_id"))
    name: str | None = None
    marketing_name: str | None = Field(
        default=None, validation_alias=AliasChoices("marketingName", "marketing_name")
    )
    number: str | None = None
    type: str | None = None
    subtype: str | None = None
    balance: float | None = None
    currency_code: str | None = Field(
        default=None, validation_alias=AliasChoices("currencyCode", "currency_code")
    )
    credit_data: CreditData | None = Field(
        default=None, validation_alias=AliasChoices("creditData", "credit_data")
    )
    credit_limit: float | None = Field(
        default=None, validation_alias=AliasChoices("creditLimit", "credit_limit")
    )
    limit: float | None = None
    available_credit: float | None = Field(
        default=None, validation_alias=AliasChoices("availableCredit", "available_credit")
    )
    available: float | None = None


class DocumentNumber(_Payload):
    type: str | None = None  # CPF or CNPJ
    value: str | None = None


class PaymentParty(_Payload):
    """Payer or receiver of a payment."""

    document_number: DocumentNumber | None = Field(
        default=None, validation_alias=AliasChoices("documentNumber", "document_number")
    )
    name: str | None = None
    account_number: str | None = Field(
        default=None, validation_alias=AliasChoices("accountNumber", "account_number")
    )
    branch_number: str | None = Field(
        default=None, validation_alias=AliasChoices("branchNumber", "branch_number")
    )
    routing_number: str | None = Field(
        default=None, validation_alias=AliasChoices("routingNumber", "routing_number")
    )


class PaymentData(_Payload):
    payer: PaymentParty | None = None
    receiver: PaymentParty | None = None
    payment_method: str | None = Field(
        default=None, validation_alias=AliasChoices("paymentMethod", "payment_method")
    )
    reference_number: str | None = Field(
        default=None, validation_alias=AliasChoices("referenceNumber", "reference_number")
    )
    reason: str | None = None


class Merchant(_Payload):
    name: str | None = None
    business_name: str | None = Field(
        default=None, validation_alias=AliasChoices("businessName", "business_name")
    )
    cnpj: str | None = None
    cnae: str | None = None
    category: str | None = None


class ProviderTransaction(_Payload):
    """A transaction as returned by ``GET /transactions``."""

    id: str
    account_id: str = Field(validation_alias=AliasChoices("accountId", "account_id"))
    amount: float
    date: Annotated[date, BeforeValidator(_coerce_date)]
    description: str | None = None
    category: str | None = None
    currency_code: str | None = Field(
        default=None, validation_alias=AliasChoices("currencyCode", "currency_code")
    )
    balance: float | None = None
    status: str | None = None
    type: str | None = None
    provider_code: str | None = Field(
        default=None, validation_alias=AliasChoices("providerCode", "provider_code")
    )
    payment_data: PaymentData | None = Field(
        default=None, validation_alias=AliasChoices("paymentData", "payment_data")
    )
    merchant: Merchant | None = None


class ProviderConnector(_Payload):
    """A connector (institution integration) from the provider catalog."""

    id: int
    name: str
    type: str | None = None
    country: str | None = None


class ProviderItem(_Payload):
    """A connected item: one user login at one institution."""

    id: str
    connector: ProviderConnector
    status: str | None = None
    execution_status: str | None = Field(
        default=None, validation_alias=AliasChoices("executionStatus", "execution_status")
    )
    created_at: datetime | None = Field(
        default=None, validation_alias=AliasChoices("createdAt", "created_at")
    )
    updated_at: datetime | None = Field(
        default=None, validation_alias=AliasChoices("updatedAt", "updated_at")
    )


class ProviderInvestment(_Payload):
    """A holding returned by ``GET /investments``."""

    id: str
    item_id: str | None = Field(default=None, validation_alias=AliasChoices("itemId", "item_id"))
    name: str | None = None
    type: str | None = None
    subtype: str | None = None
    balance: float | None = None
    currency_code: str | None = Field(
        default=None, validation_alias=AliasChoices("currencyCode", "currency_code")
    )
