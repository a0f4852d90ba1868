"""
Conversion of provider payloads into the rows FinSync persists.
"""

from __future__ import annotations

from finsync.models.financial import INVESTMENT_TYPE, Account, Subtype, Transaction
from finsync.models.provider import ProviderAccount, ProviderInvestment, ProviderTransaction
from finsync.normalization.subtypes import extract_credit_fields, normalize_subtype


def build_account(payload: ProviderAccount, item_id: str) -> Account:
    """Merge provider fields with the normalized subtype and credit data."""
    subtype = normalize_subtype(payload.subtype)
    account = Account(
        id=payload.id,
        item_id=payload.item_id or item_id,
        name=payload.name or payload.marketing_name,
        type=payload.type,
        subtype=subtype or None,
        balance=payload.balance,
        currency_code=payload.currency_code,
    )
    if subtype == Subtype.CREDIT_CARD.value:
        credit = extract_credit_fields(payload)
        account.credit_limit = credit.credit_limit
        account.available_credit = credit.available_credit
        account.current_invoice = credit.current_invoice
    return account


def build_investment_account(
    payload: ProviderInvestment | ProviderAccount, item_id: str
) -> Account:
    """Store a holding as an account row with its type forced to investment."""
    subtype = normalize_subtype(payload.type) or normalize_subtype(payload.subtype)
    return Account(
        id=payload.id,
        item_id=payload.item_id or item_id,
        name=payload.name,
        type=INVESTMENT_TYPE,
        subtype=subtype or Subtype.INVESTMENT.value,
        balance=payload.balance,
        currency_code=payload.currency_code,
    )


def build_transaction(payload: ProviderTransaction) -> Transaction:
    return Transaction(
        id=payload.id,
        account_id=payload.account_id,
        amount=payload.amount,
        date=payload.date,
        category=payload.category,
        description=payload.description,
        currency_code=payload.currency_code,
        balance=payload.balance,
        status=payload.status,
        type=payload.type,
        provider_code=payload.provider_code,
        payment_data=payload.payment_data,
        merchant=payload.merchant,
    )
