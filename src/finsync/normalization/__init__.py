"""Normalization of heterogeneous provider data."""

from finsync.normalization.records import (
    build_account,
    build_investment_account,
    build_transaction,
)
from finsync.normalization.subtypes import (
    CreditFields,
    extract_credit_fields,
    is_credit_card,
    is_investment,
    normalize_subtype,
)

__all__ = [
    "CreditFields",
    "build_account",
    "build_investment_account",
    "build_transaction",
    "extract_credit_fields",
    "is_credit_card",
    "is_investment",
    "normalize_subtype",
]
