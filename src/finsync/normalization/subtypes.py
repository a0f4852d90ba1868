"""
Account subtype normalization and credit-card field extraction.

Providers spell the same subtype many ways (``CREDIT_CARD``,
``credit_card_account``, ``Credit Card``). Everything is folded to a small
canonical vocabulary before it is stored or compared.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from finsync.models.financial import INVESTMENT_TYPE, Subtype

if TYPE_CHECKING:
    from finsync.models.provider import ProviderAccount

_SEPARATORS = re.compile(r"[\s\-.]+")

# First match wins; keys are folded forms.
_SUBTYPE_ALIASES: dict[str, Subtype] = {
    "credit_card": Subtype.CREDIT_CARD,
    "credit_card_account": Subtype.CREDIT_CARD,
    "checking": Subtype.CHECKING,
    "checking_account": Subtype.CHECKING,
    "savings": Subtype.SAVINGS,
    "savings_account": Subtype.SAVINGS,
    "investment": Subtype.INVESTMENT,
    "brokerage": Subtype.INVESTMENT,
    "mutual_fund": Subtype.INVESTMENT,
}


def fold(raw: str | None) -> str:
    """Lower-case, trim and collapse separators to underscores."""
    if not raw:
        return ""
    return _SEPARATORS.sub("_", raw.strip().lower()).strip("_")


def normalize_subtype(raw: str | None) -> str:
    """Map a raw provider subtype to its canonical value.

    Known variants map to a :class:`Subtype` value. Unknown subtypes are
    returned folded but otherwise unchanged. ``None`` or empty input yields
    ``""``, which never matches a specific subtype.

    The function is idempotent: ``normalize_subtype(normalize_subtype(x))``
    equals ``normalize_subtype(x)``.
    """
    folded = fold(raw)
    canonical = _SUBTYPE_ALIASES.get(folded)
    return canonical.value if canonical else folded


def is_credit_card(raw: str | None) -> bool:
    return normalize_subtype(raw) == Subtype.CREDIT_CARD.value


def is_investment(raw_type: str | None, raw_subtype: str | None) -> bool:
    """True when either the account type or subtype normalizes to investment."""
    return (
        normalize_subtype(raw_type) == INVESTMENT_TYPE
        or normalize_subtype(raw_subtype) == Subtype.INVESTMENT.value
    )


@dataclass(frozen=True)
class CreditFields:
    """Credit data extracted from an account payload. ``None`` means unknown."""

    credit_limit: float | None = None
    available_credit: float | None = None
    current_invoice: float | None = None


def _first_present(*values: float | None) -> float | None:
    for value in values:
        if value is not None:
            return value
    return None


def extract_credit_fields(account: ProviderAccount) -> CreditFields:
    """Pull credit limit, available credit and current invoice from a payload.

    Each field is read from a fixed priority list of locations, nested
    ``credit_data`` first. The invoice falls back to the account balance only
    for credit cards; a checking balance is never read as an invoice. No
    value is guessed when the provider does not supply one.
    """
    credit = account.credit_data

    credit_limit = _first_present(
        credit.total_credit_limit if credit else None,
        credit.limit if credit else None,
        account.credit_limit,
        account.limit,
    )
    available_credit = _first_present(
        credit.available_credit_limit if credit else None,
        credit.available_credit if credit else None,
        credit.available if credit else None,
        account.available_credit,
        account.available,
    )

    current_invoice: float | None = None
    if credit is not None and credit.balance is not None:
        current_invoice = abs(credit.balance)
    elif is_credit_card(account.subtype) and account.balance is not None:
        current_invoice = abs(account.balance)

    return CreditFields(
        credit_limit=credit_limit,
        available_credit=available_credit,
        current_invoice=current_invoice,
    )
