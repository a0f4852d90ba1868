"""
Category spending report.

Totals are summed as ``Decimal`` built from the string form of each amount,
then rounded half away from zero to cents, so ``-75.005`` becomes ``-75.01``.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from finsync.models.financial import Transaction
from finsync.models.report import CategoryBalance, CategoryReport

OTHER_CATEGORY = "Other"

_CENTS = Decimal("0.01")


def build_category_report(transactions: Iterable[Transaction]) -> CategoryReport:
    """Group transactions by category and total their signed amounts.

    Transactions without a category are reported under ``"Other"``. The
    result is sorted ascending by balance (largest outflow first), ties by
    category name. ``start_date`` is the earliest transaction date, or
    ``None`` for an empty input.
    """
    totals: dict[str, Decimal] = {}
    start_date = None

    for txn in transactions:
        category = (txn.category or "").strip() or OTHER_CATEGORY
        totals[category] = totals.get(category, Decimal("0")) + Decimal(str(txn.amount))
        if start_date is None or txn.date < start_date:
            start_date = txn.date

    balances = [
        CategoryBalance(
            category=category,
            balance=float(total.quantize(_CENTS, rounding=ROUND_HALF_UP)),
        )
        for category, total in totals.items()
    ]
    balances.sort(key=lambda b: (b.balance, b.category))

    return CategoryReport(category_balances=balances, start_date=start_date)
