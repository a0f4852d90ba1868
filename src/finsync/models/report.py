"""
Spending report models.
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field


class CategoryBalance(BaseModel):
    category: str
    balance: float


class CategoryReport(BaseModel):
    """Per-category totals sorted ascending (largest outflow first)."""

    category_balances: list[CategoryBalance] = Field(default_factory=list)
    start_date: date | None = None

    def balance_for(self, category: str) -> float | None:
        for entry in self.category_balances:
            if entry.category == category:
                return entry.balance
        return None
