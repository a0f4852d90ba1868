"""
Base store: abstract interface to the relational store.

Upserts replace the whole row on primary-key conflict and are safe to repeat.
They return how many rows the store confirmed writing; callers treat a
shortfall as a failed write even when no exception was raised.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from finsync.models.financial import Account, Transaction


class BaseStore(ABC):
    """Abstract base class for persistence backends."""

    name: str = "base"

    @abstractmethod
    async def upsert_accounts(self, accounts: Sequence[Account]) -> int:
        """Insert or fully replace accounts keyed by id. Returns rows written."""
        ...

    @abstractmethod
    async def upsert_transactions(self, transactions: Sequence[Transaction]) -> int:
        """Insert or fully replace transactions keyed by id. Returns rows written."""
        ...

    @abstractmethod
    async def accounts_by_item(self, item_id: str) -> list[Account]:
        ...

    @abstractmethod
    async def all_accounts(self) -> list[Account]:
        ...

    @abstractmethod
    async def item_ids(self) -> list[str]:
        """Distinct item ids across all stored accounts."""
        ...

    @abstractmethod
    async def transactions(
        self,
        *,
        item_id: str | None = None,
        account_id: str | None = None,
        limit: int | None = None,
    ) -> list[Transaction]:
        """Stored transactions, newest first, optionally filtered and capped."""
        ...

    @abstractmethod
    async def investments(self, item_id: str) -> list[Account]:
        """Accounts of ``item_id`` stored with type ``investment``."""
        ...

    @abstractmethod
    async def ping(self) -> None:
        """Raise StoreUnavailableError when the store cannot be reached."""
        ...

    async def create_schema(self) -> None:
        """Create missing tables. Existing tables are left untouched."""

    async def close(self) -> None:
        """Release connections."""
