"""Shared fixtures: an in-memory SQLite store, a scripted connector and a dict-backed store."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from finsync.connectors.base import BaseConnector
from finsync.exceptions import FetchError, StoreError, StoreUnavailableError
from finsync.models.financial import INVESTMENT_TYPE, Account, Transaction
from finsync.models.provider import (
    ProviderAccount,
    ProviderConnector,
    ProviderInvestment,
    ProviderItem,
    ProviderTransaction,
)
from finsync.storage.base import BaseStore
from finsync.storage.sql_store import SQLStore

ITEM_ID = "item-nubank-1"

MOCK_ACCOUNTS: list[dict[str, Any]] = [
    {
        "id": "acc-checking",
        "itemId": ITEM_ID,
        "name": "Conta Corrente",
        "type": "BANK",
        "subtype": "CHECKING_ACCOUNT",
        "balance": 1520.35,
        "currencyCode": "BRL",
    },
    {
        "id": "acc-card",
        "itemId": ITEM_ID,
        "name": "Nubank Ultravioleta",
        "type": "CREDIT",
        "subtype": "CREDIT_CARD",
        "balance": 845.90,
        "currencyCode": "BRL",
        "creditData": {"totalCreditLimit": 5000.0, "availableCreditLimit": 4154.10, "balance": -845.90},
    },
    {
        "id": "acc-savings",
        "itemId": ITEM_ID,
        "name": "Caixinha",
        "type": "BANK",
        "subtype": "savings account",
        "balance": 10000.0,
        "currencyCode": "BRL",
    },
]

MOCK_TRANSACTIONS: dict[str, list[dict[str, Any]]] = {
    "acc-checking": [
        {
            "id": "txn-1",
            "accountId": "acc-checking",
            "amount": -50.0,
            "date": "2025-01-10T00:00:00.000Z",
            "description": "iFood",
            "category": "Food",
            "status": "POSTED",
            "type": "DEBIT",
        },
        {
            "id": "txn-2",
            "accountId": "acc-checking",
            "amount": 3500.0,
            "date": "2025-01-05T00:00:00.000Z",
            "description": "Salario",
            "category": None,
            "type": "CREDIT",
        },
    ],
    "acc-card": [
        {
            "id": "txn-3",
            "accountId": "acc-card",
            "amount": -25.01,
            "date": "2025-01-12",
            "description": "Padaria",
            "category": "Food",
            "merchant": {"name": "Padaria Real", "businessName": "Padaria Real LTDA", "cnpj": "12345678000190"},
        },
    ],
    "acc-savings": [],
}


class FakeConnector(BaseConnector):
    """Connector serving canned payloads, with per-account failure injection."""

    name = "fake"

    def __init__(
        self,
        accounts: Sequence[dict[str, Any]] = MOCK_ACCOUNTS,
        transactions: dict[str, list[dict[str, Any]]] | None = None,
        *,
        investments: Sequence[dict[str, Any]] | None = None,
        items: Sequence[dict[str, Any]] = (),
        connectors: Sequence[dict[str, Any]] = (),
        delay: float = 0.0,
    ) -> None:
        self.accounts = [ProviderAccount.model_validate(a) for a in accounts]
        self.transactions = MOCK_TRANSACTIONS if transactions is None else transactions
        self.investments = investments
        self.supports_investments = investments is not None
        self.items = {i["id"]: ProviderItem.model_validate(i) for i in items}
        self.connectors = [ProviderConnector.model_validate(c) for c in connectors]
        self.delay = delay
        self.fail_accounts_list = False
        self.fail_investments = False
        self.failing_details: set[str] = set()
        self.slow_transactions: set[str] = set()
        self.in_flight = 0
        self.peak_in_flight = 0
        self.closed = False

    async def fetch_accounts(self, item_id: str) -> list[ProviderAccount]:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_accounts_list:
            raise FetchError("Pluggy API error [500] on /accounts", 500)
        return list(self.accounts)

    async def fetch_account(self, account_id: str) -> ProviderAccount:
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0.01)
            if account_id in self.failing_details:
                raise FetchError(f"Pluggy API error [500] on /accounts/{account_id}", 500)
            return next(a for a in self.accounts if a.id == account_id)
        finally:
            self.in_flight -= 1

    async def fetch_transactions(self, account_id: str) -> list[ProviderTransaction]:
        if account_id in self.slow_transactions:
            await asyncio.sleep(5)
        return [ProviderTransaction.model_validate(t) for t in self.transactions.get(account_id, [])]

    async def fetch_item(self, item_id: str) -> ProviderItem:
        if item_id not in self.items:
            raise FetchError(f"Item {item_id} not found", 404)
        return self.items[item_id]

    async def fetch_items(self) -> list[ProviderItem]:
        return list(self.items.values())

    async def fetch_connector(self, connector_id: int) -> ProviderConnector:
        for connector in self.connectors:
            if connector.id == connector_id:
                return connector
        raise FetchError(f"Connector {connector_id} not found", 404)

    async def fetch_connectors(self) -> list[ProviderConnector]:
        return list(self.connectors)

    async def fetch_investments(self, item_id: str) -> list[ProviderInvestment]:
        if self.fail_investments:
            raise FetchError("Pluggy API error [403] on /investments", 403)
        return [ProviderInvestment.model_validate(i) for i in self.investments or []]

    async def create_connect_token(self, item_id: str | None = None) -> str:
        return f"token-for-{item_id or 'new'}"

    async def validate_credentials(self) -> bool:
        return True

    async def close(self) -> None:
        self.closed = True


class MemoryStore(BaseStore):
    """Dict-backed store with write-failure injection."""

    name = "memory"

    def __init__(self) -> None:
        self.accounts: dict[str, Account] = {}
        self.txns: dict[str, Transaction] = {}
        self.rejected_ids: set[str] = set()
        self.dropped_ids: set[str] = set()
        self.reject_transactions = False
        self.reachable = True
        self.closed = False

    async def upsert_accounts(self, accounts: Sequence[Account]) -> int:
        written = 0
        for account in accounts:
            if account.id in self.rejected_ids:
                raise StoreError(f"permission denied for table accounts ({account.id})")
            if account.id in self.dropped_ids:
                continue
            self.accounts[account.id] = account
            written += 1
        return written

    async def upsert_transactions(self, transactions: Sequence[Transaction]) -> int:
        if self.reject_transactions:
            raise StoreError("permission denied for table transactions")
        for txn in transactions:
            self.txns[txn.id] = txn
        return len({t.id for t in transactions})

    async def accounts_by_item(self, item_id: str) -> list[Account]:
        return sorted((a for a in self.accounts.values() if a.item_id == item_id), key=lambda a: a.id)

    async def all_accounts(self) -> list[Account]:
        return sorted(self.accounts.values(), key=lambda a: (a.item_id, a.id))

    async def item_ids(self) -> list[str]:
        return sorted({a.item_id for a in self.accounts.values()})

    async def transactions(
        self,
        *,
        item_id: str | None = None,
        account_id: str | None = None,
        limit: int | None = None,
    ) -> list[Transaction]:
        rows = list(self.txns.values())
        if item_id:
            owned = {a.id for a in self.accounts.values() if a.item_id == item_id}
            rows = [t for t in rows if t.account_id in owned]
        if account_id:
            rows = [t for t in rows if t.account_id == account_id]
        rows.sort(key=lambda t: t.id)
        rows.sort(key=lambda t: t.date, reverse=True)
        return rows[:limit] if limit is not None else rows

    async def investments(self, item_id: str) -> list[Account]:
        return [a for a in await self.accounts_by_item(item_id) if a.type == INVESTMENT_TYPE]

    async def ping(self) -> None:
        if not self.reachable:
            raise StoreUnavailableError("Database is unreachable: connection refused")

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest_asyncio.fixture
async def sql_store() -> AsyncIterator[SQLStore]:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    store = SQLStore(engine=engine)
    await store.create_schema()
    yield store
    await store.close()
