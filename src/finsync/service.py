"""
FinSync: the top-level entry point.

The FinSync class wires the aggregation connector, the store and the sync
orchestrator together and answers the read queries the HTTP API and the
CLI expose. ``sync_item`` is the only operation that writes.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from finsync.config import FinSyncConfig
from finsync.connectors.base import BaseConnector
from finsync.connectors.pluggy_connector import PluggyConnector
from finsync.exceptions import ConfigurationError, FetchError, StoreError
from finsync.institutions import resolve_by_connector_name
from finsync.models.financial import Account, Bank, InstitutionStatus, Transaction
from finsync.models.provider import ProviderItem
from finsync.models.report import CategoryReport
from finsync.models.sync import SyncResult
from finsync.normalization import build_investment_account, normalize_subtype
from finsync.reports import build_category_report
from finsync.storage.base import BaseStore
from finsync.storage.sql_store import SQLStore
from finsync.sync import SyncOrchestrator, validate_item_id

logger = logging.getLogger("finsync")

SYNC_EVENTS = frozenset({"item/updated", "item/created", "ITEM_UPDATED"})

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class FinSync:
    """Top-level facade over the sync engine and the stored data.

    Usage::

        from finsync import FinSync

        async with FinSync.from_config("finsync.yaml") as fs:
            result = await fs.sync_item(item_id)
            report = await fs.report(item_id)
    """

    config: FinSyncConfig
    connector: BaseConnector
    store: BaseStore
    log: logging.Logger | None = None
    orchestrator: SyncOrchestrator = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._log = self.log or logger
        self.orchestrator = SyncOrchestrator(
            self.connector,
            self.store,
            max_concurrency=self.config.sync.max_concurrency,
            timeout=self.config.sync.timeout_seconds,
        )

    @classmethod
    def from_config(
        cls,
        config_path: str | None = None,
        *,
        config: FinSyncConfig | None = None,
        **overrides: Any,
    ) -> FinSync:
        """Create a FinSync instance from a config file, a config object or overrides."""
        config = config or FinSyncConfig.load(config_path, **overrides)
        config.validate_database()
        instance = cls(
            config=config,
            connector=PluggyConnector.from_config(config.pluggy),
            store=SQLStore.from_config(config.database),
        )
        logger.info("FinSync initialized with connector %s", instance.connector.name)
        return instance

    async def __aenter__(self) -> FinSync:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.connector.close()
        await self.store.close()

    async def init_db(self) -> None:
        await self.store.create_schema()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def sync_item(self, item_id: str, *, timeout: float | None = None) -> SyncResult:
        """Pull ``item_id`` from the provider into the store. See :class:`SyncOrchestrator`."""
        return await self.orchestrator.sync_item(item_id, timeout=timeout)

    async def handle_webhook(self, payload: dict[str, Any]) -> SyncResult | None:
        """Sync the item named by an item-update notification.

        Returns ``None`` for events that do not concern an item update.
        """
        event = payload.get("event") or payload.get("type")
        item_id = payload.get("itemId") or payload.get("item_id")
        if event not in SYNC_EVENTS or not item_id:
            self._log.debug("Ignoring webhook event %r", event)
            return None
        self._log.info("Webhook %s received for item %s", event, item_id)
        return await self.sync_item(item_id)

    async def connect_token(self, item_id: str | None = None) -> str:
        """Short-lived token for the provider's connect widget."""
        self.config.validate_pluggy()
        if item_id:
            item_id = validate_item_id(item_id)
        return await self.connector.create_connect_token(item_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def accounts(self, item_id: str | None = None, *, refresh: bool = False) -> list[Account]:
        """Stored accounts, optionally scoped to one item.

        With ``refresh`` the name, type, subtype, balance and currency of each
        account are replaced by the provider's live values. An account whose
        details cannot be fetched is returned as stored.
        """
        if item_id:
            stored = await self.store.accounts_by_item(validate_item_id(item_id))
        else:
            stored = await self.store.all_accounts()
        if not refresh or not stored:
            return stored
        return list(await asyncio.gather(*(self._refresh_account(a) for a in stored)))

    async def _refresh_account(self, account: Account) -> Account:
        try:
            live = await self.connector.fetch_account(account.id)
        except (FetchError, ConfigurationError) as e:
            self._log.warning("Could not refresh account %s: %s", account.id, e)
            return account
        return account.model_copy(
            update={
                "name": live.name or account.name,
                "type": account.type if account.is_investment else live.type,
                "subtype": normalize_subtype(live.subtype) or account.subtype,
                "balance": live.balance,
                "currency_code": live.currency_code,
            }
        )

    async def transactions(
        self,
        item_id: str | None = None,
        account_id: str | None = None,
        limit: int | None = None,
    ) -> list[Transaction]:
        """Stored transactions, newest first."""
        if item_id:
            item_id = validate_item_id(item_id)
        if limit is not None and limit < 1:
            raise ValueError("limit must be positive")
        return await self.store.transactions(item_id=item_id, account_id=account_id, limit=limit)

    async def investments(self, item_id: str) -> list[Account]:
        """Investment rows of an item, fetched and stored on first request.

        Provider failures yield an empty list.
        """
        item_id = validate_item_id(item_id)
        stored = await self.store.investments(item_id)
        if stored:
            return stored

        try:
            payloads = await self.orchestrator.investment_payloads(item_id)
        except (FetchError, ConfigurationError) as e:
            self._log.warning("Could not fetch investments for item %s: %s", item_id, e)
            return []

        investments = [build_investment_account(p, item_id) for p in payloads]
        if investments:
            try:
                await self.store.upsert_accounts(investments)
            except StoreError as e:
                self._log.error("Could not save investments for item %s: %s", item_id, e)
        return investments

    async def report(self, item_id: str) -> CategoryReport:
        """Category report over every stored transaction of the item."""
        transactions = await self.store.transactions(item_id=validate_item_id(item_id))
        return build_category_report(transactions)

    async def banks(self) -> list[Bank]:
        """Connected items with their institution names, newest first.

        Item ids come from the store and, when it can list them, the provider.
        Items that cannot be resolved are left out.
        """
        item_ids = await self.store.item_ids()
        try:
            provider_items = await self.connector.fetch_items()
        except (FetchError, ConfigurationError, NotImplementedError) as e:
            self._log.warning("Could not list items from %s: %s", self.connector.name, e)
            provider_items = []

        all_ids = list(dict.fromkeys([*item_ids, *(i.id for i in provider_items)]))
        resolved = await asyncio.gather(*(self._resolve_bank(i) for i in all_ids))

        banks = [b for b in resolved if b is not None]
        banks.sort(key=_created_at, reverse=True)
        return banks

    async def _resolve_bank(self, item_id: str) -> Bank | None:
        try:
            item = await self.connector.fetch_item(item_id)
            connector = await self.connector.fetch_connector(item.connector.id)
        except (FetchError, ConfigurationError) as e:
            self._log.warning("Could not resolve item %s: %s", item_id, e)
            return None
        return Bank(
            item_id=item.id,
            connector_id=connector.id,
            bank_name=connector.name,
            status=item.status,
            created_at=item.created_at,
            last_updated_at=item.updated_at,
        )

    async def connectors(self) -> list[InstitutionStatus]:
        """Connection state of every configured target institution."""
        catalog = await self.connector.fetch_connectors()
        targets = self.config.institutions

        stored_ids = await self.store.item_ids()
        items = await asyncio.gather(*(self._fetch_item_quietly(i) for i in stored_ids))

        by_id = {c.id: c for c in catalog}
        connected: dict[str, list[ProviderItem]] = {}
        for item in items:
            if item is None:
                continue
            known = by_id.get(item.connector.id)
            name = known.name if known else item.connector.name
            target = resolve_by_connector_name(name, targets)
            if target is not None:
                connected.setdefault(target.name, []).append(item)

        statuses = []
        for target in targets:
            match = next((c for c in catalog if resolve_by_connector_name(c.name, [target])), None)
            target_items = connected.get(target.name, [])
            statuses.append(
                InstitutionStatus(
                    name=target.name,
                    connector_id=match.id if match else None,
                    connector_name=match.name if match else None,
                    is_connected=bool(target_items),
                    status=target_items[0].status if target_items else None,
                    item_ids=[i.id for i in target_items],
                )
            )
        return statuses

    async def _fetch_item_quietly(self, item_id: str) -> ProviderItem | None:
        try:
            return await self.connector.fetch_item(item_id)
        except (FetchError, ConfigurationError) as e:
            self._log.warning("Could not fetch item %s: %s", item_id, e)
            return None


def _created_at(bank: Bank) -> datetime:
    if bank.created_at is None:
        return _EPOCH
    if bank.created_at.tzinfo is None:
        return bank.created_at.replace(tzinfo=timezone.utc)
    return bank.created_at
