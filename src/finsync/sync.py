"""
Sync orchestrator: pull one connected item from the aggregation API into the store.

For every account of the item the orchestrator fetches the full details and
the complete transaction history, normalizes them and upserts the rows.
Accounts are processed independently: a failure on one is recorded on the
:class:`~finsync.models.sync.SyncResult` and its siblings carry on.
Investments are synced last, on a best-effort basis.

A sync is reported as failed only when accounts were fetched but none of
them could be saved. Anything less is a (possibly partial) success.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import re
import time
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from finsync.connectors.base import BaseConnector
from finsync.exceptions import (
    ConfigurationError,
    FetchError,
    InvalidItemIdError,
    StoreError,
    SyncTimeoutError,
)
from finsync.models.provider import ProviderAccount, ProviderInvestment
from finsync.models.sync import SyncResult, SyncStatus
from finsync.normalization import (
    build_account,
    build_investment_account,
    build_transaction,
    is_investment,
)
from finsync.storage.base import BaseStore

logger = logging.getLogger("finsync.sync")

T = TypeVar("T")

_ITEM_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def validate_item_id(item_id: str | None) -> str:
    """Return the stripped item id, or raise InvalidItemIdError."""
    candidate = (item_id or "").strip()
    if not candidate:
        raise InvalidItemIdError("itemId is required")
    if not _ITEM_ID_RE.match(candidate):
        raise InvalidItemIdError(f"Malformed itemId: {item_id!r}")
    return candidate


class Deadline:
    """A point in time after which awaited calls are abandoned.

    ``Deadline(None)`` never expires.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._expires_at = None if timeout is None else time.monotonic() + timeout

    def remaining(self) -> float | None:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable``, raising ``asyncio.TimeoutError`` past the deadline."""
        remaining = self.remaining()
        if remaining is None:
            return await awaitable
        if remaining <= 0:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise asyncio.TimeoutError("deadline exceeded")
        return await asyncio.wait_for(awaitable, remaining)


@dataclass
class _Lease:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    holders: int = 0


@dataclass
class _AccountOutcome:
    saved: bool = False
    transactions_processed: int = 0
    transactions_saved: int = 0
    errors: list[str] = field(default_factory=list)


class SyncOrchestrator:
    """Synchronize items from a connector into a store.

    Usage::

        orchestrator = SyncOrchestrator(connector, store, max_concurrency=4)
        result = await orchestrator.sync_item("item-id")
        if not result.success:
            ...

    Overlapping syncs of the same item are serialized by a per-item lock.
    """

    def __init__(
        self,
        connector: BaseConnector,
        store: BaseStore,
        *,
        max_concurrency: int = 4,
        timeout: float | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.connector = connector
        self.store = store
        self.max_concurrency = max_concurrency
        self.timeout = timeout
        self._log = log or logger
        self._leases: dict[str, _Lease] = {}

    async def sync_item(self, item_id: str, *, timeout: float | None = None) -> SyncResult:
        """Sync every account, transaction and investment of ``item_id``.

        Raises:
            InvalidItemIdError: ``item_id`` is missing or malformed.
            StoreUnavailableError: the store cannot be reached.
            ConfigurationError: credentials are missing or rejected.
            FetchError: the item's account list could not be fetched.
            SyncTimeoutError: the deadline expired before accounts were fetched.
        """
        item_id = validate_item_id(item_id)
        lease = self._leases.setdefault(item_id, _Lease())
        if lease.lock.locked():
            self._log.info("Sync of item %s already running, waiting for it", item_id)

        lease.holders += 1
        try:
            async with lease.lock:
                deadline = Deadline(timeout if timeout is not None else self.timeout)
                return await self._sync(item_id, deadline)
        finally:
            lease.holders -= 1
            # Waiters are counted in holders.
            if lease.holders == 0:
                del self._leases[item_id]

    async def _sync(self, item_id: str, deadline: Deadline) -> SyncResult:
        result = SyncResult(item_id=item_id)

        try:
            await deadline.run(self.store.ping())
            accounts = await deadline.run(self.connector.fetch_accounts(item_id))
        except asyncio.TimeoutError as e:
            raise SyncTimeoutError(f"Timed out fetching accounts for item {item_id}") from e

        result.accounts_processed = len(accounts)
        self._log.info("Syncing %d accounts for item %s", len(accounts), item_id)

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(payload: ProviderAccount) -> _AccountOutcome:
            async with semaphore:
                return await self._sync_account(item_id, payload, deadline)

        outcomes = await asyncio.gather(*(bounded(a) for a in accounts), return_exceptions=True)

        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
            result.accounts_saved += int(outcome.saved)
            result.transactions_processed += outcome.transactions_processed
            result.transactions_saved += outcome.transactions_saved
            result.errors.extend(outcome.errors)

        await self._sync_investments(item_id, accounts, deadline, result)

        if result.accounts_processed > 0 and result.accounts_saved == 0:
            result.status = SyncStatus.FAILED
            self._log.error(
                "Sync of item %s failed: none of %d accounts saved",
                item_id,
                result.accounts_processed,
            )
        elif result.errors:
            self._log.warning(
                "Sync of item %s completed with %d errors", item_id, len(result.errors)
            )
        else:
            self._log.info(
                "Sync of item %s completed: %d accounts, %d transactions, %d investments",
                item_id,
                result.accounts_saved,
                result.transactions_saved,
                result.investments_saved,
            )
        return result

    async def _sync_account(
        self, item_id: str, payload: ProviderAccount, deadline: Deadline
    ) -> _AccountOutcome:
        outcome = _AccountOutcome()
        account_id = payload.id

        try:
            details = await deadline.run(self.connector.fetch_account(account_id))
            fetched = await deadline.run(self.connector.fetch_transactions(account_id))
            account = build_account(details, item_id)

            try:
                written = await deadline.run(self.store.upsert_accounts([account]))
                if written < 1:
                    raise StoreError("store confirmed no rows")
            except (StoreError, asyncio.TimeoutError) as e:
                outcome.errors.append(f"Account {account_id}: failed to save account ({_describe(e)})")
                return outcome
            outcome.saved = True

            transactions = [build_transaction(t) for t in fetched]
            outcome.transactions_processed = len(transactions)
            if not transactions:
                return outcome

            expected = len({t.id for t in transactions})
            try:
                written = await deadline.run(self.store.upsert_transactions(transactions))
                if written < 1:
                    raise StoreError("store confirmed no rows")
            except (StoreError, asyncio.TimeoutError) as e:
                outcome.errors.append(
                    f"Account {account_id}: failed to save {len(transactions)} transactions "
                    f"({_describe(e)})"
                )
                return outcome

            outcome.transactions_saved = written
            if written < expected:
                outcome.errors.append(
                    f"Account {account_id}: only {written} of {expected} transactions saved"
                )
        except ConfigurationError:
            raise
        except asyncio.TimeoutError:
            outcome.errors.append(f"Account {account_id}: deadline exceeded")
        except FetchError as e:
            outcome.errors.append(f"Account {account_id}: fetch failed ({e})")
        except Exception as e:
            self._log.exception("Unexpected error syncing account %s", account_id)
            outcome.errors.append(f"Account {account_id}: unexpected error ({e})")

        return outcome

    async def _sync_investments(
        self,
        item_id: str,
        accounts: Sequence[ProviderAccount],
        deadline: Deadline,
        result: SyncResult,
    ) -> None:
        try:
            payloads = await self.investment_payloads(item_id, accounts, deadline)
        except Exception as e:
            self._log.warning("Investments for item %s unavailable: %s", item_id, e)
            result.errors.append(f"Investments for item {item_id}: fetch failed ({_describe(e)})")
            return

        rows = [build_investment_account(p, item_id) for p in payloads]
        result.investments_processed = len(rows)
        if not rows:
            return

        try:
            written = await deadline.run(self.store.upsert_accounts(rows))
            if written < 1:
                raise StoreError("store confirmed no rows")
        except Exception as e:
            result.errors.append(
                f"Investments for item {item_id}: failed to save {len(rows)} investments "
                f"({_describe(e)})"
            )
            return
        result.investments_saved = written

    async def investment_payloads(
        self,
        item_id: str,
        accounts: Sequence[ProviderAccount] | None = None,
        deadline: Deadline | None = None,
    ) -> Sequence[ProviderInvestment | ProviderAccount]:
        """Investments of an item, from the dedicated endpoint when the
        connector has one, else the item's accounts with an investment subtype.
        """
        deadline = deadline or Deadline()
        if self.connector.supports_investments:
            try:
                return await deadline.run(self.connector.fetch_investments(item_id))
            except NotImplementedError:
                self._log.debug("%s has no investments endpoint", self.connector.name)
        if accounts is None:
            accounts = await deadline.run(self.connector.fetch_accounts(item_id))
        return [a for a in accounts if is_investment(a.type, a.subtype)]


def _describe(error: BaseException) -> str:
    if isinstance(error, asyncio.TimeoutError):
        return "deadline exceeded"
    return str(error) or type(error).__name__
