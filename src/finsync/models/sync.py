"""
Sync result model: per-invocation outcome of an item synchronization.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class SyncStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


class SyncResult(BaseModel):
    """Counts attempted vs. saved, plus the ordered per-record errors.

    A ``completed`` result with errors is a partial sync. ``failed`` is only
    reported when accounts were fetched but none could be saved.
    """

    item_id: str
    status: SyncStatus = SyncStatus.COMPLETED
    accounts_processed: int = 0
    accounts_saved: int = 0
    transactions_processed: int = 0
    transactions_saved: int = 0
    investments_processed: int = 0
    investments_saved: int = 0
    errors: list[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status == SyncStatus.COMPLETED

    @property
    def is_partial(self) -> bool:
        return self.success and bool(self.errors)

    def counts(self) -> dict[str, int]:
        """Counts only, for comparing two runs of the same item."""
        return self.model_dump(exclude={"item_id", "status", "errors"})
