"""FinSync data models."""

from finsync.models.financial import (
    Account,
    Bank,
    InstitutionStatus,
    Subtype,
    Transaction,
)
from finsync.models.report import CategoryBalance, CategoryReport
from finsync.models.sync import SyncResult, SyncStatus

__all__ = [
    "Account",
    "Bank",
    "CategoryBalance",
    "CategoryReport",
    "InstitutionStatus",
    "Subtype",
    "SyncResult",
    "SyncStatus",
    "Transaction",
]
