"""
FinSync: bank accounts, transactions and investments from an aggregation API.

Sync. Normalize. Report.
"""

__version__ = "0.1.0"
__all__ = ["FinSync", "SyncOrchestrator", "SyncResult"]

from finsync.models.sync import SyncResult  # noqa: E402
from finsync.service import FinSync  # noqa: E402
from finsync.sync import SyncOrchestrator  # noqa: E402
