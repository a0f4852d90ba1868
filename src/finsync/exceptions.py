"""
Exceptions raised by FinSync.

Configuration problems are fatal and never retried by the sync engine.
Fetch and store errors on a single record are caught by the orchestrator
and recorded on the SyncResult instead of propagating.
"""


class FinSyncError(Exception):
    """Base exception for FinSync errors."""


class ConfigurationError(FinSyncError):
    """Raised when credentials or connection settings are missing or invalid."""


class StoreUnavailableError(ConfigurationError):
    """Raised when the persistence store cannot be reached."""


class InvalidItemIdError(FinSyncError, ValueError):
    """Raised when an item id is missing or malformed."""


class FetchError(FinSyncError):
    """Raised when the aggregation API call fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StoreError(FinSyncError):
    """Raised when a read or write against the store fails."""


class SyncTimeoutError(FinSyncError, TimeoutError):
    """Raised when a sync exceeds its deadline before any account is fetched."""
