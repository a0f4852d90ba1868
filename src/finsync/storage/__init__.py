"""Persistence backends."""

from finsync.storage.base import BaseStore
from finsync.storage.sql_store import SQLStore

__all__ = ["BaseStore", "SQLStore"]
