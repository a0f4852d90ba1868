"""Connectors package: aggregation API integrations."""
from finsync.connectors.base import BaseConnector
from finsync.connectors.pluggy_connector import PluggyConnector

__all__ = [
    "BaseConnector",
    "PluggyConnector",
]
