"""
Base connector: abstract interface to a financial-data aggregation API.

The sync engine only talks to this interface. Every call is keyed by a
provider-assigned identifier and fails independently, so one account's
failure can be recorded without aborting its siblings.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from finsync.models.provider import (
        ProviderAccount,
        ProviderConnector,
        ProviderInvestment,
        ProviderItem,
        ProviderTransaction,
    )


class BaseConnector(ABC):
    """Abstract base class for aggregation API clients.

    To add a provider, subclass this and implement the ``fetch_*`` methods.
    Set ``supports_investments`` and override :meth:`fetch_investments` when
    the provider has a dedicated investments endpoint; otherwise the sync
    engine filters the item's accounts for investment subtypes.

    Implementations raise :class:`~finsync.exceptions.FetchError` for failed
    calls and :class:`~finsync.exceptions.ConfigurationError` for missing or
    rejected credentials.
    """

    name: str = "base"
    description: str = "Base connector"
    supports_investments: bool = False

    @abstractmethod
    async def fetch_account(self, account_id: str) -> ProviderAccount:
        """Fetch the full details of one account."""
        ...

    @abstractmethod
    async def fetch_accounts(self, item_id: str) -> list[ProviderAccount]:
        """Fetch every account of an item."""
        ...

    @abstractmethod
    async def fetch_transactions(self, account_id: str) -> list[ProviderTransaction]:
        """Fetch the complete transaction history of an account, all pages."""
        ...

    @abstractmethod
    async def fetch_item(self, item_id: str) -> ProviderItem:
        ...

    @abstractmethod
    async def fetch_connector(self, connector_id: int) -> ProviderConnector:
        ...

    async def fetch_investments(self, item_id: str) -> list[ProviderInvestment]:
        """Fetch investments of an item. Only available when ``supports_investments``."""
        raise NotImplementedError(f"{self.name} does not expose investments")

    async def fetch_items(self) -> list[ProviderItem]:
        """List every item visible to the credentials, when the provider allows it."""
        raise NotImplementedError(f"{self.name} cannot list items")

    async def fetch_connectors(self) -> list[ProviderConnector]:
        """Fetch the provider's connector catalog."""
        raise NotImplementedError(f"{self.name} cannot list connectors")

    async def create_connect_token(self, item_id: str | None = None) -> str:
        """Create a short-lived token for the provider's connect widget."""
        raise NotImplementedError(f"{self.name} does not issue connect tokens")

    @abstractmethod
    async def validate_credentials(self) -> bool:
        """Validate that credentials are correct and the API is reachable."""
        ...

    async def health_check(self) -> dict[str, Any]:
        """Check connector health and connectivity."""
        try:
            valid = await self.validate_credentials()
            return {"connector": self.name, "healthy": valid, "error": None}
        except Exception as e:
            return {"connector": self.name, "healthy": False, "error": str(e)}

    async def close(self) -> None:
        """Release network resources."""
