"""
Pluggy Connector: accounts, transactions and investments via the Pluggy API.

Authentication: client id + secret are exchanged for an API key
(``POST /auth``) which is then sent as ``X-API-KEY`` on every request.

Pluggy API docs:
  https://docs.pluggy.ai/
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from finsync.connectors.base import BaseConnector
from finsync.exceptions import ConfigurationError, FetchError
from finsync.models.provider import (
    ProviderAccount,
    ProviderConnector,
    ProviderInvestment,
    ProviderItem,
    ProviderTransaction,
)

logger = logging.getLogger("finsync.connectors.pluggy")

_DEFAULT_BASE_URL = "https://api.pluggy.ai"

M = TypeVar("M", bound=BaseModel)


class PluggyConnector(BaseConnector):
    """Read financial data for connected items from Pluggy.

    Usage::

        connector = PluggyConnector(client_id="...", client_secret="...")
        accounts = await connector.fetch_accounts(item_id)
        await connector.close()
    """

    name = "pluggy"
    description = "Bank, credit card and investment data via the Pluggy API"
    supports_investments = True

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        base_url: str = _DEFAULT_BASE_URL,
        timeout: float = 60.0,
        page_size: int = 500,
        log: logging.Logger | None = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.page_size = page_size
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._api_key: str | None = None
        self._http: httpx.AsyncClient | None = None
        self._log = log or logger

    @classmethod
    def from_config(cls, config: Any, log: logging.Logger | None = None) -> PluggyConnector:
        """Build a connector from a :class:`~finsync.config.PluggyConfig`."""
        return cls(
            config.client_id,
            config.client_secret,
            base_url=config.base_url,
            timeout=config.timeout,
            page_size=config.page_size,
            log=log,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create a reusable httpx client."""
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers={"Content-Type": "application/json"},
            )
        return self._http

    async def close(self) -> None:
        """Clean up HTTP client."""
        if self._http and not self._http.is_closed:
            await self._http.aclose()

    # ------------------------------------------------------------------
    # API helpers
    # ------------------------------------------------------------------

    async def _authenticate(self) -> str:
        if not self.client_id or not self.client_secret:
            raise ConfigurationError("Pluggy client_id and client_secret are required")

        client = await self._get_client()
        try:
            resp = await client.post(
                "/auth",
                json={"clientId": self.client_id, "clientSecret": self.client_secret},
            )
        except httpx.HTTPError as e:
            raise FetchError(f"Pluggy auth request failed: {e}") from e

        if resp.status_code in (401, 403):
            raise ConfigurationError("Pluggy rejected the configured client credentials")
        if resp.status_code >= 400:
            raise FetchError(f"Pluggy auth failed: {_error_message(resp)}", resp.status_code)

        try:
            self._api_key = resp.json()["apiKey"]
        except (ValueError, KeyError, TypeError) as e:
            raise FetchError(f"Pluggy auth returned no API key: {_error_message(resp)}", resp.status_code) from e
        self._log.debug("Pluggy: obtained API key")
        return self._api_key

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Make an authenticated request, refreshing an expired API key once."""
        client = await self._get_client()
        had_key = self._api_key is not None
        api_key = self._api_key or await self._authenticate()

        try:
            resp = await client.request(method, path, headers={"X-API-KEY": api_key}, **kwargs)
            if resp.status_code == 401 and had_key:
                self._log.info("Pluggy API key expired, re-authenticating")
                api_key = await self._authenticate()
                resp = await client.request(method, path, headers={"X-API-KEY": api_key}, **kwargs)
        except httpx.HTTPError as e:
            raise FetchError(f"Pluggy request {method} {path} failed: {e}") from e

        # 401 here means a freshly issued key was refused. 403 only concerns this resource.
        if resp.status_code == 401:
            raise ConfigurationError(f"Pluggy rejected the API key on {path}: {_error_message(resp)}")
        if resp.status_code >= 400:
            raise FetchError(
                f"Pluggy API error [{resp.status_code}] on {path}: {_error_message(resp)}",
                resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as e:
            raise FetchError(f"Pluggy returned a non-JSON body on {path}", resp.status_code) from e

    async def _api_get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        return await self._request("GET", path, params=params)

    async def _api_post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", path, json=payload)

    async def _get_all_pages(self, path: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Follow page-number pagination until ``totalPages`` is reached."""
        results: list[dict[str, Any]] = []
        page = 1
        while True:
            data = await self._api_get(path, {**params, "page": page})
            results.extend(data.get("results", []))
            total_pages = data.get("totalPages") or 1
            if page >= total_pages:
                break
            page += 1
        return results

    # ------------------------------------------------------------------
    # Data fetchers
    # ------------------------------------------------------------------

    async def fetch_account(self, account_id: str) -> ProviderAccount:
        data = await self._api_get(f"/accounts/{account_id}")
        return _parse(ProviderAccount, data)

    async def fetch_accounts(self, item_id: str) -> list[ProviderAccount]:
        data = await self._api_get("/accounts", {"itemId": item_id})
        accounts = [_parse(ProviderAccount, a) for a in data.get("results", [])]
        self._log.debug("Pluggy: %d accounts for item %s", len(accounts), item_id)
        return accounts

    async def fetch_transactions(self, account_id: str) -> list[ProviderTransaction]:
        raw = await self._get_all_pages(
            "/transactions",
            {"accountId": account_id, "pageSize": self.page_size},
        )
        transactions = [_parse(ProviderTransaction, t) for t in raw]
        self._log.debug("Pluggy: %d transactions for account %s", len(transactions), account_id)
        return transactions

    async def fetch_item(self, item_id: str) -> ProviderItem:
        data = await self._api_get(f"/items/{item_id}")
        return _parse(ProviderItem, data)

    async def fetch_items(self) -> list[ProviderItem]:
        data = await self._api_get("/items")
        return [_parse(ProviderItem, i) for i in data.get("results", [])]

    async def fetch_connector(self, connector_id: int) -> ProviderConnector:
        data = await self._api_get(f"/connectors/{connector_id}")
        return _parse(ProviderConnector, data)

    async def fetch_connectors(self) -> list[ProviderConnector]:
        data = await self._api_get("/connectors")
        return [_parse(ProviderConnector, c) for c in data.get("results", [])]

    async def fetch_investments(self, item_id: str) -> list[ProviderInvestment]:
        raw = await self._get_all_pages(
            "/investments",
            {"itemId": item_id, "pageSize": self.page_size},
        )
        return [_parse(ProviderInvestment, i) for i in raw]

    async def create_connect_token(self, item_id: str | None = None) -> str:
        payload: dict[str, Any] = {}
        if item_id:
            payload["itemId"] = item_id
        data = await self._api_post("/connect_token", payload)
        return data.get("accessToken", "")

    # ------------------------------------------------------------------
    # Auth & health
    # ------------------------------------------------------------------

    async def validate_credentials(self) -> bool:
        """Validate Pluggy API credentials."""
        if not all([self.client_id, self.client_secret]):
            return False
        try:
            await self._authenticate()
            return True
        except (ConfigurationError, FetchError) as e:
            self._log.warning("Pluggy credential validation failed: %s", e)
            return False


def _parse(model: type[M], data: Any) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise FetchError(f"Malformed {model.__name__} payload from Pluggy: {e}") from e


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)
