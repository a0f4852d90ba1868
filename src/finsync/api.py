"""FastAPI application exposing FinSync over HTTP.

Errors are mapped to HTTP responses with a consistent body::

    {"error": "Short description", "details": "Underlying message"}

Usage::

    uvicorn finsync.api:create_app --factory
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, Body, FastAPI, Query, Request, status
from fastapi.responses import JSONResponse

from finsync import __version__
from finsync.config import FinSyncConfig
from finsync.exceptions import (
    ConfigurationError,
    FetchError,
    InvalidItemIdError,
    StoreError,
    SyncTimeoutError,
)
from finsync.service import FinSync

logger = logging.getLogger("finsync.api")

router = APIRouter(prefix="/api")


def _finsync(request: Request) -> FinSync:
    return request.app.state.finsync


@router.get("/accounts")
async def list_accounts(
    request: Request,
    item_id: str | None = Query(default=None, alias="itemId"),
    refresh: bool = False,
) -> dict[str, Any]:
    accounts = await _finsync(request).accounts(item_id, refresh=refresh)
    return {"accounts": [a.model_dump(mode="json") for a in accounts]}


@router.get("/transactions")
async def list_transactions(
    request: Request,
    item_id: str | None = Query(default=None, alias="itemId"),
    account_id: str | None = Query(default=None, alias="accountId"),
    limit: int | None = Query(default=None, ge=1),
) -> dict[str, Any]:
    transactions = await _finsync(request).transactions(item_id, account_id, limit)
    return {"transactions": [t.model_dump(mode="json") for t in transactions]}


@router.get("/banks")
async def list_banks(request: Request) -> dict[str, Any]:
    banks = await _finsync(request).banks()
    return {"banks": [b.model_dump(mode="json") for b in banks]}


@router.get("/connectors")
async def list_connectors(request: Request) -> dict[str, Any]:
    statuses = await _finsync(request).connectors()
    return {"connectors": [s.model_dump(mode="json") for s in statuses]}


@router.get("/investments")
async def list_investments(
    request: Request,
    item_id: str | None = Query(default=None, alias="itemId"),
) -> dict[str, Any]:
    investments = await _finsync(request).investments(item_id or "")
    return {"investments": [i.model_dump(mode="json") for i in investments]}


@router.get("/report")
async def category_report(
    request: Request,
    item_id: str | None = Query(default=None, alias="itemId"),
) -> dict[str, Any]:
    report = await _finsync(request).report(item_id or "")
    return report.model_dump(mode="json")


@router.post("/items")
async def sync_item(
    request: Request,
    payload: dict[str, Any] = Body(default_factory=dict),
) -> JSONResponse:
    item_id = payload.get("itemId") or payload.get("item_id") or ""
    result = await _finsync(request).sync_item(item_id)
    code = status.HTTP_200_OK if result.success else status.HTTP_500_INTERNAL_SERVER_ERROR
    return JSONResponse(status_code=code, content=result.model_dump(mode="json"))


@router.post("/webhook")
async def webhook(
    request: Request,
    payload: dict[str, Any] = Body(default_factory=dict),
) -> dict[str, Any]:
    result = await _finsync(request).handle_webhook(payload)
    response: dict[str, Any] = {"received": True}
    if result is not None:
        response["sync"] = result.model_dump(mode="json")
    return response


@router.post("/connect-token")
async def connect_token(
    request: Request,
    payload: dict[str, Any] = Body(default_factory=dict),
) -> dict[str, str]:
    token = await _finsync(request).connect_token(payload.get("itemId"))
    return {"accessToken": token}


# =============================================================================
# Exception handlers
# =============================================================================


def _error(code: int, error: str, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=code, content={"error": error, "details": str(exc)})


async def _invalid_item_id(request: Request, exc: Exception) -> JSONResponse:
    return _error(status.HTTP_400_BAD_REQUEST, "Invalid itemId", exc)


async def _invalid_value(request: Request, exc: Exception) -> JSONResponse:
    return _error(status.HTTP_400_BAD_REQUEST, "Invalid request", exc)


async def _configuration(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Configuration error on %s: %s", request.url.path, exc)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Service is misconfigured", exc)


async def _store(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Store error on %s: %s", request.url.path, exc)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Database error", exc)


async def _fetch(request: Request, exc: Exception) -> JSONResponse:
    logger.warning("Provider error on %s: %s", request.url.path, exc)
    return _error(status.HTTP_502_BAD_GATEWAY, "Aggregation provider error", exc)


async def _timeout(request: Request, exc: Exception) -> JSONResponse:
    return _error(status.HTTP_504_GATEWAY_TIMEOUT, "Sync timed out", exc)


def setup_exception_handlers(app: FastAPI) -> None:
    """Map FinSync exceptions to HTTP responses."""
    app.add_exception_handler(InvalidItemIdError, _invalid_item_id)
    app.add_exception_handler(ValueError, _invalid_value)
    app.add_exception_handler(ConfigurationError, _configuration)
    app.add_exception_handler(StoreError, _store)
    app.add_exception_handler(FetchError, _fetch)
    app.add_exception_handler(SyncTimeoutError, _timeout)


def create_app(
    config: FinSyncConfig | None = None,
    *,
    finsync: FinSync | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    A FinSync instance is built from ``config`` (or the environment) on
    startup and closed on shutdown. Pass ``finsync`` to serve an existing one.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        instance = finsync or FinSync.from_config(config=config)
        app.state.finsync = instance
        logger.info("FinSync API started")
        try:
            yield
        finally:
            await instance.aclose()
            logger.info("FinSync API stopped")

    app = FastAPI(
        title="FinSync",
        version=__version__,
        description="Bank account, transaction and investment sync over the Pluggy API",
        lifespan=lifespan,
    )
    setup_exception_handlers(app)
    app.include_router(router)
    return app
