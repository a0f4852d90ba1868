"""
FinSync configuration management.

Supports loading from YAML files, environment variables, and keyword overrides.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from finsync.exceptions import ConfigurationError
from finsync.institutions import TARGET_INSTITUTIONS, TargetInstitution


class PluggyConfig(BaseModel):
    """Aggregation API credentials and transport settings."""

    client_id: str = Field(default="", description="Pluggy client id")
    client_secret: str = Field(default="", description="Pluggy client secret")
    base_url: str = Field(default="https://api.pluggy.ai")
    timeout: float = Field(default=60.0, gt=0, description="Request timeout in seconds")
    page_size: int = Field(default=500, ge=1, le=500, description="Transactions per page")


class DatabaseConfig(BaseModel):
    """Relational store settings (any SQLAlchemy async URL)."""

    url: str = Field(default="sqlite+aiosqlite:///finsync.db")
    echo: bool = False


class SyncConfig(BaseModel):
    """Sync engine tuning."""

    max_concurrency: int = Field(default=4, ge=1, description="Accounts processed in parallel")
    timeout_seconds: float | None = Field(default=None, gt=0, description="Deadline for one item sync")


class FinSyncConfig(BaseModel):
    """Root configuration for FinSync."""

    pluggy: PluggyConfig = Field(default_factory=PluggyConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    institutions: list[TargetInstitution] = Field(
        default_factory=lambda: [t.model_copy(deep=True) for t in TARGET_INSTITUTIONS]
    )

    @classmethod
    def load(cls, config_path: str | None = None, **overrides: Any) -> FinSyncConfig:
        """Load configuration from file, env vars, and overrides.

        Priority: overrides > env vars > config file > defaults.
        """
        data: dict[str, Any] = {}

        # 1. Load from YAML file if provided
        if config_path:
            path = Path(config_path)
            if path.exists():
                with open(path) as f:
                    data = yaml.safe_load(f) or {}

        # 2. Override from environment variables
        env_client_id = os.environ.get("PLUGGY_CLIENT_ID")
        env_secret = os.environ.get("PLUGGY_CLIENT_SECRET")
        env_base = os.environ.get("PLUGGY_BASE_URL")
        env_db = os.environ.get("FINSYNC_DATABASE_URL") or os.environ.get("DATABASE_URL")
        env_concurrency = os.environ.get("FINSYNC_MAX_CONCURRENCY")

        if env_client_id or env_secret or env_base:
            pluggy = data.get("pluggy", {})
            if env_client_id:
                pluggy["client_id"] = env_client_id
            if env_secret:
                pluggy["client_secret"] = env_secret
            if env_base:
                pluggy["base_url"] = env_base
            data["pluggy"] = pluggy

        if env_db:
            database = data.get("database", {})
            database["url"] = env_db
            data["database"] = database

        if env_concurrency:
            sync = data.get("sync", {})
            sync["max_concurrency"] = int(env_concurrency)
            data["sync"] = sync

        # 3. Apply keyword overrides
        data.update(overrides)

        return cls.model_validate(data)

    def validate_pluggy(self) -> None:
        """Raise ConfigurationError unless API credentials are set."""
        if not self.pluggy.client_id.strip():
            raise ConfigurationError("PLUGGY_CLIENT_ID is not configured")
        if not self.pluggy.client_secret.strip():
            raise ConfigurationError("PLUGGY_CLIENT_SECRET is not configured")

    def validate_database(self) -> None:
        if not self.database.url.strip():
            raise ConfigurationError("FINSYNC_DATABASE_URL is not configured")
