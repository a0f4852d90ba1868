"""Tests for configuration management."""

from pathlib import Path

import pytest
import yaml

from finsync.config import FinSyncConfig
from finsync.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in (
        "PLUGGY_CLIENT_ID",
        "PLUGGY_CLIENT_SECRET",
        "PLUGGY_BASE_URL",
        "FINSYNC_DATABASE_URL",
        "DATABASE_URL",
        "FINSYNC_MAX_CONCURRENCY",
    ):
        monkeypatch.delenv(var, raising=False)


class TestConfig:
    def test_default_config(self) -> None:
        config = FinSyncConfig()
        assert config.pluggy.base_url == "https://api.pluggy.ai"
        assert config.pluggy.page_size == 500
        assert config.database.url == "sqlite+aiosqlite:///finsync.db"
        assert config.sync.max_concurrency == 4
        assert config.sync.timeout_seconds is None
        assert [t.name for t in config.institutions] == ["Nubank", "Bradesco", "XP", "BTG"]

    def test_default_institutions_are_copies(self) -> None:
        config = FinSyncConfig()
        config.institutions[0].search_terms.append("roxinho")
        assert "roxinho" not in FinSyncConfig().institutions[0].search_terms

    def test_load_from_yaml(self, tmp_path: Path) -> None:
        yaml_content = {
            "pluggy": {"client_id": "yaml-id", "client_secret": "yaml-secret", "page_size": 100},
            "database": {"url": "postgresql+asyncpg://finsync@localhost/finsync"},
            "sync": {"max_concurrency": 2, "timeout_seconds": 30},
            "institutions": [{"name": "Itau", "search_terms": ["itau"]}],
        }
        config_file = tmp_path / "finsync.yaml"
        config_file.write_text(yaml.dump(yaml_content))

        config = FinSyncConfig.load(str(config_file))
        assert config.pluggy.client_id == "yaml-id"
        assert config.pluggy.page_size == 100
        assert config.database.url.startswith("postgresql+asyncpg://")
        assert config.sync.max_concurrency == 2
        assert config.sync.timeout_seconds == 30
        assert [t.name for t in config.institutions] == ["Itau"]

    def test_load_with_overrides(self) -> None:
        config = FinSyncConfig.load(None, sync={"max_concurrency": 1})
        assert config.sync.max_concurrency == 1

    def test_env_var_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_file = tmp_path / "finsync.yaml"
        config_file.write_text(yaml.dump({"pluggy": {"client_id": "yaml-id", "timeout": 15}}))
        monkeypatch.setenv("PLUGGY_CLIENT_ID", "env-id")
        monkeypatch.setenv("PLUGGY_CLIENT_SECRET", "env-secret")
        monkeypatch.setenv("FINSYNC_MAX_CONCURRENCY", "8")

        config = FinSyncConfig.load(str(config_file))
        assert config.pluggy.client_id == "env-id"
        assert config.pluggy.client_secret == "env-secret"
        assert config.pluggy.timeout == 15
        assert config.sync.max_concurrency == 8

    def test_database_url_env_fallback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///fallback.db")
        assert FinSyncConfig.load().database.url == "sqlite+aiosqlite:///fallback.db"

        monkeypatch.setenv("FINSYNC_DATABASE_URL", "sqlite+aiosqlite:///primary.db")
        assert FinSyncConfig.load().database.url == "sqlite+aiosqlite:///primary.db"

    def test_missing_config_file(self) -> None:
        config = FinSyncConfig.load("/nonexistent/finsync.yaml")
        assert config.pluggy.client_id == ""

    def test_validate_pluggy(self) -> None:
        with pytest.raises(ConfigurationError, match="PLUGGY_CLIENT_ID"):
            FinSyncConfig().validate_pluggy()
        with pytest.raises(ConfigurationError, match="PLUGGY_CLIENT_SECRET"):
            FinSyncConfig.load(pluggy={"client_id": "id"}).validate_pluggy()
        FinSyncConfig.load(pluggy={"client_id": "id", "client_secret": "s"}).validate_pluggy()

    def test_validate_database(self) -> None:
        with pytest.raises(ConfigurationError, match="FINSYNC_DATABASE_URL"):
            FinSyncConfig.load(database={"url": " "}).validate_database()

    def test_invalid_values_rejected(self) -> None:
        with pytest.raises(ValueError):
            FinSyncConfig.load(sync={"max_concurrency": 0})
