"""Tests for configuration loading."""

import pytest

from expense_tracker.config import (
    AppSettings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)
from expense_tracker.services.storage import JsonFileKeyValueStore


@pytest.fixture
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:
    """Tests for settings defaults and environment overrides."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("EXPENSE_TRACKER_STORAGE_STORAGE_KEY", raising=False)
        storage = StorageSettings()
        app = AppSettings()
        assert storage.storage_key == "expense-storage"
        assert storage.auto_backup_key == "expense-auto-backup"
        assert storage.write_attempts == 3
        assert app.default_display_currency == "MYR"
        assert app.backup_version == "1.0.0"

    def test_environment_overrides(self, monkeypatch, tmp_path):
        """Test settings are read from prefixed environment variables."""
        monkeypatch.setenv("EXPENSE_TRACKER_STORAGE_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("EXPENSE_TRACKER_DEFAULT_DISPLAY_CURRENCY", " usd ")
        assert StorageSettings().data_dir == tmp_path
        assert AppSettings().default_display_currency == "USD"

    def test_write_attempts_bounds(self, monkeypatch):
        monkeypatch.setenv("EXPENSE_TRACKER_STORAGE_WRITE_ATTEMPTS", "0")
        with pytest.raises(ValueError):
            StorageSettings()

    def test_file_store_uses_configured_dir(self, monkeypatch, tmp_path, fresh_settings):
        monkeypatch.setenv("EXPENSE_TRACKER_STORAGE_DATA_DIR", str(tmp_path))
        assert JsonFileKeyValueStore().data_dir == tmp_path

    def test_validate_all_settings(self, fresh_settings):
        results = validate_all_settings()
        assert results["storage"] is True
        assert results["app"] is True
