"""Tests for settings loading and the startup configuration check."""

import pytest

from household_ledger.config import get_settings, validate_all_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """No .env file and no ledger variables from the outer environment."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "STORAGE_BACKEND",
        "DATA_FILE",
        "MAX_ITEM_AMOUNT",
        "GOOGLE_SHEETS_CREDENTIALS_PATH",
        "GOOGLE_SHEETS_SPREADSHEET_ID",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestValidateAllSettings:

    def test_memory_backend_needs_no_google_config(self):
        assert validate_all_settings() == {"app": True}

    def test_sheets_backend_without_config(self, monkeypatch):
        """Missing spreadsheet id and credentials are reported, not raised."""
        monkeypatch.setenv("STORAGE_BACKEND", "google_sheets")
        results = validate_all_settings()
        assert results["app"] is True
        assert results["google_sheets"] is False
        assert "spreadsheet_id" in results["google_sheets_error"]

    def test_sheets_backend_configured(self, monkeypatch, tmp_path):
        credentials = tmp_path / "credentials.json"
        credentials.write_text("{}")
        monkeypatch.setenv("STORAGE_BACKEND", "google_sheets")
        monkeypatch.setenv("GOOGLE_SHEETS_CREDENTIALS_PATH", str(credentials))
        monkeypatch.setenv("GOOGLE_SHEETS_SPREADSHEET_ID", "sheet-123")
        assert validate_all_settings() == {"app": True, "google_sheets": True}

    def test_invalid_app_settings(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "postgres")
        results = validate_all_settings()
        assert results["app"] is False
        assert "storage_backend" in results["app_error"]

    def test_env_file_is_read(self, tmp_path):
        (tmp_path / ".env").write_text("MAX_ITEM_AMOUNT=250\n")
        assert get_settings().app.max_item_amount == 250.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
