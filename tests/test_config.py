"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from spendwise.config import (
    RemoteSettings,
    SessionSettings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)


class TestSettings:
    """Tests for the per-concern settings classes."""

    def test_defaults(self):
        assert SessionSettings().guest_data_ttl_days == 7
        assert RemoteSettings().soft_delete is True

    def test_environment_prefix(self, monkeypatch):
        monkeypatch.setenv("SPENDWISE_SESSION_GUEST_DATA_TTL_DAYS", "3")
        monkeypatch.setenv("SPENDWISE_STORAGE_BACKEND", " FILE ")
        assert SessionSettings().guest_data_ttl_days == 3
        assert StorageSettings().backend == "file"

    def test_rejects_unknown_backend(self):
        with pytest.raises(ValidationError):
            StorageSettings(backend="sqlite")

    def test_rejects_zero_ttl(self):
        with pytest.raises(ValidationError):
            SessionSettings(guest_data_ttl_days=0)

    def test_validate_all_reports_failures(self, monkeypatch):
        monkeypatch.setenv("SPENDWISE_STORAGE_BACKEND", "sqlite")
        get_settings.cache_clear()
        try:
            results = validate_all_settings()
        finally:
            get_settings.cache_clear()

        assert results["remote"] is True
        assert results["storage"] is False
        assert "storage_error" in results
