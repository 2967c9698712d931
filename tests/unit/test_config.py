"""Tests for settings validation."""

import pytest

from supply_sentinel.common.config import SentinelSettings


SECURE = {"api_key": "a" * 48, "audit_key": "b" * 48}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("ENVIRONMENT", "API_KEY", "AUDIT_KEY", "LLM_API_KEY", "SCAN_ROW_LIMIT"):
        monkeypatch.delenv(f"SENTINEL_{name}", raising=False)


class TestValidateForProduction:
    def test_production_with_defaults_raises(self):
        settings = SentinelSettings(environment="production")
        with pytest.raises(RuntimeError, match="SENTINEL_API_KEY"):
            settings.validate_for_production()

    def test_production_with_default_audit_key_raises(self):
        settings = SentinelSettings(environment="staging", api_key="x" * 48)
        with pytest.raises(RuntimeError, match="SENTINEL_AUDIT_KEY"):
            settings.validate_for_production()

    def test_production_with_secure_keys(self):
        settings = SentinelSettings(environment="production", **SECURE)
        settings.validate_for_production()

    def test_development_warns(self):
        settings = SentinelSettings(environment="development")
        with pytest.warns(UserWarning):
            settings.validate_for_production()


class TestSettingsDefaults:
    def test_detector_defaults(self):
        settings = SentinelSettings(**SECURE)
        assert settings.sync_failure_window_days == 7
        assert settings.serialization_statuses == ["approved"]
        assert settings.enrichment_timeout == 5.0

    def test_enrichment_toggle(self):
        assert SentinelSettings(llm_api_key="").enrichment_enabled is False
        assert SentinelSettings(llm_api_key="sk-live").enrichment_enabled is True

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("SENTINEL_SCAN_ROW_LIMIT", "25")
        assert SentinelSettings().scan_row_limit == 25
