"""Tests for the sentinel CLI."""

import pytest
from typer.testing import CliRunner

from supply_sentinel.cli import app


runner = CliRunner()


@pytest.fixture
def cli_env(monkeypatch, tmp_path):
    monkeypatch.setenv("SENTINEL_DB_URL", f"sqlite+aiosqlite:///{tmp_path}/cli.db")
    monkeypatch.setenv("SENTINEL_AUDIT_KEY", "cli-audit-key")
    monkeypatch.setenv("SENTINEL_API_KEY", "cli-api-key")
    monkeypatch.setenv("SENTINEL_LLM_API_KEY", "")

    from supply_sentinel.common.config import get_settings
    from supply_sentinel.deps import reset_singletons

    get_settings.cache_clear()
    reset_singletons()
    yield
    get_settings.cache_clear()
    reset_singletons()


def test_scan_empty_database(cli_env):
    result = runner.invoke(app, ["scan"])
    assert result.exit_code == 0
    assert "0 anomalies detected" in result.output


def test_scan_unknown_type(cli_env):
    result = runner.invoke(app, ["scan", "--type", "warehouse"])
    assert result.exit_code == 1
    assert "validation_error" in result.output


def test_health_unreachable():
    result = runner.invoke(app, ["health", "--url", "http://127.0.0.1:9"])
    assert result.exit_code == 1
    assert "Error" in result.output


def test_serve_uses_configured_address(cli_env, monkeypatch):
    calls = {}
    monkeypatch.setenv("SENTINEL_HOST", "127.0.0.1")
    monkeypatch.setenv("SENTINEL_PORT", "9100")
    monkeypatch.setattr("uvicorn.run", lambda app, host, port: calls.update(host=host, port=port))

    result = runner.invoke(app, ["serve"])
    assert result.exit_code == 0
    assert calls == {"host": "127.0.0.1", "port": 9100}

    result = runner.invoke(app, ["serve", "--port", "9200"])
    assert calls == {"host": "127.0.0.1", "port": 9200}


def test_health_default_url(cli_env, monkeypatch):
    import httpx

    seen = []
    monkeypatch.setenv("SENTINEL_PORT", "9100")

    def fake_get(url, timeout):
        seen.append(url)
        return httpx.Response(200, json={"status": "ok", "version": "0.1.0"})

    monkeypatch.setattr(httpx, "get", fake_get)
    result = runner.invoke(app, ["health"])
    assert result.exit_code == 0
    assert seen == ["http://localhost:9100/health"]
