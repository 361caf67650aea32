"""Tests for the CLI module."""

from __future__ import annotations

import time
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from price_table.cli import cli
from price_table.state.cache import StateCache


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """A mock-exchange config whose cache lives under tmp_path."""
    monkeypatch.delenv("PRICE_TABLE_CONFIG", raising=False)
    cache_path = tmp_path / "statecache.json"
    path = tmp_path / "price-table.yml"
    path.write_text(
        "markets:\n"
        "  pairs: [eur, usd]\n"
        "  assets: [btc, eth, xrp]\n"
        "exchange:\n"
        "  id: mock\n"
        "cache:\n"
        f"  path: {cache_path}\n"
        "retry:\n"
        "  delay_seconds: 0\n"
    )
    return path


# ---------------------------------------------------------------------------
# Group
# ---------------------------------------------------------------------------


class TestGroup:
    def test_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("serve", "fetch", "validate-cache"):
            assert command in result.output

    def test_missing_config_file(self, runner, tmp_path):
        result = runner.invoke(cli, ["-c", str(tmp_path / "nope.yml"), "fetch"])
        assert result.exit_code != 0


# ---------------------------------------------------------------------------
# fetch
# ---------------------------------------------------------------------------


class TestFetch:
    def test_fetch_all_pairs(self, runner, config_file):
        result = runner.invoke(cli, ["-c", str(config_file), "fetch"])
        assert result.exit_code == 0, result.output
        assert "BTC/EUR" in result.output
        assert "XRP/USD" in result.output
        assert "online" in result.output

    def test_fetch_one_pair(self, runner, config_file):
        result = runner.invoke(cli, ["-c", str(config_file), "fetch", "--pair", "USD"])
        assert result.exit_code == 0, result.output
        assert "ETH/USD" in result.output
        assert "ETH/EUR" not in result.output


# ---------------------------------------------------------------------------
# validate-cache
# ---------------------------------------------------------------------------


class TestValidateCache:
    def test_missing_cache(self, runner, config_file):
        result = runner.invoke(cli, ["-c", str(config_file), "validate-cache"])
        assert result.exit_code == 1
        assert "No state cache" in result.output

    def test_usable_cache(self, runner, config_file, make_document, tmp_path):
        StateCache(tmp_path / "statecache.json").write_document(
            make_document(timestamp=int(time.time() * 1000))
        )
        result = runner.invoke(cli, ["-c", str(config_file), "validate-cache"])
        assert result.exit_code == 0, result.output
        assert "Cache is usable" in result.output

    def test_stale_cache(self, runner, config_file, make_document, tmp_path):
        StateCache(tmp_path / "statecache.json").write_document(
            make_document(timestamp=int(time.time() * 1000) - 86_400_000)
        )
        result = runner.invoke(cli, ["-c", str(config_file), "validate-cache"])
        assert result.exit_code == 1
        assert "not fully usable" in result.output


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


class TestServe:
    def test_serve_runs_uvicorn_factory(self, runner, config_file, monkeypatch):
        # serve exports the path for the app factory; register it so it is undone
        monkeypatch.setenv("PRICE_TABLE_CONFIG", str(config_file))
        with patch("uvicorn.run") as mock_run:
            result = runner.invoke(cli, ["-c", str(config_file), "serve", "--port", "9100"])

        assert result.exit_code == 0, result.output
        args, kwargs = mock_run.call_args
        assert args[0] == "price_table.api.app:create_app"
        assert kwargs["factory"] is True
        assert kwargs["port"] == 9100
        assert kwargs["host"] == "0.0.0.0"
