"""
Tests for the operator CLI (commands that need no network).
"""

from __future__ import annotations

import pytest
from typer.testing import CliRunner

from main import app

runner = CliRunner()


class TestPricingCommand:

    def test_lists_providers(self):
        result = runner.invoke(app, ["pricing"])
        assert result.exit_code == 0
        assert "anthropic" in result.output
        assert "ollama" in result.output

    def test_unknown_provider(self):
        result = runner.invoke(app, ["pricing", "--provider", "nope"])
        assert result.exit_code == 1
        assert "Unknown provider" in result.output


class TestCostCommand:

    def test_known_model(self):
        result = runner.invoke(app, [
            "cost", "anthropic", "claude-sonnet-4-20250514",
            "--input", "1000", "--output", "500",
        ])
        assert result.exit_code == 0
        assert "$0.010500" in result.output

    def test_unknown_model_is_free(self):
        result = runner.invoke(app, ["cost", "acme", "mystery-model"])
        assert result.exit_code == 0
        assert "$0.000000" in result.output


class TestConfigCommand:

    @pytest.fixture(autouse=True)
    def _clean_env(self, monkeypatch):
        for var in ("DEFAULT_PROVIDER", "DISABLE_FALLBACK", "SWITCHBOARD_CONFIG"):
            monkeypatch.delenv(var, raising=False)

    def test_valid_file(self, tmp_path):
        path = tmp_path / "router.yaml"
        path.write_text("default_provider: google\n")

        result = runner.invoke(app, ["config", "--config", str(path)])

        assert result.exit_code == 0
        assert "Configuration valid" in result.output
        assert "google" in result.output

    def test_invalid_file(self, tmp_path):
        path = tmp_path / "router.yaml"
        path.write_text("retry:\n  max_retries: -1\n")

        result = runner.invoke(app, ["config", "--config", str(path)])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output
