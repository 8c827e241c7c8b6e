"""
Tests for ledger_config settings loading.
"""

from decimal import Decimal

import pytest
import yaml

from ledger_config import DEFAULT_CONFIG_PATH, get_active_settings
from ledger_config.loader import compute_checksum, parse_settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv("LEDGER_CONFIG", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)


@pytest.fixture
def write_config(tmp_path):
    def _write(data: dict):
        path = tmp_path / "ledger.yaml"
        path.write_text(yaml.safe_dump(data))
        return path

    return _write


class TestDefaults:

    def test_packaged_defaults(self):
        settings = get_active_settings()
        assert settings.source == str(DEFAULT_CONFIG_PATH)
        assert settings.retry.attempts == 2
        assert settings.settlement.epsilon == Decimal("0.01")
        assert settings.alerts.default_days_advance == 7
        assert settings.alerts.tick_interval_seconds == 60.0

    def test_empty_data_uses_schema_defaults(self):
        settings = parse_settings({})
        assert settings.database.statement_timeout_ms == 5000
        assert settings.checksum == compute_checksum({})


class TestSources:

    def test_explicit_path_wins(self, write_config, monkeypatch, tmp_path):
        other = tmp_path / "other.yaml"
        other.write_text(yaml.safe_dump({"retry": {"attempts": 9}}))
        monkeypatch.setenv("LEDGER_CONFIG", str(other))

        settings = get_active_settings(write_config({"retry": {"attempts": 4}}))
        assert settings.retry.attempts == 4

    def test_env_var_selects_file(self, write_config, monkeypatch):
        path = write_config({"settlement": {"epsilon": "0.05"}, "alerts": {"default_days_advance": 3}})
        monkeypatch.setenv("LEDGER_CONFIG", str(path))

        settings = get_active_settings()
        assert settings.source == str(path)
        assert settings.settlement.epsilon == Decimal("0.05")
        assert settings.alerts.default_days_advance == 3

    def test_float_epsilon_is_read_exactly(self, write_config):
        settings = get_active_settings(write_config({"settlement": {"epsilon": 0.01}}))
        assert settings.settlement.epsilon == Decimal("0.01")

    def test_database_url_override(self, write_config, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://ledger@db/ledger")
        settings = get_active_settings(write_config({"database": {"url": "sqlite://"}}))
        assert settings.database.url == "postgresql://ledger@db/ledger"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_settings(tmp_path / "nope.yaml")

    def test_trace_is_logged(self, write_config, captured_logs):
        path = write_config({})
        settings = get_active_settings(path)

        [trace] = [r for r in captured_logs() if r["message"] == "LEDGER_CONFIG_TRACE"]
        assert trace["source"] == str(path)
        assert trace["checksum"] == settings.checksum


class TestValidation:

    @pytest.mark.parametrize(
        "data",
        [
            {"ledger": {}},
            {"retry": {"attempts": 0}},
            {"retry": {"attempts": True}},
            {"retry": {"tries": 3}},
            {"settlement": {"epsilon": "-0.01"}},
            {"settlement": {"epsilon": "abc"}},
            {"alerts": {"tick_interval_seconds": 0}},
            {"alerts": {"default_days_advance": -2}},
            {"database": {"url": ""}},
            {"database": "sqlite://"},
        ],
    )
    def test_invalid_values_are_rejected(self, data):
        with pytest.raises(ValueError):
            parse_settings(data)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError):
            get_active_settings(path)
