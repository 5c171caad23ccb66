"""Tests for the TradeSense command line interface."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from fakes import FakeProvider
from tradesense.cli.alerts import describe_condition, parse_condition
from tradesense.cli.main import cli
from tradesense.cli.signals import load_analysis
from tradesense.config import load_config
from tradesense.db.store import DataStore

USER = "u1"


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_path(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
    monkeypatch.delenv("TRADESENSE_DB", raising=False)
    path = tmp_path / "config.toml"
    path.write_text(
        f'[database]\npath = "{(tmp_path / "cli.db").as_posix()}"\n\n'
        "[alerts]\nsymbol_delay = 0\n"
    )
    return path


@pytest.fixture
def provider(monkeypatch) -> FakeProvider:
    fake = FakeProvider()
    monkeypatch.setattr("tradesense.config.get_data_provider", lambda config: fake)
    return fake


def invoke(runner: CliRunner, config_path: Path, *args: str):
    return runner.invoke(cli, ["--config", str(config_path), *args])


def store_for(config_path: Path) -> DataStore:
    return DataStore(load_config(config_path).database.path)


class TestParseCondition:
    """Tests for the condition mini-language."""

    @pytest.mark.parametrize(
        "text,indicator,operator,value",
        [
            ("price > 3500", "price", "above", 3500.0),
            ("price < 12.5", "price", "below", 12.5),
            ("rsi crosses_above 70", "rsi", "crosses_above", 70.0),
            ("RSI crosses below 30", "rsi", "crosses_below", 30.0),
            ("volume spike", "volume", "above", 2.0),
            ("volume > 3", "volume", "above", 3.0),
            ("sma_cross crosses_above", "sma_cross", "crosses_above", 0.0),
        ],
    )
    def test_supported(self, text, indicator, operator, value):
        condition = parse_condition(text)
        assert condition.indicator == indicator
        assert condition.operator == operator
        assert condition.value == value

    @pytest.mark.parametrize("text", ["price >", "price == 10", "ema > 5", "", "price > 1.2.3"])
    def test_rejected(self, text):
        assert parse_condition(text) is None

    def test_describe(self):
        assert describe_condition(parse_condition("price > 3500")) == "price above 3500"
        assert describe_condition(parse_condition("volume spike")) == "volume >= 2x avg"
        assert describe_condition(parse_condition("sma_cross crosses_below")) == "SMA50 crosses below SMA200"


class TestMarketCommand:
    def test_market_status(self, runner, monkeypatch):
        monkeypatch.setattr(
            "tradesense.cli.market.get_market_status",
            lambda: {
                "is_open": True,
                "message": "Market is OPEN",
                "current_time": "10:30:00",
                "date": "2024-01-15",
                "day": "Monday",
            },
        )
        result = runner.invoke(cli, ["market"])
        assert result.exit_code == 0
        assert "Market is OPEN" in result.output
        assert "Monday" in result.output


class TestAlertCommands:
    """Tests for alert, alerts and check."""

    def test_create_and_list(self, runner, config_path):
        result = invoke(runner, config_path, "alert", USER, "tcs.ns", "price > 3500", "--telegram")
        assert result.exit_code == 0, result.output
        assert "Alert Created" in result.output

        alerts = store_for(config_path).get_active_alerts(USER)
        assert len(alerts) == 1
        assert alerts[0].symbol == "TCS.NS"
        assert alerts[0].notification_channels == ["telegram"]

        result = invoke(runner, config_path, "alerts", USER)
        assert result.exit_code == 0
        assert "TCS.NS" in result.output

    def test_invalid_condition(self, runner, config_path):
        result = invoke(runner, config_path, "alert", USER, "TCS.NS", "price == 1")
        assert result.exit_code == 1
        assert "Invalid condition" in result.output

    def test_remove_alert(self, runner, config_path):
        invoke(runner, config_path, "alert", USER, "TCS.NS", "price > 3500")
        alert_id = store_for(config_path).get_active_alerts(USER)[0].id

        result = invoke(runner, config_path, "alerts", USER, "--remove", str(alert_id))
        assert result.exit_code == 0
        assert "Deactivated" in result.output
        assert store_for(config_path).get_active_alerts(USER) == []

    def test_remove_other_users_alert(self, runner, config_path):
        invoke(runner, config_path, "alert", USER, "TCS.NS", "price > 3500")
        alert_id = store_for(config_path).get_active_alerts(USER)[0].id

        result = invoke(runner, config_path, "alerts", "someone-else", "--remove", str(alert_id))
        assert "not found" in result.output
        assert len(store_for(config_path).get_active_alerts(USER)) == 1

    def test_check_triggers_and_records_history(self, runner, config_path, provider):
        invoke(runner, config_path, "alert", USER, "TCS.NS", "price > 3500")
        provider.set_quote("TCS.NS", 3550.0)

        result = invoke(runner, config_path, "check", USER, "--force")
        assert result.exit_code == 0, result.output
        assert "Triggered: 1" in result.output

        result = invoke(runner, config_path, "alerts", USER, "--history")
        assert result.exit_code == 0
        assert "TCS.NS" in result.output

    def test_check_skips_when_market_closed(self, runner, config_path, provider, monkeypatch):
        monkeypatch.setattr(
            "tradesense.market.get_market_status",
            lambda: {"is_open": False, "message": "Market is CLOSED (Weekend)"},
        )
        result = invoke(runner, config_path, "check", USER)
        assert result.exit_code == 0
        assert "Weekend" in result.output
        assert provider.quote_calls == []

    def test_bad_config_file(self, runner, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("[data\n")
        result = runner.invoke(cli, ["--config", str(path), "alerts", USER])
        assert result.exit_code == 1
        assert "Configuration error" in result.output


class TestCheckWatch:
    """
    **Feature: tradesense, Property: Watch Keeps Crossing Baselines**

    *For any* run of ``check --watch``, one runner and one data cache serve
    every cycle, so a crossing alert fires on the cycle the price crosses.
    """

    @pytest.fixture
    def watch_config(self, config_path: Path) -> Path:
        with config_path.open("a") as f:
            f.write("\n[data]\nquote_ttl = 0.000001\n")
        return config_path

    @staticmethod
    def price_steps(monkeypatch, provider: FakeProvider, symbol: str, prices: list[float]):
        """Set the first price now and the next one on each sleep."""
        provider.set_quote(symbol, prices[0])
        remaining = list(prices[1:])
        sleeps = []

        def fake_sleep(seconds):
            sleeps.append(seconds)
            if remaining:
                provider.set_quote(symbol, remaining.pop(0))

        monkeypatch.setattr("tradesense.cli.alerts.time.sleep", fake_sleep)
        return sleeps

    def test_crossing_fires_on_crossing_cycle(self, runner, watch_config, provider, monkeypatch):
        invoke(runner, watch_config, "alert", USER, "TCS.NS", "price crosses_above 3500")
        sleeps = self.price_steps(
            monkeypatch, provider, "TCS.NS", [3400.0, 3450.0, 3600.0, 3400.0, 3700.0]
        )

        result = invoke(
            runner, watch_config, "check", USER, "--force", "--watch", "--interval", "1", "--cycles", "5"
        )

        assert result.exit_code == 0, result.output
        assert sleeps == [1, 1, 1, 1]
        assert result.output.count("Triggered: 1") == 1
        assert provider.quote_calls == ["TCS.NS"] * 3

        history = store_for(watch_config).get_history(USER)
        assert len(history) == 1
        assert history[0].triggered_value == 3600.0

    def test_single_cycle_never_fires_crossing(self, runner, config_path, provider):
        invoke(runner, config_path, "alert", USER, "TCS.NS", "price crosses_above 3500")

        for price in (3400.0, 3600.0):
            provider.set_quote("TCS.NS", price)
            result = invoke(runner, config_path, "check", USER, "--force")
            assert result.exit_code == 0, result.output
            assert "Triggered: 0" in result.output

    def test_closed_market_cycles_skipped(self, runner, watch_config, provider, monkeypatch):
        monkeypatch.setattr(
            "tradesense.market.get_market_status",
            lambda: {"is_open": False, "message": "Market is CLOSED (After hours)"},
        )
        invoke(runner, watch_config, "alert", USER, "TCS.NS", "price > 3500")
        self.price_steps(monkeypatch, provider, "TCS.NS", [3550.0, 3550.0])

        result = invoke(runner, watch_config, "check", USER, "--watch", "--cycles", "2")

        assert result.exit_code == 0, result.output
        assert result.output.count("Skipping cycle") == 2
        assert provider.quote_calls == []

    def test_ctrl_c_stops_cleanly(self, runner, watch_config, provider, monkeypatch):
        invoke(runner, watch_config, "alert", USER, "TCS.NS", "price > 3500")
        provider.set_quote("TCS.NS", 3000.0)

        def interrupt(seconds):
            raise KeyboardInterrupt

        monkeypatch.setattr("tradesense.cli.alerts.time.sleep", interrupt)
        result = invoke(runner, watch_config, "check", USER, "--force", "--watch")

        assert result.exit_code == 0, result.output
        assert "Stopped watching alerts" in result.output
        assert provider.quote_calls == ["TCS.NS"]


class TestSignalCommands:
    """Tests for signal and signals."""

    @staticmethod
    def write_analysis(tmp_path: Path, **kwargs) -> Path:
        data = {"symbol": "TCS.NS", "price": 100.0, "score": 80, "confidence": 0.8}
        data.update(kwargs)
        path = tmp_path / "analysis.json"
        path.write_text(json.dumps(data))
        return path

    def test_create_signal(self, runner, config_path, tmp_path):
        result = invoke(runner, config_path, "signal", USER, str(self.write_analysis(tmp_path)))
        assert result.exit_code == 0, result.output
        assert "BUY" in result.output
        assert store_for(config_path).get_active_signal(USER, "TCS.NS") is not None

    def test_rejected_signal(self, runner, config_path, tmp_path):
        path = self.write_analysis(tmp_path, score=50)
        result = invoke(runner, config_path, "signal", USER, str(path))
        assert result.exit_code == 0
        assert "Signal Rejected" in result.output
        assert store_for(config_path).get_signals(USER) == []

    def test_invalid_analysis_file(self, runner, config_path, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        result = invoke(runner, config_path, "signal", USER, str(path))
        assert result.exit_code == 1

    def test_check_and_list(self, runner, config_path, tmp_path, provider):
        invoke(runner, config_path, "signal", USER, str(self.write_analysis(tmp_path)))
        provider.set_quote("TCS.NS", 104.0)

        result = invoke(runner, config_path, "signals", USER, "--check")
        assert result.exit_code == 0, result.output
        assert "TARGET_HIT" in result.output
        assert "Performance" in result.output

    def test_cancel(self, runner, config_path, tmp_path):
        invoke(runner, config_path, "signal", USER, str(self.write_analysis(tmp_path)))
        signal_id = store_for(config_path).get_active_signal(USER, "TCS.NS").id

        result = invoke(runner, config_path, "signals", USER, "--cancel", str(signal_id))
        assert "Cancelled" in result.output
        assert store_for(config_path).get_signal(signal_id).status == "CANCELLED"

        result = invoke(runner, config_path, "signals", USER, "--cancel", str(signal_id))
        assert "No active signal" in result.output

    def test_empty_list(self, runner, config_path):
        result = invoke(runner, config_path, "signals", USER)
        assert result.exit_code == 0
        assert "No signals yet" in result.output


class TestLoadAnalysis:
    def test_invalid_fields(self, tmp_path: Path):
        path = tmp_path / "a.json"
        path.write_text(json.dumps({"symbol": "TCS.NS", "price": -1, "score": 80}))
        with pytest.raises(ValueError):
            load_analysis(path)
