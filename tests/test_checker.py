"""Tests for the alert batch runner."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from fakes import FakeClock, FakeProvider
from tradesense.alerts import AlertBatchRunner
from tradesense.cache import DataCache
from tradesense.db.store import DataStore
from tradesense.errors import PersistenceError
from tradesense.models import Alert, AlertCondition
from tradesense.notifications import NotificationDispatcher

NOW = datetime(2024, 1, 15, 6, 0, tzinfo=timezone.utc)
USER = "user-1"


class RecordingNotifier(NotificationDispatcher):
    def __init__(self, fail: bool = False):
        self.sent: list[tuple[str, dict]] = []
        self.fail = fail

    def dispatch(self, channel: str, payload: dict) -> None:
        if self.fail:
            raise RuntimeError("telegram down")
        self.sent.append((channel, payload))


class SlowProvider(FakeProvider):
    """Provider whose quote calls take ``delay`` seconds on a fake clock."""

    def __init__(self, clock: FakeClock, delay: float):
        super().__init__()
        self.clock = clock
        self.delay = delay

    def get_quote(self, symbol: str):
        self.clock.advance(self.delay)
        return super().get_quote(symbol)


class MalformedProvider(FakeProvider):
    """Provider that hands back a bad payload for some symbols."""

    def __init__(self, malformed: set[str]):
        super().__init__()
        self.malformed = malformed

    def get_quote(self, symbol: str):
        if symbol in self.malformed:
            self.quote_calls.append(symbol)
            raise TypeError("float() argument must be a string or a real number, not 'NoneType'")
        return super().get_quote(symbol)


def add_alert(store: DataStore, symbol: str, indicator: str, operator: str, value: float, **kwargs) -> int:
    return store.save_alert(
        Alert(
            user_id=USER,
            symbol=symbol,
            alert_type=indicator,
            condition=AlertCondition(indicator=indicator, operator=operator, value=value),
            **kwargs,
        )
    )


def make_runner(store, provider, clock=None, **kwargs) -> AlertBatchRunner:
    clock = clock or FakeClock()
    return AlertBatchRunner(
        store,
        DataCache(provider, clock=clock),
        clock=clock,
        now=lambda: NOW,
        **kwargs,
    )


class TestEndToEnd:
    """
    **Feature: tradesense, Property: Price Alert End To End**

    A TCS.NS "price above 3500" alert with the price at 3550 fires with
    current value 3550, is closed, is logged to history and notifies.
    """

    def test_price_alert_triggers(self, temp_store: DataStore, provider: FakeProvider):
        alert_id = add_alert(
            temp_store, "TCS.NS", "price", "above", 3500, notification_channels=["telegram", "email"]
        )
        provider.set_quote("TCS.NS", 3550.0)
        notifier = RecordingNotifier()

        summary = make_runner(temp_store, provider, notifier=notifier).run(USER)

        assert summary.checked == 1
        assert summary.triggered == 1
        assert summary.errors == 0
        result = summary.results[0]
        assert result.triggered is True
        assert result.current_value == 3550.0

        stored = temp_store.get_alert(alert_id)
        assert stored.is_triggered is True
        assert stored.is_active is False
        assert stored.triggered_value == 3550.0
        assert stored.triggered_at == NOW
        assert temp_store.get_active_alerts(USER) == []

        history = temp_store.get_history(USER)
        assert len(history) == 1
        assert history[0].alert_id == alert_id
        assert history[0].triggered_value == 3550.0
        assert history[0].notification_sent_to == ["telegram", "email"]

        # Only push channels are dispatched
        assert [channel for channel, _ in notifier.sent] == ["telegram"]
        assert notifier.sent[0][1]["symbol"] == "TCS.NS"
        assert notifier.sent[0][1]["alert_type"] == "price_above"

    def test_non_trigger_records_check_time(self, temp_store: DataStore, provider: FakeProvider):
        alert_id = add_alert(temp_store, "TCS.NS", "price", "above", 4000)
        provider.set_quote("TCS.NS", 3550.0)

        summary = make_runner(temp_store, provider).run(USER)

        assert summary.triggered == 0
        stored = temp_store.get_alert(alert_id)
        assert stored.is_active is True
        assert stored.last_checked_at == NOW
        assert temp_store.get_history(USER) == []


class TestBatchBehaviour:
    """Tests for grouping, expiry and error isolation in a batch."""

    def test_one_quote_per_symbol(self, temp_store: DataStore, provider: FakeProvider):
        add_alert(temp_store, "TCS.NS", "price", "above", 3000)
        add_alert(temp_store, "TCS.NS", "price", "below", 3000)
        add_alert(temp_store, "INFY.NS", "price", "above", 1000)
        provider.set_quote("TCS.NS", 3550.0)
        provider.set_quote("INFY.NS", 1500.0)

        summary = make_runner(temp_store, provider).run(USER)

        assert summary.checked == 3
        assert summary.triggered == 2
        assert sorted(provider.quote_calls) == ["INFY.NS", "TCS.NS"]

    def test_history_only_fetched_when_needed(self, temp_store: DataStore, provider: FakeProvider):
        add_alert(temp_store, "TCS.NS", "price", "above", 3000)
        add_alert(temp_store, "INFY.NS", "rsi", "above", 70)
        provider.set_quote("TCS.NS", 3550.0)
        provider.set_quote("INFY.NS", 1500.0)
        provider.closes["INFY.NS"] = [1500.0] * 30

        make_runner(temp_store, provider).run(USER)

        assert provider.history_calls == ["INFY.NS"]

    def test_expired_alerts_deactivated_not_checked(self, temp_store: DataStore, provider: FakeProvider):
        expired_id = add_alert(
            temp_store, "TCS.NS", "price", "above", 3000, expires_at=NOW - timedelta(hours=1)
        )
        live_id = add_alert(
            temp_store, "TCS.NS", "price", "above", 4000, expires_at=NOW + timedelta(days=1)
        )
        provider.set_quote("TCS.NS", 3550.0)

        summary = make_runner(temp_store, provider).run(USER)

        assert summary.expired == 1
        assert summary.checked == 1
        assert summary.triggered == 0
        assert temp_store.get_alert(expired_id).is_active is False
        assert temp_store.get_alert(live_id).is_active is True

    def test_quote_failure_isolated(self, temp_store: DataStore, provider: FakeProvider):
        add_alert(temp_store, "BAD.NS", "price", "above", 1)
        add_alert(temp_store, "TCS.NS", "price", "above", 3000)
        provider.set_quote("TCS.NS", 3550.0)

        summary = make_runner(temp_store, provider).run(USER)

        assert summary.checked == 2
        assert summary.errors == 1
        assert summary.triggered == 1
        errors = [r for r in summary.results if r.error]
        assert errors[0].symbol == "BAD.NS"
        assert errors[0].error == "Failed to fetch price"

    def test_recurring_alert_stays_active(self, temp_store: DataStore, provider: FakeProvider):
        alert_id = add_alert(temp_store, "TCS.NS", "price", "above", 3000, is_recurring=True)
        provider.set_quote("TCS.NS", 3550.0)

        make_runner(temp_store, provider).run(USER)

        stored = temp_store.get_alert(alert_id)
        assert stored.is_active is True
        assert stored.is_triggered is False
        assert stored.triggered_value == 3550.0
        assert len(temp_store.get_active_alerts(USER)) == 1

    def test_notifier_failure_does_not_abort(self, temp_store: DataStore, provider: FakeProvider):
        add_alert(temp_store, "TCS.NS", "price", "above", 3000, notification_channels=["telegram"])
        add_alert(temp_store, "INFY.NS", "price", "above", 1000, notification_channels=["telegram"])
        provider.set_quote("TCS.NS", 3550.0)
        provider.set_quote("INFY.NS", 1500.0)

        summary = make_runner(temp_store, provider, notifier=RecordingNotifier(fail=True)).run(USER)

        assert summary.triggered == 2
        assert summary.errors == 0
        assert len(temp_store.get_history(USER)) == 2

    def test_crossing_memory_persists_across_runs(self, temp_store: DataStore, provider: FakeProvider):
        add_alert(temp_store, "TCS.NS", "price", "crosses_above", 3500)
        clock = FakeClock()
        runner = make_runner(temp_store, provider, clock=clock)

        provider.set_quote("TCS.NS", 3400.0)
        assert runner.run(USER).triggered == 0

        clock.advance(61)
        provider.set_quote("TCS.NS", 3600.0)
        assert runner.run(USER).triggered == 1

    def test_deadline_skips_remaining_symbols(self, temp_store: DataStore):
        clock = FakeClock()
        provider = SlowProvider(clock, delay=3.0)
        for symbol in ("A.NS", "B.NS", "C.NS"):
            add_alert(temp_store, symbol, "price", "above", 1)
            provider.set_quote(symbol, 100.0)

        summary = make_runner(temp_store, provider, clock=clock, batch_deadline=5.0).run(USER)

        assert summary.timed_out is True
        assert summary.checked == 2
        assert provider.quote_calls == ["A.NS", "B.NS"]

    def test_no_alerts(self, temp_store: DataStore, provider: FakeProvider):
        summary = make_runner(temp_store, provider).run(USER)
        assert summary.checked == 0
        assert summary.results == []
        assert summary.timestamp == NOW


class TestPersistenceFailures:
    """Store failures are reported in the summary, never raised."""

    class BrokenStore(DataStore):
        def get_active_alerts(self, user_id, on_invalid=None):
            raise PersistenceError("database is locked")

    class ReadOnlyStore(DataStore):
        def update_alert(self, alert_id, user_id, **fields):
            raise PersistenceError("attempt to write a readonly database")

    def test_load_failure_returns_error_summary(self, tmp_path, provider: FakeProvider):
        store = self.BrokenStore(tmp_path / "broken.db")
        summary = make_runner(store, provider).run(USER)

        assert summary.errors == 1
        assert summary.checked == 0

    @pytest.mark.parametrize("price,triggered", [(3550.0, True), (2000.0, False)])
    def test_write_failure_recorded_per_alert(
        self, tmp_path, provider: FakeProvider, price: float, triggered: bool
    ):
        store = self.ReadOnlyStore(tmp_path / "ro.db")
        add_alert(store, "TCS.NS", "price", "above", 3000)
        provider.set_quote("TCS.NS", price)

        summary = make_runner(store, provider).run(USER)

        assert summary.errors == 1
        assert summary.triggered == 0
        assert summary.results[0].triggered is triggered
        assert summary.results[0].error.startswith("Persistence failed")


class TestUndecodableAlerts:
    """
    **Feature: tradesense, Property: Bad Rows Isolated**

    *For any* stored alert that no longer decodes, the other alerts in the
    batch are still checked and the bad one is reported as an error.
    """

    @pytest.mark.parametrize(
        "raw_condition",
        [
            json.dumps({"indicator": "bollinger", "operator": "above", "value": 1}),
            "{not json",
        ],
    )
    def test_bad_row_reported_rest_checked(
        self, temp_store: DataStore, provider: FakeProvider, raw_condition: str
    ):
        good_id = add_alert(temp_store, "TCS.NS", "price", "above", 3500)
        bad_id = add_alert(temp_store, "INFY.NS", "price", "above", 1)
        temp_store._execute(
            "UPDATE alerts SET condition = ? WHERE id = ?", (raw_condition, bad_id)
        )
        provider.set_quote("TCS.NS", 3550.0)

        summary = make_runner(temp_store, provider).run(USER)

        assert summary.checked == 2
        assert summary.triggered == 1
        assert summary.errors == 1
        by_id = {r.alert_id: r for r in summary.results}
        assert by_id[good_id].triggered is True
        assert by_id[bad_id].symbol == "INFY.NS"
        assert by_id[bad_id].error.startswith("Invalid alert")
        assert temp_store.get_alert(good_id).is_triggered is True
        assert provider.quote_calls == ["TCS.NS"]


class TestUnexpectedProviderFailures:
    """A provider bug on one symbol does not abort the batch."""

    def test_symbol_failure_isolated(self, temp_store: DataStore):
        provider = MalformedProvider({"BAD.NS"})
        bad_ids = [
            add_alert(temp_store, "BAD.NS", "price", "above", 1),
            add_alert(temp_store, "BAD.NS", "price", "below", 1),
        ]
        add_alert(temp_store, "TCS.NS", "price", "above", 3500)
        provider.set_quote("TCS.NS", 3550.0)

        summary = make_runner(temp_store, provider).run(USER)

        assert summary.checked == 3
        assert summary.triggered == 1
        assert summary.errors == 2
        errors = {r.alert_id: r.error for r in summary.results if r.error}
        assert sorted(errors) == sorted(bad_ids)
        assert all(e.startswith("Check failed") for e in errors.values())
        assert temp_store.get_alert(bad_ids[0]).is_active is True
