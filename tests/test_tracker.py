"""Tests for signal outcome tracking."""

from datetime import datetime, timedelta, timezone

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from tradesense.models import TradeSignal
from tradesense.signals.tracker import calculate_return_pct, check_outcome

NOW = datetime(2024, 1, 15, 6, 0, tzinfo=timezone.utc)


def make_signal(signal_type: str = "BUY", **kwargs) -> TradeSignal:
    if signal_type == "BUY":
        levels = dict(entry_price=100.0, target_price=104.0, stop_loss=98.0)
    else:
        levels = dict(entry_price=100.0, target_price=96.0, stop_loss=102.0)
    fields = dict(
        user_id="u1",
        symbol="TCS.NS",
        signal_type=signal_type,
        created_at=NOW - timedelta(days=1),
        expires_at=NOW + timedelta(days=13),
        **levels,
    )
    fields.update(kwargs)
    return TradeSignal(**fields)


class TestTargetAndStop:
    """Tests for level hits on BUY and SELL signals."""

    def test_buy_target_hit(self):
        outcome = check_outcome(make_signal(), 104.5, now=NOW)
        assert outcome.status == "TARGET_HIT"
        assert outcome.exit_price == 104.0
        assert outcome.return_pct == pytest.approx(4.0)

    def test_buy_stop_hit(self):
        outcome = check_outcome(make_signal(), 97.0, now=NOW)
        assert outcome.status == "STOP_LOSS"
        assert outcome.exit_price == 98.0
        assert outcome.return_pct == pytest.approx(-2.0)

    def test_sell_target_hit(self):
        outcome = check_outcome(make_signal("SELL"), 95.0, now=NOW)
        assert outcome.status == "TARGET_HIT"
        assert outcome.exit_price == 96.0
        assert outcome.return_pct == pytest.approx(4.0)

    def test_sell_stop_hit(self):
        outcome = check_outcome(make_signal("SELL"), 102.0, now=NOW)
        assert outcome.status == "STOP_LOSS"
        assert outcome.return_pct == pytest.approx(-2.0)

    def test_session_range_used(self):
        outcome = check_outcome(make_signal(), 101.0, session_high=104.2, session_low=100.5, now=NOW)
        assert outcome.status == "TARGET_HIT"

    def test_inside_range_stays_active(self):
        assert check_outcome(make_signal(), 101.0, now=NOW) is None
        assert check_outcome(make_signal("SELL"), 99.0, now=NOW) is None


class TestPrecedence:
    """
    **Feature: tradesense, Property: Target Before Stop**

    *For any* session that touched both levels, the outcome is TARGET_HIT.
    """

    @given(
        high=st.floats(min_value=104, max_value=200),
        low=st.floats(min_value=1, max_value=96),
        signal_type=st.sampled_from(["BUY", "SELL"]),
    )
    @settings(max_examples=100)
    def test_both_levels_touched(self, high: float, low: float, signal_type: str):
        signal = make_signal(signal_type)
        outcome = check_outcome(signal, 100.0, session_high=high, session_low=low, now=NOW)
        assert outcome.status == "TARGET_HIT"
        assert outcome.exit_price == signal.target_price

    def test_hit_beats_expiry(self):
        signal = make_signal(expires_at=NOW - timedelta(days=1))
        assert check_outcome(signal, 97.0, now=NOW).status == "STOP_LOSS"


class TestExpiry:
    """Expiry closes an untouched signal at the current price."""

    def test_expired_signal(self):
        signal = make_signal(expires_at=NOW - timedelta(minutes=1))
        outcome = check_outcome(signal, 101.0, now=NOW)
        assert outcome.status == "EXPIRED"
        assert outcome.exit_price == 101.0
        assert outcome.return_pct == pytest.approx(1.0)

    def test_expiry_is_strict(self):
        assert check_outcome(make_signal(expires_at=NOW), 101.0, now=NOW) is None

    def test_naive_expiry_treated_as_utc(self):
        signal = make_signal(expires_at=datetime(2024, 1, 15, 5, 0))
        assert check_outcome(signal, 101.0, now=NOW).status == "EXPIRED"

    def test_no_expiry(self):
        assert check_outcome(make_signal(expires_at=None), 101.0, now=NOW) is None


class TestReturnPct:
    """Return is measured in the direction of the trade."""

    def test_buy_return(self):
        assert calculate_return_pct(make_signal(), 110.0) == pytest.approx(10.0)

    def test_sell_return(self):
        assert calculate_return_pct(make_signal("SELL"), 110.0) == pytest.approx(-10.0)
