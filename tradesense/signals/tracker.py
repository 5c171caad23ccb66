"""Resolve active trade signals against current prices."""

from datetime import datetime, timezone
from typing import Optional

from tradesense.models import SignalOutcome, TradeSignal


def calculate_return_pct(signal: TradeSignal, exit_price: float) -> float:
    """Return in percent for exiting a signal at a price."""
    if signal.signal_type == "BUY":
        return (exit_price - signal.entry_price) / signal.entry_price * 100
    return (signal.entry_price - exit_price) / signal.entry_price * 100


def _is_expired(signal: TradeSignal, now: datetime) -> bool:
    if signal.expires_at is None:
        return False
    expires_at = signal.expires_at
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return expires_at < now


def check_outcome(
    signal: TradeSignal,
    current_price: float,
    session_high: Optional[float] = None,
    session_low: Optional[float] = None,
    now: Optional[datetime] = None,
) -> Optional[SignalOutcome]:
    """Check whether a signal hit its target or stop, or expired.

    The target is checked before the stop, so a session that touched
    both resolves as TARGET_HIT. Expiry only applies when neither level
    was touched.

    Args:
        signal: Active signal.
        current_price: Latest price.
        session_high: Session high; defaults to the current price.
        session_low: Session low; defaults to the current price.
        now: Current time for the expiry check.

    Returns:
        SignalOutcome, or None if the signal stays active.
    """
    high = session_high if session_high is not None else current_price
    low = session_low if session_low is not None else current_price

    if signal.signal_type == "BUY":
        target_hit = high >= signal.target_price
        stop_hit = low <= signal.stop_loss
    else:
        target_hit = low <= signal.target_price
        stop_hit = high >= signal.stop_loss

    if target_hit:
        return SignalOutcome(
            status="TARGET_HIT",
            exit_price=signal.target_price,
            return_pct=calculate_return_pct(signal, signal.target_price),
        )
    if stop_hit:
        return SignalOutcome(
            status="STOP_LOSS",
            exit_price=signal.stop_loss,
            return_pct=calculate_return_pct(signal, signal.stop_loss),
        )

    if _is_expired(signal, now or datetime.now(timezone.utc)):
        return SignalOutcome(
            status="EXPIRED",
            exit_price=current_price,
            return_pct=calculate_return_pct(signal, current_price),
        )

    return None
