"""Performance statistics over trade signals."""

from tradesense.models import SignalStats, TradeSignal


def calculate_signal_stats(signals: list[TradeSignal]) -> SignalStats:
    """Summarize signal performance.

    Wins are TARGET_HIT signals and losses STOP_LOSS signals. Win rate and
    return figures are taken over all closed signals; a closed signal
    without a recorded return (a cancellation) counts as 0%.

    Args:
        signals: Signals to summarize.

    Returns:
        SignalStats.
    """
    active = [s for s in signals if s.status == "ACTIVE"]
    closed = [s for s in signals if s.status != "ACTIVE"]
    wins = sum(1 for s in closed if s.status == "TARGET_HIT")
    losses = sum(1 for s in closed if s.status == "STOP_LOSS")
    returns = [s.return_pct or 0.0 for s in closed]

    total_return = sum(returns)

    return SignalStats(
        total_signals=len(signals),
        active_signals=len(active),
        closed_signals=len(closed),
        wins=wins,
        losses=losses,
        win_rate=wins / len(closed) * 100 if closed else 0.0,
        avg_return=total_return / len(returns) if returns else 0.0,
        total_return=total_return,
        best_trade=max(returns) if returns else 0.0,
        worst_trade=min(returns) if returns else 0.0,
    )
