"""Trade signal generation, tracking and statistics."""

from tradesense.signals.generator import (
    calculate_current_pnl,
    calculate_levels,
    check_regime,
    generate_signal,
)
from tradesense.signals.service import SignalService
from tradesense.signals.stats import calculate_signal_stats
from tradesense.signals.tracker import check_outcome

__all__ = [
    "SignalService",
    "calculate_current_pnl",
    "calculate_levels",
    "calculate_signal_stats",
    "check_outcome",
    "check_regime",
    "generate_signal",
]
