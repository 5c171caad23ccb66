"""Alert evaluation and batch checking."""

from tradesense.alerts.checker import AlertBatchRunner
from tradesense.alerts.conditions import (
    ConditionEvaluator,
    CrossingMemory,
    clean_symbol,
    format_inr,
    needs_history,
)

__all__ = [
    "AlertBatchRunner",
    "ConditionEvaluator",
    "CrossingMemory",
    "clean_symbol",
    "format_inr",
    "needs_history",
]
