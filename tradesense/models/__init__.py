"""Data models for TradeSense."""

from tradesense.models.alert import AlertCondition, Alert, AlertHistoryEntry
from tradesense.models.check import CheckResult, CheckSummary, ConditionResult
from tradesense.models.market import HistoricalSeries, QuoteSnapshot
from tradesense.models.signal import (
    AnalysisInput,
    RiskContext,
    SignalDraft,
    SignalGenerationResult,
    SignalOutcome,
    SignalStats,
    Technicals,
    TradeSignal,
)

__all__ = [
    "Alert",
    "AlertCondition",
    "AlertHistoryEntry",
    "AnalysisInput",
    "CheckResult",
    "CheckSummary",
    "ConditionResult",
    "HistoricalSeries",
    "QuoteSnapshot",
    "RiskContext",
    "SignalDraft",
    "SignalGenerationResult",
    "SignalOutcome",
    "SignalStats",
    "Technicals",
    "TradeSignal",
]
