"""Technical indicators module."""

from tradesense.indicators.technical import (
    calculate_rsi,
    calculate_sma,
    valid_values,
)

__all__ = [
    "calculate_rsi",
    "calculate_sma",
    "valid_values",
]
