"""TradeSense - alert checking and trade signals for Indian equities."""

__version__ = "0.1.0"
