"""Exception types raised by TradeSense.

Only failures that a caller has to handle are exceptions. Insufficient
history, unknown indicators and signal gate rejections are ordinary
results, not errors.
"""


class TradeSenseError(Exception):
    """Base class for TradeSense errors."""


class DataUnavailableError(TradeSenseError):
    """A quote or history fetch from the data provider failed."""

    def __init__(self, symbol: str, reason: str = ""):
        self.symbol = symbol
        self.reason = reason
        message = f"Data unavailable for {symbol}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class PersistenceError(TradeSenseError):
    """A store read or write failed."""


class ConfigError(TradeSenseError):
    """The configuration file could not be parsed or is invalid."""
