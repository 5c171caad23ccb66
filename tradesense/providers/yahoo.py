"""Yahoo Finance data provider using yfinance."""

import math
from typing import Optional

import yfinance as yf

from tradesense.errors import DataUnavailableError
from tradesense.providers.base import BaseDataProvider, ProviderQuote


def _clean(value) -> Optional[float]:
    """Convert a pandas scalar to float, mapping NaN to None."""
    if value is None:
        return None
    value = float(value)
    return None if math.isnan(value) else value


class YahooDataProvider(BaseDataProvider):
    """Quotes and daily closes from Yahoo Finance.
    
    Symbols use Yahoo's exchange suffixes (``TCS.NS``, ``TCS.BO``).
    """

    name = "yahoo"

    def __init__(self, timeout: float = 10.0, history_period: str = "1y"):
        """Initialize the provider.
        
        Args:
            timeout: Per-request timeout in seconds.
            history_period: yfinance period string for close history.
        """
        self.timeout = timeout
        self.history_period = history_period

    def _download(self, symbol: str, period: str):
        try:
            frame = yf.Ticker(symbol).history(
                period=period, interval="1d", timeout=self.timeout
            )
        except Exception as e:
            raise DataUnavailableError(symbol, str(e)) from e
        if frame is None or frame.empty:
            raise DataUnavailableError(symbol, "no data returned")
        return frame

    def get_quote(self, symbol: str) -> ProviderQuote:
        """Get the current quote from the last three months of daily bars.
        
        The last bar is the current session during market hours.
        """
        frame = self._download(symbol, "3mo")
        closes = frame["Close"].tolist()
        volumes = [v for v in frame["Volume"].tolist() if not math.isnan(float(v))]
        
        return ProviderQuote(
            symbol=symbol,
            price=_clean(closes[-1]),
            previous_close=_clean(closes[-2]) if len(closes) > 1 else None,
            volume=_clean(volumes[-1]) if volumes else None,
            avg_volume=sum(volumes) / len(volumes) if volumes else None,
            day_high=_clean(frame["High"].iloc[-1]),
            day_low=_clean(frame["Low"].iloc[-1]),
        )

    def get_history(self, symbol: str) -> list[float]:
        """Get daily closes for the configured period."""
        frame = self._download(symbol, self.history_period)
        return [c for c in (_clean(v) for v in frame["Close"].tolist()) if c is not None]
