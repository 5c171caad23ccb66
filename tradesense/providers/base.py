"""Data provider contract for TradeSense."""

from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel, Field


class ProviderQuote(BaseModel):
    """Quote as returned by a data provider. Missing fields stay None."""

    symbol: str = Field(..., description="Trading symbol")
    price: Optional[float] = Field(default=None, description="Last traded price")
    previous_close: Optional[float] = Field(default=None, description="Previous close")
    volume: Optional[float] = Field(default=None, description="Session volume")
    avg_volume: Optional[float] = Field(default=None, description="Average daily volume")
    day_high: Optional[float] = Field(default=None, description="Session high")
    day_low: Optional[float] = Field(default=None, description="Session low")

    model_config = {"frozen": True}


class BaseDataProvider(ABC):
    """Abstract base class for market data providers.
    
    Implementations must raise DataUnavailableError on any fetch failure
    and apply their own per-call network timeout.
    """

    name: str = "base"

    @abstractmethod
    def get_quote(self, symbol: str) -> ProviderQuote:
        """Get the current quote for a symbol.
        
        Args:
            symbol: Trading symbol.
            
        Returns:
            ProviderQuote with current market data.
            
        Raises:
            DataUnavailableError: If the quote cannot be fetched.
        """
        pass

    @abstractmethod
    def get_history(self, symbol: str) -> list[float]:
        """Get daily close prices, oldest first.
        
        Args:
            symbol: Trading symbol.
            
        Returns:
            List of closes. May be empty.
            
        Raises:
            DataUnavailableError: If the history cannot be fetched.
        """
        pass


def split_exchange_suffix(symbol: str) -> tuple[str, str]:
    """Split a Yahoo-style symbol into (base symbol, exchange).
    
    ``TCS.NS`` -> (``TCS``, ``NSE``); ``TCS.BO`` -> (``TCS``, ``BSE``);
    anything else is treated as NSE.
    """
    upper = symbol.upper()
    if upper.endswith(".NS"):
        return upper[:-3], "NSE"
    if upper.endswith(".BO"):
        return upper[:-3], "BSE"
    return upper, "NSE"
