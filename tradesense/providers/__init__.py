"""Market data providers for TradeSense."""

from tradesense.providers.base import BaseDataProvider, ProviderQuote, split_exchange_suffix

__all__ = [
    "BaseDataProvider",
    "ProviderQuote",
    "split_exchange_suffix",
]
