"""Persistence for TradeSense."""

from tradesense.db.repositories import AlertsRepository, SignalsRepository
from tradesense.db.store import DataStore

__all__ = [
    "AlertsRepository",
    "DataStore",
    "SignalsRepository",
]
