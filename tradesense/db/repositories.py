"""Typed repository interfaces for alerts and trade signals."""

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from tradesense.models import Alert, AlertHistoryEntry, TradeSignal


class AlertsRepository(ABC):
    """Persistence contract for alerts and their trigger history.

    Updates are last-write-wins; no concurrency token is used.
    """

    @abstractmethod
    def save_alert(self, alert: Alert) -> int:
        """Insert an alert and return its ID."""

    @abstractmethod
    def get_alert(self, alert_id: int) -> Optional[Alert]:
        """Get an alert by ID."""

    @abstractmethod
    def get_active_alerts(
        self,
        user_id: str,
        on_invalid: Optional[Callable[[int, str, Exception], None]] = None,
    ) -> list[Alert]:
        """Get a user's alerts that are active and not triggered.

        Stored alerts that no longer decode are skipped and reported to
        ``on_invalid`` as (alert ID, symbol, error).
        """

    @abstractmethod
    def update_alert(self, alert_id: int, user_id: str, **fields: Any) -> None:
        """Update alert fields by ID and owner."""

    @abstractmethod
    def add_history(self, entry: AlertHistoryEntry) -> int:
        """Append a trigger history record and return its ID."""

    @abstractmethod
    def get_history(self, user_id: str, limit: int = 50) -> list[AlertHistoryEntry]:
        """Get a user's most recent trigger history, newest first."""


class SignalsRepository(ABC):
    """Persistence contract for trade signals.

    At most one ACTIVE signal may exist per (user, symbol).
    """

    @abstractmethod
    def insert_signal(self, signal: TradeSignal) -> TradeSignal:
        """Insert a signal and return it with its ID.

        Raises:
            PersistenceError: If an ACTIVE signal already exists for the
                same user and symbol, or the write fails.
        """

    @abstractmethod
    def get_signal(self, signal_id: int) -> Optional[TradeSignal]:
        """Get a signal by ID."""

    @abstractmethod
    def get_active_signal(self, user_id: str, symbol: str) -> Optional[TradeSignal]:
        """Get the ACTIVE signal for a user and symbol, if any."""

    @abstractmethod
    def get_signals(
        self, user_id: str, status: Optional[str] = None, limit: int = 50
    ) -> list[TradeSignal]:
        """Get a user's signals, newest first.

        ``status`` may be a concrete status, or ``"CLOSED"`` for every
        non-ACTIVE status.
        """

    @abstractmethod
    def update_signal(self, signal_id: int, user_id: str, **fields: Any) -> bool:
        """Update an ACTIVE signal by ID and owner.

        Closed signals are never reopened or rewritten.

        Returns:
            True if a row was updated.
        """
