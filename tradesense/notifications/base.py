"""Notification dispatcher contract."""

from abc import ABC, abstractmethod

# Channels that need an outbound push when an alert fires
PUSH_CHANNELS = frozenset({"telegram"})


class NotificationDispatcher(ABC):
    """Fire-and-forget delivery of alert notifications."""

    @abstractmethod
    def dispatch(self, channel: str, payload: dict) -> None:
        """Queue a notification for delivery.
        
        Args:
            channel: Channel name (e.g. "telegram").
            payload: Notification data: user_id, symbol, message,
                current_value and alert_type.
        """

    def close(self) -> None:
        """Wait for queued deliveries to finish."""
