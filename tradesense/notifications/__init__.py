"""Outbound notifications for triggered alerts."""

from tradesense.notifications.base import PUSH_CHANNELS, NotificationDispatcher

__all__ = [
    "NotificationDispatcher",
    "PUSH_CHANNELS",
]
