"""Telegram Bot API notification dispatcher."""

import html
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

import requests

from tradesense.notifications.base import NotificationDispatcher

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org/bot{token}/sendMessage"


def format_alert_message(payload: dict) -> str:
    """Build the HTML body of an alert notification."""
    symbol = str(payload.get("symbol", "")).replace(".NS", "")
    alert_type = str(payload.get("alert_type", ""))
    emoji = "📈" if "above" in alert_type or "bullish" in alert_type else "📉"
    current_value = payload.get("current_value")
    
    lines = [
        "🔔 <b>Alert Triggered!</b>",
        "",
        f"{emoji} <b>{html.escape(symbol)}</b>",
        html.escape(str(payload.get("message", ""))),
    ]
    if current_value is not None:
        lines += ["", f"<i>Current value: {float(current_value):,.2f}</i>"]
    return "\n".join(lines)


class TelegramDispatcher(NotificationDispatcher):
    """Send alert notifications through a Telegram bot.
    
    Each alert goes to its user's chat from ``chats``, or to the default
    ``chat_id`` for users without one. Deliveries run on a small
    background pool; failures are logged and never reach the caller.
    """

    def __init__(
        self,
        bot_token: str,
        chat_id: Optional[str] = None,
        chats: Optional[dict[str, str]] = None,
        timeout: float = 5.0,
        max_workers: int = 2,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the dispatcher.
        
        Args:
            bot_token: Telegram bot token.
            chat_id: Default chat for users without their own.
            chats: Chat ID per user ID.
            timeout: HTTP timeout in seconds.
            max_workers: Background delivery threads.
            session: Optional requests session (for connection reuse).
        """
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.chats = dict(chats or {})
        self.timeout = timeout
        self._session = session or requests.Session()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="telegram"
        )

    def chat_for(self, user_id: Optional[str]) -> Optional[str]:
        """Chat that receives a user's alerts."""
        return self.chats.get(user_id, self.chat_id) if user_id is not None else self.chat_id

    def send_message(self, text: str, chat_id: Optional[str] = None) -> bool:
        """Send a message synchronously.
        
        Args:
            text: HTML message body.
            chat_id: Target chat; the default chat when omitted.
            
        Returns:
            True if Telegram accepted the message.
        """
        chat_id = chat_id or self.chat_id
        if not self.bot_token or not chat_id:
            logger.warning("Telegram bot token or chat ID not configured")
            return False
        
        try:
            resp = self._session.post(
                TELEGRAM_API_URL.format(token=self.bot_token),
                json={
                    "chat_id": chat_id,
                    "text": text,
                    "parse_mode": "HTML",
                    "disable_web_page_preview": True,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("Telegram send error: %s", e)
            return False
        
        if not resp.ok:
            logger.warning("Telegram send failed: %s", resp.text)
            return False
        return True

    def dispatch(self, channel: str, payload: dict) -> Optional[Future]:
        """Queue a Telegram message for the payload.
        
        Returns:
            The delivery future, or None when the channel is not telegram
            or the user has no chat.
        """
        if channel != "telegram":
            logger.debug("TelegramDispatcher ignoring channel %s", channel)
            return None
        chat_id = self.chat_for(payload.get("user_id"))
        if chat_id is None:
            logger.warning("No Telegram chat for user %s", payload.get("user_id"))
            return None
        return self._executor.submit(self.send_message, format_alert_message(payload), chat_id)

    def close(self) -> None:
        """Wait for queued messages and stop the pool."""
        self._executor.shutdown(wait=True)
