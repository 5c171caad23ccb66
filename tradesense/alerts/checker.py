"""Batch alert checking for one user.

One call to ``AlertBatchRunner.run`` is one check cycle: expired alerts
are deactivated, the rest are grouped by symbol, each symbol's data is
fetched once and every alert on it is evaluated in turn. Symbols are
processed one at a time; provider calls are spaced by the data cache's
rate limiter. A failing symbol or alert is recorded in the summary and
the cycle moves on.

The runner does no locking. Callers must not run two cycles for the same
user at the same time.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from tradesense.alerts.conditions import ConditionEvaluator, CrossingMemory, needs_history
from tradesense.cache import DataCache
from tradesense.db.repositories import AlertsRepository
from tradesense.errors import PersistenceError
from tradesense.models import Alert, AlertHistoryEntry, CheckResult, CheckSummary, ConditionResult
from tradesense.notifications import PUSH_CHANNELS, NotificationDispatcher

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC so they compare with aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _first_line(error: Exception) -> str:
    text = str(error).strip()
    return text.splitlines()[0] if text else type(error).__name__


class AlertBatchRunner:
    """Run alert check cycles for users.

    The runner owns the crossing memory, so crossing baselines survive
    between cycles for as long as the runner does.
    """

    def __init__(
        self,
        repository: AlertsRepository,
        data_cache: DataCache,
        notifier: Optional[NotificationDispatcher] = None,
        memory: Optional[CrossingMemory] = None,
        batch_deadline: Optional[float] = None,
        clock: Optional[Callable[[], float]] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the runner.

        Args:
            repository: Alerts store.
            data_cache: Cache used for quotes and history.
            notifier: Dispatcher for push channels. Notifications are
                skipped when None.
            memory: Crossing memory; a fresh one is created when omitted.
            batch_deadline: Seconds after which remaining symbols are skipped.
            clock: Monotonic time source for the deadline.
            now: Wall-clock source for expiry and timestamps.
        """
        self.repository = repository
        self.data_cache = data_cache
        self.notifier = notifier
        self.memory = memory if memory is not None else CrossingMemory()
        self.evaluator = ConditionEvaluator(self.memory)
        self.batch_deadline = batch_deadline
        self._clock = clock or time.monotonic
        self._now = now or _utcnow

    def run(self, user_id: str) -> CheckSummary:
        """Check all active, non-triggered alerts for a user.

        Args:
            user_id: User whose alerts to check.

        Returns:
            CheckSummary. Always returned, even when some alerts fail.
        """
        started = self._clock()
        now = self._now()
        summary = CheckSummary(timestamp=now)

        def record_invalid(alert_id: int, symbol: str, error: Exception) -> None:
            summary.checked += 1
            summary.errors += 1
            summary.results.append(
                CheckResult(
                    alert_id=alert_id,
                    symbol=symbol or "",
                    error=f"Invalid alert: {_first_line(error)}",
                )
            )

        try:
            alerts = self.repository.get_active_alerts(user_id, on_invalid=record_invalid)
        except PersistenceError as e:
            logger.error("Failed to load alerts for user %s: %s", user_id, e)
            summary.errors += 1
            return summary

        by_symbol = self._group_live_alerts(user_id, alerts, now, summary)

        for index, (symbol, symbol_alerts) in enumerate(by_symbol.items()):
            if self.batch_deadline is not None and self._clock() - started >= self.batch_deadline:
                summary.timed_out = True
                logger.warning(
                    "Alert batch for user %s hit its %.1fs deadline; skipped %d symbols",
                    user_id,
                    self.batch_deadline,
                    len(by_symbol) - index,
                )
                break
            self._check_symbol_safely(user_id, symbol, symbol_alerts, summary)

        logger.info(
            "Checked %d alerts for user %s: %d triggered, %d errors, %d expired",
            summary.checked,
            user_id,
            summary.triggered,
            summary.errors,
            summary.expired,
        )
        return summary

    def _group_live_alerts(
        self, user_id: str, alerts: list[Alert], now: datetime, summary: CheckSummary
    ) -> dict[str, list[Alert]]:
        """Deactivate expired alerts and group the rest by symbol."""
        by_symbol: dict[str, list[Alert]] = {}

        for alert in alerts:
            if alert.expires_at is not None and _as_utc(alert.expires_at) < now:
                try:
                    self.repository.update_alert(alert.id, user_id, is_active=False)
                    summary.expired += 1
                except PersistenceError as e:
                    logger.warning("Failed to deactivate expired alert %s: %s", alert.id, e)
                continue
            by_symbol.setdefault(alert.symbol, []).append(alert)

        return by_symbol

    def _check_symbol_safely(
        self, user_id: str, symbol: str, alerts: list[Alert], summary: CheckSummary
    ) -> None:
        """Check one symbol, turning unexpected failures into per-alert errors."""
        done_before = len(summary.results)
        try:
            self._check_symbol(user_id, symbol, alerts, summary)
        except Exception as e:
            logger.exception("Checking %s for user %s failed", symbol, user_id)
            done = {r.alert_id for r in summary.results[done_before:]}
            for alert in alerts:
                if alert.id in done:
                    continue
                summary.checked += 1
                summary.errors += 1
                summary.results.append(
                    CheckResult(alert_id=alert.id, symbol=symbol, error=f"Check failed: {e}")
                )

    def _check_symbol(
        self, user_id: str, symbol: str, alerts: list[Alert], summary: CheckSummary
    ) -> None:
        """Fetch data for one symbol and evaluate each of its alerts."""
        quote = self.data_cache.get_quote(symbol)

        if quote is None:
            for alert in alerts:
                summary.checked += 1
                summary.errors += 1
                summary.results.append(
                    CheckResult(alert_id=alert.id, symbol=symbol, error="Failed to fetch price")
                )
            return

        history = None
        if any(needs_history(a.condition.indicator) for a in alerts):
            history = self.data_cache.get_history(symbol)

        for alert in alerts:
            summary.checked += 1
            try:
                result = self.evaluator.evaluate(alert.condition, quote, history, symbol, alert.id)
            except Exception as e:
                logger.exception("Evaluating alert %s on %s failed", alert.id, symbol)
                summary.errors += 1
                summary.results.append(
                    CheckResult(alert_id=alert.id, symbol=symbol, error=f"Evaluation failed: {e}")
                )
                continue

            try:
                if result.triggered:
                    self._record_trigger(user_id, alert, result)
                else:
                    self.repository.update_alert(
                        alert.id, user_id, last_checked_at=self._now()
                    )
            except PersistenceError as e:
                logger.warning("Failed to persist check of alert %s: %s", alert.id, e)
                summary.errors += 1
                summary.results.append(
                    CheckResult(
                        alert_id=alert.id,
                        symbol=symbol,
                        triggered=result.triggered,
                        current_value=result.current_value,
                        message=result.message,
                        error=f"Persistence failed: {e}",
                    )
                )
                continue

            if result.triggered:
                summary.triggered += 1
            summary.results.append(
                CheckResult(
                    alert_id=alert.id,
                    symbol=symbol,
                    triggered=result.triggered,
                    current_value=result.current_value,
                    message=result.message,
                )
            )

    def _record_trigger(self, user_id: str, alert: Alert, result: ConditionResult) -> None:
        """Persist a trigger, append history and notify push channels."""
        now = self._now()
        self.repository.update_alert(
            alert.id,
            user_id,
            is_triggered=not alert.is_recurring,
            is_active=alert.is_recurring,
            triggered_at=now,
            triggered_value=result.current_value,
            last_checked_at=now,
        )
        self.repository.add_history(
            AlertHistoryEntry(
                alert_id=alert.id,
                user_id=user_id,
                symbol=alert.symbol,
                alert_type=alert.alert_type,
                condition=alert.condition,
                triggered_value=result.current_value,
                message=result.message,
                notification_sent_to=alert.notification_channels,
                created_at=now,
            )
        )

        if self.notifier is None:
            return

        payload = {
            "user_id": user_id,
            "symbol": alert.symbol,
            "message": result.message,
            "current_value": result.current_value,
            "alert_type": f"{alert.condition.indicator}_{alert.condition.operator}",
        }
        for channel in alert.notification_channels:
            if channel not in PUSH_CHANNELS:
                continue
            try:
                self.notifier.dispatch(channel, payload)
            except Exception as e:
                logger.warning("Failed to dispatch %s notification for alert %s: %s", channel, alert.id, e)
