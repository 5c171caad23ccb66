"""Trade signal lifecycle: create, cancel, resolve and list."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from tradesense.cache import DataCache
from tradesense.db.repositories import SignalsRepository
from tradesense.errors import PersistenceError
from tradesense.models import AnalysisInput, SignalStats, TradeSignal
from tradesense.models.signal import DEFAULT_SIGNAL_LIFETIME
from tradesense.signals.generator import generate_signal
from tradesense.signals.stats import calculate_signal_stats
from tradesense.signals.tracker import check_outcome

logger = logging.getLogger(__name__)

DUPLICATE_SIGNAL_REASON = "Active signal already exists for this stock"
STATS_WINDOW = 1000


class SignalService:
    """Manage a user's trade signals on top of a signals repository."""

    def __init__(
        self,
        repository: SignalsRepository,
        data_cache: Optional[DataCache] = None,
        expiry_days: Optional[int] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the service.

        Args:
            repository: Signals store.
            data_cache: Quote source for outcome checks.
            expiry_days: Signal lifetime in days; 14 when omitted.
            now: Wall-clock source.
        """
        self.repository = repository
        self.data_cache = data_cache
        self.lifetime = (
            timedelta(days=expiry_days) if expiry_days is not None else DEFAULT_SIGNAL_LIFETIME
        )
        self._now = now or (lambda: datetime.now(timezone.utc))

    def create_signal(
        self, user_id: str, analysis: AnalysisInput
    ) -> tuple[Optional[TradeSignal], Optional[str]]:
        """Generate and store a signal for an analysis.

        Args:
            user_id: Owning user.
            analysis: Analysis for one symbol.

        Returns:
            Tuple of (stored signal, None) on success or (None, reason)
            when the analysis is rejected.

        Raises:
            PersistenceError: If the insert fails for another reason.
        """
        result = generate_signal(analysis)
        if not result.should_generate or result.signal is None:
            logger.info("Signal for %s rejected: %s", analysis.symbol, result.rejection_reason)
            return None, result.rejection_reason

        if self.repository.get_active_signal(user_id, analysis.symbol) is not None:
            return None, DUPLICATE_SIGNAL_REASON

        draft = result.signal
        now = self._now()
        signal = TradeSignal(
            user_id=user_id,
            symbol=analysis.symbol,
            stock_name=analysis.stock_name,
            signal_type=draft.signal_type,
            entry_price=draft.entry_price,
            target_price=draft.target_price,
            stop_loss=draft.stop_loss,
            score=draft.score,
            confidence=draft.confidence,
            reasons=draft.reasons,
            risk_reward=draft.risk_reward,
            timeframe=analysis.timeframe,
            created_at=now,
            expires_at=now + self.lifetime,
        )

        try:
            stored = self.repository.insert_signal(signal)
        except PersistenceError:
            # Lost a race with another insert for the same symbol
            if self.repository.get_active_signal(user_id, analysis.symbol) is not None:
                return None, DUPLICATE_SIGNAL_REASON
            raise

        logger.info(
            "Created %s signal %s for %s (entry %.2f, target %.2f, stop %.2f)",
            stored.signal_type,
            stored.id,
            stored.symbol,
            stored.entry_price,
            stored.target_price,
            stored.stop_loss,
        )
        return stored, None

    def cancel_signal(self, user_id: str, signal_id: int) -> bool:
        """Cancel an ACTIVE signal.

        Returns:
            True if the signal was active and is now cancelled.
        """
        return self.repository.update_signal(
            signal_id, user_id, status="CANCELLED", exit_date=self._now()
        )

    def check_active_signals(self, user_id: str) -> dict:
        """Resolve a user's ACTIVE signals against current prices.

        Signals are grouped by symbol so each symbol is quoted once. The
        session high and low from the quote feed the outcome check.

        Args:
            user_id: Owning user.

        Returns:
            Dict with ``checked``, ``updated`` and ``updates`` (id, symbol,
            status, return_pct per resolved signal).
        """
        if self.data_cache is None:
            raise ValueError("A data cache is required to check signals")

        signals = self.repository.get_signals(user_id, status="ACTIVE", limit=STATS_WINDOW)
        if not signals:
            return {"checked": 0, "updated": 0, "updates": []}

        by_symbol: dict[str, list[TradeSignal]] = {}
        for signal in signals:
            by_symbol.setdefault(signal.symbol, []).append(signal)

        updates = []
        for symbol, symbol_signals in by_symbol.items():
            quote = self.data_cache.get_quote(symbol)
            if quote is None or quote.price <= 0:
                logger.warning("Skipping signal check for %s: no price", symbol)
                continue

            now = self._now()
            for signal in symbol_signals:
                outcome = check_outcome(
                    signal,
                    quote.price,
                    session_high=quote.day_high,
                    session_low=quote.day_low,
                    now=now,
                )
                if outcome is None:
                    continue

                try:
                    updated = self.repository.update_signal(
                        signal.id,
                        user_id,
                        status=outcome.status,
                        exit_price=outcome.exit_price,
                        exit_date=now,
                        return_pct=outcome.return_pct,
                    )
                except PersistenceError as e:
                    logger.warning("Failed to close signal %s: %s", signal.id, e)
                    continue

                if updated:
                    updates.append(
                        {
                            "id": signal.id,
                            "symbol": symbol,
                            "status": outcome.status,
                            "return_pct": outcome.return_pct,
                        }
                    )

        logger.info(
            "Checked %d signals for user %s: %d closed", len(signals), user_id, len(updates)
        )
        return {"checked": len(signals), "updated": len(updates), "updates": updates}

    def list_signals(
        self, user_id: str, status: Optional[str] = None, limit: int = 50
    ) -> list[TradeSignal]:
        """List a user's signals, newest first.

        Args:
            user_id: Owning user.
            status: None for all, "ACTIVE", "CLOSED" or a concrete status.
            limit: Maximum signals to return.
        """
        return self.repository.get_signals(user_id, status=status, limit=limit)

    def get_stats(self, user_id: str) -> SignalStats:
        """Performance statistics over a user's recent signals."""
        return calculate_signal_stats(
            self.repository.get_signals(user_id, status=None, limit=STATS_WINDOW)
        )
