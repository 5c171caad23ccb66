"""Alert condition evaluation.

Evaluates one alert condition against a quote snapshot and, for
indicator conditions, the close history. Crossing operators compare the
current reading with the previous reading remembered for the same alert,
so the first observation for an alert only sets the baseline.
"""

import logging
from typing import Optional

from tradesense.indicators import calculate_rsi, calculate_sma, valid_values
from tradesense.models import AlertCondition, ConditionResult, HistoricalSeries, QuoteSnapshot

logger = logging.getLogger(__name__)

RSI_PERIOD = 14
SMA_FAST = 50
SMA_SLOW = 200

# Indicators computed from close history rather than the quote
HISTORY_INDICATORS = frozenset({"rsi", "sma_cross", "macd", "score"})


def needs_history(indicator: str) -> bool:
    """Check whether an indicator is computed from close history."""
    return indicator in HISTORY_INDICATORS


def clean_symbol(symbol: str) -> str:
    """Strip the NSE suffix for display (TCS.NS -> TCS)."""
    return symbol.replace(".NS", "")


def format_inr(value: float) -> str:
    """Format a number with Indian digit grouping (1,50,000.5)."""
    sign = "-" if value < 0 else ""
    text = f"{abs(value):.3f}".rstrip("0").rstrip(".")
    integer, _, fraction = text.partition(".")

    if len(integer) > 3:
        head, tail = integer[:-3], integer[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        integer = ",".join(groups + [tail])

    return f"{sign}{integer}.{fraction}" if fraction else f"{sign}{integer}"


class CrossingMemory:
    """Last observed value per (alert, indicator).

    Lives as long as its owner. A fresh memory means every crossing
    condition starts from a new baseline and cannot fire on its first
    observation.
    """

    def __init__(self):
        self._values: dict[tuple[str, str], float] = {}

    @staticmethod
    def key(alert_id, indicator: str) -> tuple[str, str]:
        return (str(alert_id), indicator)

    def get(self, alert_id, indicator: str) -> Optional[float]:
        return self._values.get(self.key(alert_id, indicator))

    def set(self, alert_id, indicator: str, value: float) -> None:
        self._values[self.key(alert_id, indicator)] = value

    def forget(self, alert_id) -> None:
        """Drop every remembered value for an alert."""
        alert_key = str(alert_id)
        for key in [k for k in self._values if k[0] == alert_key]:
            del self._values[key]

    def clear(self) -> None:
        self._values.clear()

    def __len__(self) -> int:
        return len(self._values)


class ConditionEvaluator:
    """Evaluate alert conditions against market data.

    The evaluator never raises for data problems: missing or short history
    and unknown indicators produce a non-triggered result with a message.
    """

    def __init__(self, memory: Optional[CrossingMemory] = None):
        """Initialize the evaluator.

        Args:
            memory: Crossing memory to read and update. A private one is
                created when omitted.
        """
        self.memory = memory if memory is not None else CrossingMemory()

    def evaluate(
        self,
        condition: AlertCondition,
        quote: QuoteSnapshot,
        history: Optional[HistoricalSeries],
        symbol: str,
        alert_id,
    ) -> ConditionResult:
        """Evaluate one condition.

        Args:
            condition: Condition to check.
            quote: Current quote snapshot.
            history: Close history, required for rsi and sma_cross.
            symbol: Trading symbol, used in messages.
            alert_id: Alert identity scoping the crossing memory.

        Returns:
            ConditionResult with the trigger decision, computed value and message.
        """
        indicator = condition.indicator

        if indicator == "price":
            return self._check_price(condition, quote, symbol, alert_id)
        elif indicator == "volume":
            return self._check_volume(condition, quote, symbol)
        elif indicator == "rsi":
            if history is None:
                return ConditionResult(triggered=False, message="No data")
            return self._check_rsi(condition, history, symbol, alert_id)
        elif indicator == "sma_cross":
            if history is None:
                return ConditionResult(triggered=False, message="No data")
            return self._check_sma_cross(condition, history, symbol)

        # macd and score have no evaluation rule
        logger.warning("Unknown indicator %r for alert %s on %s", indicator, alert_id, symbol)
        return ConditionResult(triggered=False, message=f"Unknown indicator: {indicator}")

    def _compare(self, condition: AlertCondition, current: float, alert_id) -> bool:
        """Apply the condition operator, updating crossing memory when used."""
        threshold = condition.value
        operator = condition.operator

        if operator == "above":
            return current > threshold
        if operator == "below":
            return current < threshold

        previous = self.memory.get(alert_id, condition.indicator)
        self.memory.set(alert_id, condition.indicator, current)
        if previous is None:
            return False
        if operator == "crosses_above":
            return previous <= threshold and current > threshold
        return previous >= threshold and current < threshold

    def _check_price(
        self, condition: AlertCondition, quote: QuoteSnapshot, symbol: str, alert_id
    ) -> ConditionResult:
        current = quote.price
        triggered = self._compare(condition, current, alert_id)
        name = clean_symbol(symbol)
        level = format_inr(condition.value)

        if condition.operator == "above":
            message = f"{name} is above ₹{level} (now ₹{current:.2f})"
        elif condition.operator == "below":
            message = f"{name} is below ₹{level} (now ₹{current:.2f})"
        elif condition.operator == "crosses_above":
            message = f"{name} crossed above ₹{level}"
        else:
            message = f"{name} crossed below ₹{level}"

        return ConditionResult(triggered=triggered, current_value=current, message=message)

    def _check_volume(
        self, condition: AlertCondition, quote: QuoteSnapshot, symbol: str
    ) -> ConditionResult:
        ratio = quote.volume / quote.avg_volume if quote.avg_volume > 0 else 0.0
        return ConditionResult(
            triggered=ratio >= condition.value,
            current_value=ratio,
            message=f"{clean_symbol(symbol)} volume spike: {ratio:.1f}x average",
        )

    def _check_rsi(
        self, condition: AlertCondition, history: HistoricalSeries, symbol: str, alert_id
    ) -> ConditionResult:
        name = clean_symbol(symbol)
        closes = history.closes

        if len(closes) < RSI_PERIOD + 1:
            return ConditionResult(
                triggered=False,
                message=(
                    f"{name}: not enough history for RSI "
                    f"({len(closes)} closes, need {RSI_PERIOD + 1})"
                ),
            )

        rsi = calculate_rsi(closes, RSI_PERIOD)[-1]
        triggered = self._compare(condition, rsi, alert_id)
        direction = "above" if condition.operator in ("above", "crosses_above") else "below"
        verb = "crossed" if condition.operator.startswith("crosses") else "is"

        return ConditionResult(
            triggered=triggered,
            current_value=rsi,
            message=f"{name} RSI {verb} {direction} {condition.value:g} (now {rsi:.1f})",
        )

    def _check_sma_cross(
        self, condition: AlertCondition, history: HistoricalSeries, symbol: str
    ) -> ConditionResult:
        name = clean_symbol(symbol)
        sma_fast = valid_values(calculate_sma(history.closes, SMA_FAST))
        sma_slow = valid_values(calculate_sma(history.closes, SMA_SLOW))

        if len(sma_fast) < 2 or len(sma_slow) < 2:
            return ConditionResult(
                triggered=False,
                message=(
                    f"{name}: not enough history for SMA{SMA_FAST}/SMA{SMA_SLOW} "
                    f"({len(history.closes)} closes, need {SMA_SLOW + 1})"
                ),
            )

        curr_fast, prev_fast = sma_fast[-1], sma_fast[-2]
        curr_slow, prev_slow = sma_slow[-1], sma_slow[-2]
        spread = curr_fast - curr_slow
        operator = condition.operator

        if operator == "crosses_above":
            triggered = prev_fast <= prev_slow and curr_fast > curr_slow
            message = f"{name} Golden Cross! SMA50 crossed above SMA200"
        elif operator == "crosses_below":
            triggered = prev_fast >= prev_slow and curr_fast < curr_slow
            message = f"{name} Death Cross! SMA50 crossed below SMA200"
        elif operator == "above":
            triggered = curr_fast > curr_slow
            message = f"{name} SMA50 is above SMA200 (spread {spread:.2f})"
        else:
            triggered = curr_fast < curr_slow
            message = f"{name} SMA50 is below SMA200 (spread {spread:.2f})"

        return ConditionResult(triggered=triggered, current_value=spread, message=message)
