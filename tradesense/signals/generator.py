"""Trade signal generation from analysis results.

Turns an externally computed analysis (score, confidence, risk context,
technical readings) into an accept/reject decision. Accepted signals carry
ATR-based entry, target and stop-loss levels. Gates run in a fixed order
and the first failure is returned as the rejection reason.
"""

from typing import Optional

from tradesense.models import AnalysisInput, SignalDraft, SignalGenerationResult
from tradesense.models.signal import MarketTrend, SignalType, Strength

# Score thresholds
STRONG_BUY_SCORE = 75
MIN_BUY_SCORE = 65
MAX_SELL_SCORE = 35
STRONG_SELL_SCORE = 25

# Confidence thresholds
MIN_CONFIDENCE = 0.50
HIGH_CONFIDENCE = 0.70
LOW_CONFIDENCE = 0.60
MAX_CONFIDENCE = 0.99

# ADX trend strength
TRENDING_ADX = 25
WEAK_TREND_ADX = 20

# Stop-loss = entry -/+ ATR x 1.5, target = entry +/- ATR x 2.5
ATR_SL_MULTIPLIER = 1.5
ATR_TARGET_MULTIPLIER = 2.5
STRENGTH_MULTIPLIERS = {
    "STRONG": (0.85, 1.15),
    "MODERATE": (1.0, 1.0),
    "WEAK": (1.2, 0.85),
}

# Used when ATR is missing or zero
FALLBACK_SL_PCT = 1.5
FALLBACK_TARGET_PCT = 3.0

SHORT_TIMEFRAMES = {"1W": 0.7}
LONG_TIMEFRAMES = {"3M": 1.3, "6M": 1.3, "1Y": 1.3}

MIN_RISK_REWARD = 1.5
MAX_REASONS = 5
REASON_MARKERS = ("✅", "🔥", "📈", "📉", "⚠️")


def normalize_confidence(confidence: float) -> float:
    """Map confidence to [0, 0.99], treating values above 1 as percentages."""
    if confidence > 1:
        confidence = confidence / 100
    return min(max(confidence, 0.0), MAX_CONFIDENCE)


def check_regime(
    signal_type: SignalType,
    market_trend: Optional[MarketTrend],
    adx: Optional[float] = None,
) -> tuple[bool, Strength]:
    """Check whether a signal direction fits the market regime.

    Args:
        signal_type: BUY or SELL.
        market_trend: Prevailing market trend, if known.
        adx: ADX reading; above 25 is trending, below 20 (or missing) is weak.

    Returns:
        Tuple of (compatible, regime strength).
    """
    if market_trend is None:
        return True, "WEAK"

    trending = adx is not None and adx > TRENDING_ADX
    weak_trend = adx is None or adx < WEAK_TREND_ADX
    aligned = "BULLISH" if signal_type == "BUY" else "BEARISH"

    if market_trend == aligned:
        return True, "STRONG" if trending else "MODERATE"
    if market_trend == "NEUTRAL":
        return True, "MODERATE"

    # Counter-trend signal, allowed only against a weak trend
    return weak_trend, "WEAK"


def classify_strength(
    score: float, confidence: float, regime_strength: Strength
) -> Strength:
    """Classify signal strength from score, confidence and regime."""
    extreme_score = score >= STRONG_BUY_SCORE or score <= STRONG_SELL_SCORE

    if regime_strength == "WEAK" or confidence < LOW_CONFIDENCE:
        return "WEAK"
    if extreme_score and confidence >= HIGH_CONFIDENCE:
        return "STRONG"
    return "MODERATE"


def risk_reward_ratio(entry: float, target: float, stop_loss: float) -> float:
    """Potential gain over potential loss, 0 when there is no risk."""
    potential_gain = abs(target - entry)
    potential_loss = abs(stop_loss - entry)
    if potential_loss <= 0:
        return 0.0
    return potential_gain / potential_loss


def calculate_levels(
    price: float,
    signal_type: SignalType,
    atr: Optional[float] = None,
    strength: Strength = "MODERATE",
) -> tuple[float, float, float]:
    """Calculate target and stop-loss levels.

    ATR distances are scaled by strength: STRONG tightens the stop and
    widens the target, WEAK does the opposite. Without a usable ATR the
    fixed percentage moves apply.

    Args:
        price: Entry price.
        signal_type: BUY or SELL.
        atr: Average True Range.
        strength: Signal strength.

    Returns:
        Tuple of (target, stop_loss, risk_reward), rounded to 2 decimals.
    """
    direction = 1 if signal_type == "BUY" else -1

    if atr is not None and atr > 0:
        sl_scale, target_scale = STRENGTH_MULTIPLIERS[strength]
        stop_distance = atr * ATR_SL_MULTIPLIER * sl_scale
        target_distance = atr * ATR_TARGET_MULTIPLIER * target_scale
    else:
        stop_distance = price * FALLBACK_SL_PCT / 100
        target_distance = price * FALLBACK_TARGET_PCT / 100

    target = round(price + direction * target_distance, 2)
    stop_loss = round(price - direction * stop_distance, 2)
    return target, stop_loss, round(risk_reward_ratio(price, target, stop_loss), 2)


def scale_for_timeframe(
    price: float, target: float, stop_loss: float, timeframe: str
) -> tuple[float, float]:
    """Scale both distances from entry for the analysis timeframe.

    Shorter timeframes get tighter levels and longer ones wider levels.
    """
    factor = SHORT_TIMEFRAMES.get(timeframe) or LONG_TIMEFRAMES.get(timeframe) or 1.0
    if factor == 1.0:
        return target, stop_loss
    return (
        round(price + (target - price) * factor, 2),
        round(price - (price - stop_loss) * factor, 2),
    )


def extract_reasons(
    details: list[str], regime_strength: Strength, market_trend: Optional[MarketTrend]
) -> list[str]:
    """Pick highlighted analysis details as signal reasons."""
    reasons = [d for d in details if any(marker in d for marker in REASON_MARKERS)]
    if regime_strength == "STRONG" and market_trend:
        reasons.insert(0, f"📊 {market_trend} market (aligned)")
    return reasons[:MAX_REASONS]


def _reject(reason: str) -> SignalGenerationResult:
    return SignalGenerationResult(should_generate=False, rejection_reason=reason)


def generate_signal(analysis: AnalysisInput) -> SignalGenerationResult:
    """Generate a trade signal from an analysis.

    Args:
        analysis: Analysis result for one symbol.

    Returns:
        SignalGenerationResult. A rejection is a normal result with
        ``should_generate=False`` and a reason.
    """
    score = analysis.score
    entry = round(analysis.price, 2)
    confidence = normalize_confidence(analysis.confidence)

    if score >= MIN_BUY_SCORE:
        signal_type: SignalType = "BUY"
    elif score <= MAX_SELL_SCORE:
        signal_type = "SELL"
    else:
        return _reject(
            f"Score {score:g} is in neutral zone ({MAX_SELL_SCORE}-{MIN_BUY_SCORE}). "
            f"Need ≥{MIN_BUY_SCORE} for BUY or ≤{MAX_SELL_SCORE} for SELL."
        )

    if confidence < MIN_CONFIDENCE:
        return _reject(
            f"Confidence {confidence * 100:.0f}% is below minimum {MIN_CONFIDENCE * 100:.0f}%"
        )

    market_trend = analysis.risk.market_trend
    adx = analysis.technicals.adx
    compatible, regime_strength = check_regime(signal_type, market_trend, adx)
    if not compatible:
        adx_text = f"{adx:.0f}" if adx is not None else "n/a"
        return _reject(
            f"{signal_type} signal blocked: Market is {market_trend} with strong ADX ({adx_text})"
        )

    strength = classify_strength(score, confidence, regime_strength)

    target, stop_loss, _ = calculate_levels(entry, signal_type, analysis.risk.atr, strength)
    target, stop_loss = scale_for_timeframe(entry, target, stop_loss, analysis.timeframe)

    if entry <= 0 or target <= 0 or stop_loss <= 0:
        return _reject(
            f"Computed levels are not positive (entry {entry}, target {target}, stop {stop_loss})"
        )

    risk_reward = risk_reward_ratio(entry, target, stop_loss)
    if risk_reward < MIN_RISK_REWARD:
        return _reject(
            f"Risk-reward ratio {risk_reward:.2f} is below minimum {MIN_RISK_REWARD}"
        )

    return SignalGenerationResult(
        should_generate=True,
        signal=SignalDraft(
            signal_type=signal_type,
            entry_price=entry,
            target_price=target,
            stop_loss=stop_loss,
            score=score,
            confidence=confidence,
            reasons=extract_reasons(analysis.details, regime_strength, market_trend),
            risk_reward=round(risk_reward, 2),
            strength=strength,
        ),
    )


def calculate_current_pnl(
    signal_type: SignalType, entry_price: float, current_price: float
) -> tuple[float, float]:
    """Calculate live P&L for an open signal.

    Returns:
        Tuple of (pnl per share, pnl percent).
    """
    if signal_type == "BUY":
        pnl = current_price - entry_price
    else:
        pnl = entry_price - current_price
    return pnl, pnl / entry_price * 100
