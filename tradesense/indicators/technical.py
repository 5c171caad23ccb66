"""Technical indicator calculations for alert evaluation.

Series are aligned with the input prices: positions without enough
look-back hold NaN, so ``result[-1]`` is always the latest reading.
"""

import math


def calculate_sma(prices: list[float], period: int) -> list[float]:
    """Calculate Simple Moving Average.
    
    Args:
        prices: List of price values (typically close prices)
        period: Number of periods for the moving average
        
    Returns:
        List of SMA values. First (period-1) values will be NaN.
    """
    if len(prices) < period or period < 1:
        return [float('nan')] * len(prices)
    
    result = [float('nan')] * (period - 1)
    window_sum = sum(prices[:period])
    result.append(window_sum / period)
    
    # Rolling window sum
    for i in range(period, len(prices)):
        window_sum += prices[i] - prices[i - period]
        result.append(window_sum / period)
    
    return result


def calculate_rsi(prices: list[float], period: int = 14) -> list[float]:
    """Calculate Relative Strength Index.
    
    Uses Wilder's smoothing: the first average gain/loss is the simple mean
    of the first `period` changes, later averages are
    ``(prev * (period - 1) + current) / period``.
    
    Args:
        prices: List of price values (typically close prices)
        period: RSI period (default 14)
        
    Returns:
        List of RSI values (0-100). First `period` values will be NaN.
    """
    if len(prices) < period + 1 or period < 1:
        return [float('nan')] * len(prices)
    
    changes = [prices[i] - prices[i - 1] for i in range(1, len(prices))]
    gains = [max(0.0, c) for c in changes]
    losses = [abs(min(0.0, c)) for c in changes]
    
    avg_gain = sum(gains[:period]) / period
    avg_loss = sum(losses[:period]) / period
    
    result = [float('nan')] * period
    result.append(_rsi_from_averages(avg_gain, avg_loss))
    
    for i in range(period, len(changes)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period
        result.append(_rsi_from_averages(avg_gain, avg_loss))
    
    return result


def _rsi_from_averages(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        # Flat series sits at the midpoint
        return 100.0 if avg_gain > 0 else 50.0
    rs = avg_gain / avg_loss
    return 100 - (100 / (1 + rs))


def valid_values(series: list[float]) -> list[float]:
    """Drop the NaN warm-up values from an indicator series."""
    return [v for v in series if not math.isnan(v)]
