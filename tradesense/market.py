"""NSE market-hours predicate.

Pure functions: the caller supplies ``now``. Whether a check cycle runs
while the market is closed is the scheduler's decision.
"""

from datetime import datetime, time, timedelta, timezone
from typing import Optional

IST = timezone(timedelta(hours=5, minutes=30), name="IST")

# Market hours: 9:15 AM to 3:30 PM IST, both ends inclusive
MARKET_OPEN = time(9, 15)
MARKET_CLOSE = time(15, 30)


def to_ist(now: datetime) -> datetime:
    """Convert a timestamp to IST. Naive timestamps are taken as UTC."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(IST)


def is_market_open(now: datetime) -> bool:
    """Check if the Indian stock market is open at ``now``.
    
    Args:
        now: Timestamp to check.
        
    Returns:
        True on weekdays between 09:15 and 15:30 IST inclusive.
    """
    local = to_ist(now)
    
    # Saturday = 5, Sunday = 6
    if local.weekday() >= 5:
        return False
    
    # Minute resolution: 15:30:59 still counts as 15:30
    current = local.time().replace(second=0, microsecond=0)
    return MARKET_OPEN <= current <= MARKET_CLOSE


def get_market_status(now: Optional[datetime] = None) -> dict:
    """Get detailed market status.
    
    Args:
        now: Timestamp to describe. Defaults to the current time.
    
    Returns:
        Dictionary with market status information.
    """
    now = now or datetime.now(timezone.utc)
    local = to_ist(now)
    is_open = is_market_open(now)
    
    if is_open:
        message = "Market is OPEN"
    elif local.weekday() >= 5:
        message = "Market closed (Weekend). Next open: Monday 9:15 AM"
    elif local.time() < MARKET_OPEN:
        message = "Market opens at 9:15 AM (Pre-market)"
    else:
        message = "Market closed for today (Post-market)"
    
    return {
        "is_open": is_open,
        "message": message,
        "current_time": local.strftime("%H:%M:%S"),
        "date": local.strftime("%Y-%m-%d"),
        "day": local.strftime("%A"),
    }
