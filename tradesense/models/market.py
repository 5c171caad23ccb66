"""Market data snapshot models."""

from typing import Optional

from pydantic import BaseModel, Field


class QuoteSnapshot(BaseModel):
    """Point-in-time quote used for alert evaluation."""

    price: float = Field(default=0.0, description="Last traded price")
    previous_close: float = Field(default=0.0, description="Previous session close")
    volume: float = Field(default=0.0, description="Session volume")
    avg_volume: float = Field(default=0.0, description="Average daily volume")
    day_high: Optional[float] = Field(default=None, description="Session high")
    day_low: Optional[float] = Field(default=None, description="Session low")

    model_config = {"frozen": True}


class HistoricalSeries(BaseModel):
    """Chronological close series, oldest first.

    ``highs`` and ``lows`` are usually empty; the history integration only
    supplies closes.
    """

    closes: list[float] = Field(default_factory=list, description="Close prices")
    highs: list[float] = Field(default_factory=list, description="High prices")
    lows: list[float] = Field(default_factory=list, description="Low prices")

    model_config = {"frozen": True}
