"""Alert data models."""

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field

Indicator = Literal["price", "rsi", "score", "volume", "macd", "sma_cross"]
Operator = Literal["above", "below", "crosses_above", "crosses_below"]


class AlertCondition(BaseModel):
    """A single condition watched by an alert.

    The meaning of ``value`` depends on the indicator: a rupee level for
    ``price``, a 0-100 index for ``rsi`` and a multiple of average volume
    for ``volume``.
    """

    indicator: Indicator = Field(..., description="Indicator to evaluate")
    operator: Operator = Field(..., description="Comparison operator")
    value: float = Field(..., description="Threshold value")
    compare_to: Optional[str] = Field(
        default=None, alias="compareTo", description="Optional comparison target"
    )

    model_config = {"frozen": True, "populate_by_name": True}


class Alert(BaseModel):
    """Represents a user's alert on a symbol."""

    id: Optional[int] = Field(default=None, description="Database ID")
    user_id: str = Field(..., min_length=1, description="Owning user")
    symbol: str = Field(..., min_length=1, description="Trading symbol (e.g. TCS.NS)")
    alert_type: str = Field(default="price", description="Display category")
    condition: AlertCondition = Field(..., description="Condition to watch")
    is_active: bool = Field(default=True, description="Whether alert is checked")
    is_triggered: bool = Field(default=False, description="Whether alert has fired")
    is_recurring: bool = Field(
        default=False, description="Recurring alerts stay active after firing"
    )
    expires_at: Optional[datetime] = Field(default=None, description="Expiry time")
    notification_channels: list[str] = Field(
        default_factory=list, description="Channels to notify (e.g. telegram)"
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Alert creation timestamp",
    )
    last_checked_at: Optional[datetime] = Field(default=None, description="Last check time")
    triggered_at: Optional[datetime] = Field(default=None, description="Last trigger time")
    triggered_value: Optional[float] = Field(
        default=None, description="Indicator value at last trigger"
    )

    model_config = {"frozen": True}


class AlertHistoryEntry(BaseModel):
    """Immutable record of an alert firing."""

    id: Optional[int] = Field(default=None, description="Database ID")
    alert_id: int = Field(..., description="Alert that fired")
    user_id: str = Field(..., min_length=1, description="Owning user")
    symbol: str = Field(..., min_length=1, description="Trading symbol")
    alert_type: str = Field(default="price", description="Display category")
    condition: AlertCondition = Field(..., description="Condition snapshot")
    triggered_value: float = Field(..., description="Indicator value when fired")
    message: str = Field(default="", description="Notification text")
    notification_sent_to: list[str] = Field(
        default_factory=list, description="Channels notified"
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the alert fired",
    )

    model_config = {"frozen": True}
