"""Alert check result models."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


class ConditionResult(BaseModel):
    """Outcome of evaluating one condition."""

    triggered: bool = Field(..., description="Whether the condition fired")
    current_value: float = Field(default=0.0, description="Computed indicator value")
    message: str = Field(default="", description="Human-readable description")

    model_config = {"frozen": True}


class CheckResult(BaseModel):
    """Outcome of checking one alert in a batch."""

    alert_id: Optional[int] = Field(default=None, description="Alert ID")
    symbol: str = Field(..., description="Trading symbol")
    triggered: bool = Field(default=False, description="Whether the alert fired")
    current_value: float = Field(default=0.0, description="Computed indicator value")
    message: str = Field(default="", description="Human-readable description")
    error: Optional[str] = Field(default=None, description="Error, if the check failed")

    model_config = {"frozen": True}


class CheckSummary(BaseModel):
    """Aggregate of one batch run."""

    checked: int = Field(default=0, ge=0, description="Alerts evaluated")
    triggered: int = Field(default=0, ge=0, description="Alerts that fired")
    errors: int = Field(default=0, ge=0, description="Alerts that failed")
    expired: int = Field(default=0, ge=0, description="Alerts deactivated on expiry")
    timed_out: bool = Field(default=False, description="Batch deadline was hit")
    results: list[CheckResult] = Field(default_factory=list, description="Per-alert results")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the batch started",
    )
