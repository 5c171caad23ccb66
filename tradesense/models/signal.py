"""Trade signal data models."""

from datetime import datetime, timedelta, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field

SignalType = Literal["BUY", "SELL"]
SignalStatus = Literal["ACTIVE", "TARGET_HIT", "STOP_LOSS", "EXPIRED", "CANCELLED"]
MarketTrend = Literal["BULLISH", "BEARISH", "NEUTRAL"]
Strength = Literal["STRONG", "MODERATE", "WEAK"]

DEFAULT_SIGNAL_LIFETIME = timedelta(days=14)


class RiskContext(BaseModel):
    """Volatility context attached to an analysis."""

    volatility: Optional[float] = Field(default=None, description="Annualised volatility")
    beta: Optional[float] = Field(default=None, description="Beta against the index")
    market_trend: Optional[MarketTrend] = Field(
        default=None, alias="marketTrend", description="Prevailing market regime"
    )
    atr: Optional[float] = Field(default=None, description="Average True Range")

    model_config = {"frozen": True, "populate_by_name": True}


class Technicals(BaseModel):
    """Technical readings attached to an analysis."""

    rsi: Optional[float] = Field(default=None, description="RSI value")
    adx: Optional[float] = Field(default=None, description="ADX trend strength")
    trend: Optional[str] = Field(default=None, description="Trend label")

    model_config = {"frozen": True}


class AnalysisInput(BaseModel):
    """Externally computed analysis fed to the signal generator."""

    symbol: str = Field(..., min_length=1, description="Trading symbol")
    stock_name: Optional[str] = Field(default=None, description="Company name")
    price: float = Field(..., gt=0, description="Current price")
    score: float = Field(..., ge=0, le=100, description="Composite score (0-100)")
    confidence: float = Field(default=0.5, ge=0, description="Model confidence")
    details: list[str] = Field(default_factory=list, description="Analysis detail lines")
    recommendation: Optional[str] = Field(default=None, description="Recommendation label")
    timeframe: str = Field(default="1M", description="Analysis timeframe (1W, 1M, 3M...)")
    risk: RiskContext = Field(default_factory=RiskContext, description="Risk context")
    technicals: Technicals = Field(default_factory=Technicals, description="Technical readings")

    model_config = {"frozen": True}


class SignalDraft(BaseModel):
    """Accepted signal levels before persistence."""

    signal_type: SignalType = Field(..., description="Trade direction")
    entry_price: float = Field(..., gt=0, description="Entry price")
    target_price: float = Field(..., gt=0, description="Target price")
    stop_loss: float = Field(..., gt=0, description="Stop-loss price")
    score: float = Field(..., description="Analysis score")
    confidence: float = Field(..., ge=0, le=0.99, description="Clamped confidence")
    reasons: list[str] = Field(default_factory=list, max_length=5, description="Top reasons")
    risk_reward: float = Field(..., ge=0, description="Gain/loss ratio")
    strength: Strength = Field(default="MODERATE", description="Signal strength")

    model_config = {"frozen": True}


class SignalGenerationResult(BaseModel):
    """Accept/reject decision from the signal generator."""

    should_generate: bool = Field(..., description="Whether a signal was produced")
    signal: Optional[SignalDraft] = Field(default=None, description="Accepted draft")
    rejection_reason: Optional[str] = Field(default=None, description="Why it was rejected")

    model_config = {"frozen": True}


class TradeSignal(BaseModel):
    """A persisted trade idea and its outcome."""

    id: Optional[int] = Field(default=None, description="Database ID")
    user_id: str = Field(..., min_length=1, description="Owning user")
    symbol: str = Field(..., min_length=1, description="Trading symbol")
    stock_name: Optional[str] = Field(default=None, description="Company name")
    signal_type: SignalType = Field(..., description="Trade direction")
    entry_price: float = Field(..., gt=0, description="Entry price")
    target_price: float = Field(..., gt=0, description="Target price")
    stop_loss: float = Field(..., gt=0, description="Stop-loss price")
    score: Optional[float] = Field(default=None, description="Analysis score")
    confidence: Optional[float] = Field(default=None, ge=0, le=0.99, description="Confidence")
    reasons: list[str] = Field(default_factory=list, max_length=5, description="Top reasons")
    risk_reward: Optional[float] = Field(default=None, description="Gain/loss ratio")
    timeframe: str = Field(default="1M", description="Analysis timeframe")
    status: SignalStatus = Field(default="ACTIVE", description="Lifecycle status")
    exit_price: Optional[float] = Field(default=None, description="Exit price")
    exit_date: Optional[datetime] = Field(default=None, description="Exit timestamp")
    return_pct: Optional[float] = Field(default=None, description="Return in percent")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp",
    )
    expires_at: Optional[datetime] = Field(default=None, description="Expiry timestamp")

    model_config = {"frozen": True}


class SignalOutcome(BaseModel):
    """Resolution of an active signal."""

    status: Literal["TARGET_HIT", "STOP_LOSS", "EXPIRED"] = Field(
        ..., description="Resolved status"
    )
    exit_price: float = Field(..., description="Exit price")
    return_pct: float = Field(..., description="Return in percent")

    model_config = {"frozen": True}


class SignalStats(BaseModel):
    """Performance summary over a set of signals."""

    total_signals: int = Field(default=0, ge=0)
    active_signals: int = Field(default=0, ge=0)
    closed_signals: int = Field(default=0, ge=0)
    wins: int = Field(default=0, ge=0)
    losses: int = Field(default=0, ge=0)
    win_rate: float = Field(default=0.0, ge=0, le=100)
    avg_return: float = Field(default=0.0)
    total_return: float = Field(default=0.0)
    best_trade: float = Field(default=0.0)
    worst_trade: float = Field(default=0.0)

    model_config = {"frozen": True}
