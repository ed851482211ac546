"""Type-safe Pydantic models for stream envelopes and REST payloads."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class EnvelopeType(str, Enum):
    """Envelope types consumed by the dashboard."""

    PRICE_UPDATE = "price_update"
    AGENT_THINKING = "agent_thinking"
    AGENT_DECISION = "agent_decision"
    LEADERBOARD_UPDATED = "leaderboard_updated"
    NEWS_UPDATE = "news_update"


def parse_timestamp(value: str) -> datetime | None:
    """Parse an ISO-8601 timestamp, normalized to UTC. Returns None if invalid."""
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _reject_bool(v: Any) -> Any:
    # bool is an int subclass; JSON true/false is never a number here
    if isinstance(v, bool):
        raise ValueError("boolean is not a number")
    return v


# ============================================================================
# Stream
# ============================================================================


class Envelope(BaseModel):
    """Typed push-stream message wrapper."""

    model_config = ConfigDict(frozen=True)

    type: str = Field(strict=True)
    data: Any = None
    timestamp: float = 0

    @field_validator("timestamp", mode="before")
    @classmethod
    def coerce_timestamp(cls, v: Any) -> Any:
        if v is None:
            return 0
        return _reject_bool(v)


class AgentSnapshot(BaseModel):
    """One row of the rolling balance history."""

    model_config = ConfigDict(frozen=True)

    timestamp: int = Field(description="Epoch milliseconds when recorded")
    balances: dict[str, float]

    def __getitem__(self, agent_id: str) -> float:
        return self.balances[agent_id]

    def get(self, agent_id: str, default: float = 0.0) -> float:
        return self.balances.get(agent_id, default)


# ============================================================================
# Roster & leaderboard
# ============================================================================


class Agent(BaseModel):
    """Roster row returned by the agents endpoint."""

    id: str
    name: str = ""
    model: str = ""
    current_balance: float = 0.0
    status: str = "inactive"
    profit_loss: float | None = None
    roi: float | None = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"


class LeaderboardEntry(BaseModel):
    """Ranked leaderboard row.

    Validation is strict: every field must be present with the right primitive
    type. Rows that fail are dropped by the synchronizer, never defaulted.
    """

    model_config = ConfigDict(strict=True, frozen=True, extra="ignore")

    rank: int
    agent_id: str
    agent_name: str
    model: str
    roi: float
    profit_loss: float
    win_rate: float
    total_trades: int
    balance: float
    portfolio_value: float
    total_value: float
    badges: list[str] = Field(default_factory=list)

    @field_validator(
        "rank",
        "roi",
        "profit_loss",
        "win_rate",
        "total_trades",
        "balance",
        "portfolio_value",
        "total_value",
        mode="before",
    )
    @classmethod
    def numbers_not_bools(cls, v: Any) -> Any:
        return _reject_bool(v)

    @field_validator("badges", mode="before")
    @classmethod
    def null_badges(cls, v: Any) -> Any:
        # Go encodes an empty slice as null
        return [] if v is None else v


class ROIHistoryPoint(BaseModel):
    """One ROI sample for an agent."""

    model_config = ConfigDict(strict=True, frozen=True, extra="ignore")

    time: str
    roi: float

    @field_validator("roi", mode="before")
    @classmethod
    def roi_not_bool(cls, v: Any) -> Any:
        return _reject_bool(v)

    @field_validator("time", mode="after")
    @classmethod
    def time_is_iso(cls, v: str) -> str:
        if parse_timestamp(v) is None:
            raise ValueError(f"not an ISO-8601 timestamp: {v!r}")
        return v

    @property
    def at(self) -> datetime:
        parsed = parse_timestamp(self.time)
        if parsed is None:
            raise ValueError(f"not an ISO-8601 timestamp: {self.time!r}")
        return parsed


# ============================================================================
# Market context
# ============================================================================


class StockPrice(BaseModel):
    symbol: str
    price: float = 0.0
    open: float = 0.0
    high: float = 0.0
    low: float = 0.0
    volume: float = 0.0
    source: str = ""
    timestamp: str = ""
    delay_minutes: int = 0


class ScrapedArticle(BaseModel):
    source: str = ""
    title: str
    url: str = ""
    related_stocks: list[str] = Field(default_factory=list)
    scraped_at: str = ""

    @field_validator("related_stocks", mode="before")
    @classmethod
    def null_stocks(cls, v: Any) -> Any:
        return [] if v is None else v


class TweetSentiment(BaseModel):
    id: str
    text: str = ""
    author: str = ""
    author_followers: int = 0
    sentiment_score: float = 0.0
    sentiment_label: str = "neutral"
    impact_score: float = 0.0
    stock_symbols: list[str] = Field(default_factory=list)

    @field_validator("stock_symbols", mode="before")
    @classmethod
    def null_symbols(cls, v: Any) -> Any:
        return [] if v is None else v


class StockSentimentAgg(BaseModel):
    """Aggregated tweet sentiment for one symbol."""

    symbol: str
    tweet_count: int = 0
    avg_sentiment: float = Field(default=0.0, description="Average score in [-1, +1]")
    positive_count: int = 0
    negative_count: int = 0
    neutral_count: int = 0
    top_tweet: TweetSentiment | None = None


class MarketContext(BaseModel):
    """Aggregated market context. Replaced wholesale on every pull."""

    prices: list[StockPrice] = Field(default_factory=list)
    news: list[ScrapedArticle] = Field(default_factory=list)
    tweets: list[TweetSentiment] = Field(default_factory=list)
    stock_sentiments: dict[str, StockSentimentAgg] = Field(default_factory=dict)
    updated_at: str = ""
    fetch_durations: dict[str, Any] = Field(
        default_factory=dict, description="Per-source durations in nanoseconds"
    )

    @field_validator("prices", "news", "tweets", "stock_sentiments", "fetch_durations", mode="before")
    @classmethod
    def null_collections(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            return {} if info.field_name in ("stock_sentiments", "fetch_durations") else []
        return v


# ============================================================================
# Live feeds
# ============================================================================


class ThinkingStep(BaseModel):
    step: str = ""
    observation: str = ""


class Decision(BaseModel):
    """An agent's trading decision with its reasoning trace."""

    agent_id: str
    agent_name: str = ""
    decision_id: str
    action: str
    stock_symbol: str = ""
    quantity: int = 0
    reasoning_summary: str = ""
    confidence: float = 0.0
    risk_level: str = "medium"
    thinking_steps: list[ThinkingStep] = Field(default_factory=list)
    timestamp: float = 0

    @field_validator("action", mode="before")
    @classmethod
    def upper_action(cls, v: Any) -> Any:
        # Forwarded verbatim from the model reply
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("risk_level", mode="before")
    @classmethod
    def lower_risk_level(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return "medium"
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("thinking_steps", mode="before")
    @classmethod
    def null_steps(cls, v: Any) -> Any:
        return [] if v is None else v


class NewsArticle(BaseModel):
    id: str
    title: str
    description: str = ""
    source: str = ""
    url: str = ""
    related_stocks: list[str] = Field(default_factory=list)
    published_at: str = ""
    impact_level: str | None = None

    @field_validator("related_stocks", mode="before")
    @classmethod
    def null_stocks(cls, v: Any) -> Any:
        return [] if v is None else v
