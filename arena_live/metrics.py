"""Derived metrics: pure functions turning raw samples into chart-ready values."""

from __future__ import annotations

import math
from collections import OrderedDict
from datetime import datetime, tzinfo
from enum import Enum
from typing import Any, Iterable, Sequence

from pydantic import BaseModel

from arena_live.models import Agent, AgentSnapshot, ROIHistoryPoint, StockSentimentAgg


def round_half_up(value: float) -> int:
    """Round halves towards +inf, matching JavaScript's ``Math.round``."""
    return math.floor(value + 0.5)


def _rois(points: Sequence[ROIHistoryPoint | float]) -> list[float]:
    return [p.roi if isinstance(p, ROIHistoryPoint) else float(p) for p in points]


# ============================================================================
# Sparkline
# ============================================================================


class Trend(str, Enum):
    UP = "up"
    DOWN = "down"
    NO_DATA = "no_data"


class SparklineColor(str, Enum):
    POSITIVE = "#16a34a"
    NEUTRAL_RISING = "#0ea5e9"
    NEGATIVE = "#dc2626"

    @property
    def fill(self) -> str:
        return {
            SparklineColor.POSITIVE: "rgba(22,163,74,0.15)",
            SparklineColor.NEUTRAL_RISING: "rgba(14,165,233,0.15)",
            SparklineColor.NEGATIVE: "rgba(220,38,38,0.15)",
        }[self]


class Sparkline(BaseModel):
    trend: Trend
    color: SparklineColor | None = None
    points: list[tuple[float, float]] = []

    @property
    def has_data(self) -> bool:
        return self.trend is not Trend.NO_DATA


def sparkline_trend(points: Sequence[ROIHistoryPoint | float]) -> Trend:
    """Up if the last value is >= the first, down otherwise; no data below 2 points."""
    if len(points) < 2:
        return Trend.NO_DATA
    rois = _rois(points)
    return Trend.UP if rois[-1] >= rois[0] else Trend.DOWN


def sparkline_color(trend: Trend, current_roi: float) -> SparklineColor | None:
    if trend is Trend.NO_DATA:
        return None
    if trend is Trend.DOWN:
        return SparklineColor.NEGATIVE
    return SparklineColor.POSITIVE if current_roi >= 0 else SparklineColor.NEUTRAL_RISING


def sparkline_points(
    points: Sequence[ROIHistoryPoint | float],
    width: float = 120,
    height: float = 30,
    padding: float = 2,
) -> list[tuple[float, float]]:
    """Polyline coordinates in a ``width x height`` box, y inverted for SVG."""
    if len(points) < 2:
        return []
    rois = _rois(points)
    low, high = min(rois), max(rois)
    span = (high - low) or 1
    step_x = (width - padding * 2) / (len(rois) - 1)
    coords = []
    for i, roi in enumerate(rois):
        y_norm = (roi - low) / span
        coords.append((padding + i * step_x, height - padding - y_norm * (height - padding * 2)))
    return coords


def build_sparkline(points: Sequence[ROIHistoryPoint | float], current_roi: float) -> Sparkline:
    trend = sparkline_trend(points)
    return Sparkline(
        trend=trend,
        color=sparkline_color(trend, current_roi),
        points=sparkline_points(points),
    )


# ============================================================================
# Sentiment gauge
# ============================================================================


class SentimentGauge(BaseModel):
    positive_pct: int
    negative_pct: int
    neutral_pct: int
    position: int  # marker position on a 0..100 scale


def sentiment_gauge(positive: int, negative: int, neutral: int, avg: float) -> SentimentGauge:
    """Share of each class as integer percentages plus the average's gauge position.

    The neutral share is the remainder so the three always sum to 100.
    """
    total = max(positive + negative + neutral, 1)
    positive_pct = round_half_up(positive / total * 100)
    negative_pct = round_half_up(negative / total * 100)
    position = round_half_up((avg + 1) / 2 * 100)
    return SentimentGauge(
        positive_pct=positive_pct,
        negative_pct=negative_pct,
        neutral_pct=100 - positive_pct - negative_pct,
        position=min(max(position, 0), 100),
    )


def gauge_for(agg: StockSentimentAgg) -> SentimentGauge:
    return sentiment_gauge(
        agg.positive_count, agg.negative_count, agg.neutral_count, agg.avg_sentiment
    )


# ============================================================================
# Market data sources
# ============================================================================


def fetch_duration_ms(raw: Any) -> float:
    """Convert a nanosecond duration to milliseconds; non-numeric values are 0."""
    if isinstance(raw, bool):
        return 0.0
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return value / 1e6


def format_duration(raw: Any) -> str:
    return f"{round_half_up(fetch_duration_ms(raw))}ms"


# ============================================================================
# Balance history & roster
# ============================================================================


def group_history_by_day(
    history: Iterable[AgentSnapshot], tz: tzinfo | None = None
) -> OrderedDict[str, list[AgentSnapshot]]:
    """Group snapshots by calendar day (``YYYY-MM-DD``), days ascending."""
    groups: dict[str, list[AgentSnapshot]] = {}
    for snapshot in history:
        day = datetime.fromtimestamp(snapshot.timestamp / 1000, tz).strftime("%Y-%m-%d")
        groups.setdefault(day, []).append(snapshot)
    return OrderedDict(sorted(groups.items()))


def recent_days(history: Iterable[AgentSnapshot], days: int = 7, tz: tzinfo | None = None) -> list[str]:
    return list(group_history_by_day(history, tz))[-days:]


def snapshot_for_day(
    history: Sequence[AgentSnapshot], day: str | None = None, tz: tzinfo | None = None
) -> AgentSnapshot | None:
    """Last snapshot of ``day``, or the latest overall when no day is given."""
    if day is None:
        return history[-1] if history else None
    rows = group_history_by_day(history, tz).get(day, [])
    return rows[-1] if rows else None


def leading_agent(agents: Sequence[Agent]) -> Agent | None:
    """Agent with the highest balance; the earliest wins ties."""
    best: Agent | None = None
    for agent in agents:
        if best is None or agent.current_balance > best.current_balance:
            best = agent
    return best


def highest_balance(agents: Sequence[Agent]) -> float | None:
    return max((a.current_balance for a in agents), default=None)
