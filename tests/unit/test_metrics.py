"""
Unit Tests: Derived metrics

Test cases:
- Sparkline trend, color and geometry
- Sentiment gauge percentages (zero totals, rounding, clamping)
- Fetch duration conversion
- Balance history grouping by day
- Roster leader selection
"""

from datetime import timezone

from arena_live.metrics import (
    SparklineColor,
    Trend,
    build_sparkline,
    fetch_duration_ms,
    format_duration,
    gauge_for,
    group_history_by_day,
    highest_balance,
    leading_agent,
    recent_days,
    round_half_up,
    sentiment_gauge,
    snapshot_for_day,
    sparkline_color,
    sparkline_points,
    sparkline_trend,
)
from arena_live.models import Agent, AgentSnapshot, ROIHistoryPoint, StockSentimentAgg

DAY_MS = 86_400_000


def test_round_half_up() -> None:
    assert round_half_up(12.5) == 13
    assert round_half_up(2.5) == 3
    assert round_half_up(-0.5) == 0
    assert round_half_up(1.49) == 1


def test_trend_needs_two_points() -> None:
    assert sparkline_trend([]) is Trend.NO_DATA
    assert sparkline_trend([1.0]) is Trend.NO_DATA
    assert sparkline_trend([1.0, 1.0]) is Trend.UP
    assert sparkline_trend([2.0, 5.0, 1.0]) is Trend.DOWN


def test_trend_accepts_history_points() -> None:
    points = [
        ROIHistoryPoint(time="2024-01-01T00:00:00Z", roi=-3.0),
        ROIHistoryPoint(time="2024-01-01T01:00:00Z", roi=-1.0),
    ]
    assert sparkline_trend(points) is Trend.UP


def test_sparkline_colors() -> None:
    assert sparkline_color(Trend.UP, 5.0) is SparklineColor.POSITIVE
    assert sparkline_color(Trend.UP, 0.0) is SparklineColor.POSITIVE
    assert sparkline_color(Trend.UP, -2.0) is SparklineColor.NEUTRAL_RISING
    assert sparkline_color(Trend.DOWN, 10.0) is SparklineColor.NEGATIVE
    assert sparkline_color(Trend.NO_DATA, 1.0) is None
    assert SparklineColor.NEGATIVE.fill == "rgba(220,38,38,0.15)"


def test_sparkline_geometry() -> None:
    assert sparkline_points([0.0, 10.0]) == [(2.0, 28.0), (118.0, 2.0)]
    flat = sparkline_points([5.0, 5.0, 5.0])
    assert [y for _, y in flat] == [28.0, 28.0, 28.0]
    assert sparkline_points([1.0]) == []


def test_build_sparkline_without_data() -> None:
    sparkline = build_sparkline([], current_roi=3.0)
    assert not sparkline.has_data
    assert sparkline.color is None
    assert sparkline.points == []


def test_gauge_all_zeros() -> None:
    gauge = sentiment_gauge(0, 0, 0, 0.0)
    assert gauge.positive_pct == 0
    assert gauge.negative_pct == 0
    assert gauge.neutral_pct == 100
    assert gauge.position == 50


def test_gauge_percentages_sum_to_100() -> None:
    gauge = sentiment_gauge(3, 1, 1, 0.5)
    assert (gauge.positive_pct, gauge.negative_pct, gauge.neutral_pct) == (60, 20, 20)
    assert gauge.position == 75

    rounded = sentiment_gauge(1, 1, 6, 0.0)
    assert (rounded.positive_pct, rounded.negative_pct, rounded.neutral_pct) == (13, 13, 74)


def test_gauge_position_clamped() -> None:
    assert sentiment_gauge(1, 0, 0, -1.5).position == 0
    assert sentiment_gauge(1, 0, 0, 2.0).position == 100
    assert sentiment_gauge(1, 0, 0, -1.0).position == 0


def test_gauge_for_aggregate() -> None:
    agg = StockSentimentAgg(
        symbol="THYAO", positive_count=2, negative_count=2, neutral_count=0, avg_sentiment=0.0
    )
    gauge = gauge_for(agg)
    assert gauge.positive_pct == 50
    assert gauge.neutral_pct == 0


def test_fetch_duration_conversion() -> None:
    assert fetch_duration_ms(1_500_000) == 1.5
    assert format_duration(1_500_000) == "2ms"
    assert format_duration(2_400_000) == "2ms"
    assert format_duration(0) == "0ms"
    assert format_duration("n/a") == "0ms"
    assert format_duration(None) == "0ms"
    assert format_duration(True) == "0ms"


def test_group_history_by_day() -> None:
    history = [
        AgentSnapshot(timestamp=0, balances={"A": 1}),
        AgentSnapshot(timestamp=1_000, balances={"A": 2}),
        AgentSnapshot(timestamp=DAY_MS + 5, balances={"A": 3}),
    ]
    groups = group_history_by_day(history, timezone.utc)
    assert list(groups) == ["1970-01-01", "1970-01-02"]
    assert len(groups["1970-01-01"]) == 2

    assert recent_days(history, days=1, tz=timezone.utc) == ["1970-01-02"]
    day = snapshot_for_day(history, "1970-01-01", timezone.utc)
    assert day is not None and day["A"] == 2
    latest = snapshot_for_day(history)
    assert latest is not None and latest["A"] == 3
    assert snapshot_for_day(history, "1999-01-01", timezone.utc) is None
    assert snapshot_for_day([]) is None


def test_leading_agent() -> None:
    agents = [
        Agent(id="a", current_balance=100),
        Agent(id="b", current_balance=300),
        Agent(id="c", current_balance=300),
    ]
    leader = leading_agent(agents)
    assert leader is not None and leader.id == "b"
    assert highest_balance(agents) == 300
    assert leading_agent([]) is None
    assert highest_balance([]) is None
