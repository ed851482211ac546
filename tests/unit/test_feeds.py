"""
Unit Tests: Reasoning and news feeds

Test cases:
- Thinking set maintenance (cleared even by invalid decisions)
- Free-form action and risk values normalized
- Decision ordering, truncation and de-duplication
- News payload shapes (bare array, wrapped object)
"""

from typing import Any

from arena_live.models import Envelope
from arena_live.sync import NewsFeed, ReasoningFeed


def _decision(decision_id: str, agent_id: str = "a1", **overrides: Any) -> dict[str, Any]:
    row = {
        "agent_id": agent_id,
        "agent_name": "Alpha",
        "decision_id": decision_id,
        "action": "BUY",
        "stock_symbol": "THYAO",
        "quantity": 10,
        "reasoning_summary": "Momentum",
        "confidence": 0.8,
        "risk_level": "low",
        "thinking_steps": None,
    }
    row.update(overrides)
    return row


def test_thinking_then_decision() -> None:
    feed = ReasoningFeed()
    assert feed.is_empty

    feed.on_envelope(Envelope(type="agent_thinking", data={"agent_id": "a1"}))
    feed.on_envelope(Envelope(type="agent_thinking", data={"agent_id": "a2"}))
    assert feed.thinking == {"a1", "a2"}

    feed.on_envelope(Envelope(type="agent_decision", data=_decision("d1"), timestamp=1700000000))
    assert feed.thinking == {"a2"}
    assert feed.decisions[0].decision_id == "d1"
    assert feed.decisions[0].thinking_steps == []
    assert feed.decisions[0].timestamp == 1700000000


def test_decisions_newest_first_and_truncated() -> None:
    feed = ReasoningFeed(max_decisions=3)
    for i in range(5):
        feed.on_envelope(Envelope(type="agent_decision", data=_decision(f"d{i}")))
    assert [d.decision_id for d in feed.decisions] == ["d4", "d3", "d2"]


def test_duplicate_decision_ignored() -> None:
    feed = ReasoningFeed()
    feed.on_envelope(Envelope(type="agent_decision", data=_decision("d1")))
    feed.on_envelope(Envelope(type="agent_decision", data=_decision("d1", action="SELL")))
    assert len(feed.decisions) == 1
    assert feed.decisions[0].action == "BUY"


def test_invalid_payloads_ignored() -> None:
    feed = ReasoningFeed()
    feed.on_envelope(Envelope(type="agent_thinking", data="a1"))
    feed.on_envelope(Envelope(type="agent_decision", data=[1, 2]))
    missing_id = _decision("d1")
    del missing_id["decision_id"]
    feed.on_envelope(Envelope(type="agent_decision", data=missing_id))
    assert feed.is_empty


def test_free_form_decision_fields_kept() -> None:
    feed = ReasoningFeed()
    feed.on_envelope(Envelope(type="agent_thinking", data={"agent_id": "a1"}))
    feed.on_envelope(
        Envelope(type="agent_decision", data=_decision("d1", action=" buy", risk_level=""))
    )
    feed.on_envelope(
        Envelope(type="agent_decision", data=_decision("d2", action="WAIT", risk_level="Extreme"))
    )

    assert feed.thinking == set()
    assert [(d.action, d.risk_level) for d in feed.decisions] == [
        ("WAIT", "extreme"),
        ("BUY", "medium"),
    ]


def test_invalid_decision_still_clears_thinking() -> None:
    feed = ReasoningFeed()
    feed.on_envelope(Envelope(type="agent_thinking", data={"agent_id": "a1"}))
    feed.on_envelope(Envelope(type="agent_decision", data={"agent_id": "a1", "action": "BUY"}))
    assert feed.decisions == []
    assert feed.thinking == set()


def test_news_array_payload() -> None:
    feed = NewsFeed()
    feed.on_envelope(
        Envelope(
            type="news_update",
            data=[
                {"id": "n1", "title": "Rates held", "related_stocks": None},
                {"title": "missing id"},
            ],
        )
    )
    assert [a.id for a in feed.articles] == ["n1"]
    assert feed.articles[0].related_stocks == []


def test_news_wrapped_payload_replaces() -> None:
    feed = NewsFeed()
    feed.on_envelope(Envelope(type="news_update", data=[{"id": "old", "title": "Old"}]))
    feed.on_envelope(
        Envelope(
            type="news_update",
            data={"count": 1, "articles": [{"id": "new", "title": "New"}], "timestamp": 1},
        )
    )
    assert [a.id for a in feed.articles] == ["new"]


def test_news_unusable_payload_keeps_articles() -> None:
    feed = NewsFeed()
    feed.on_envelope(Envelope(type="news_update", data=[{"id": "n1", "title": "Kept"}]))
    feed.on_envelope(Envelope(type="news_update", data="garbage"))
    feed.on_envelope(Envelope(type="price_update", data=[]))
    assert [a.id for a in feed.articles] == ["n1"]
