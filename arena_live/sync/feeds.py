"""Live reasoning and news feeds built from stream envelopes."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from arena_live.models import Decision, Envelope, EnvelopeType, NewsArticle

logger = logging.getLogger(__name__)


class ReasoningFeed:
    """Most recent agent decisions plus the set of agents still thinking."""

    def __init__(self, max_decisions: int = 10):
        self.max_decisions = max_decisions
        self.decisions: list[Decision] = []
        self.thinking: set[str] = set()

    def on_envelope(self, envelope: Envelope) -> None:
        if envelope.type == EnvelopeType.AGENT_THINKING.value:
            self._on_thinking(envelope)
        elif envelope.type == EnvelopeType.AGENT_DECISION.value:
            self._on_decision(envelope)

    def _on_thinking(self, envelope: Envelope) -> None:
        data = envelope.data
        agent_id = data.get("agent_id") if isinstance(data, dict) else None
        if not isinstance(agent_id, str) or not agent_id:
            logger.debug("agent_thinking envelope without agent_id")
            return
        self.thinking = self.thinking | {agent_id}

    def _on_decision(self, envelope: Envelope) -> None:
        data = envelope.data
        if not isinstance(data, dict):
            logger.warning("agent_decision envelope without an object payload")
            return

        payload = dict(data)
        if not payload.get("timestamp"):
            payload["timestamp"] = envelope.timestamp
        agent_id = payload.get("agent_id")
        if isinstance(agent_id, str):
            self.thinking = self.thinking - {agent_id}

        try:
            decision = Decision.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Dropping invalid agent_decision: {e.error_count()} errors")
            return

        if any(d.decision_id == decision.decision_id for d in self.decisions):
            return
        self.decisions = [decision, *self.decisions][: self.max_decisions]

    @property
    def is_empty(self) -> bool:
        return not self.decisions and not self.thinking


class NewsFeed:
    """Latest news articles pushed over the stream. Each push replaces the list."""

    def __init__(self) -> None:
        self.articles: list[NewsArticle] = []

    @staticmethod
    def _article_rows(data: Any) -> list[Any] | None:
        if isinstance(data, list):
            return data
        # The server wraps pushes as {"count", "articles", "timestamp"}
        if isinstance(data, dict) and isinstance(data.get("articles"), list):
            return data["articles"]
        return None

    def on_envelope(self, envelope: Envelope) -> None:
        if envelope.type != EnvelopeType.NEWS_UPDATE.value:
            return
        rows = self._article_rows(envelope.data)
        if rows is None:
            logger.debug("news_update envelope without articles")
            return

        articles: list[NewsArticle] = []
        for row in rows:
            try:
                articles.append(NewsArticle.model_validate(row))
            except ValidationError:
                logger.debug(f"Dropping invalid news article: {row!r}")
        self.articles = articles
