"""Dashboard composition: one stream, one REST client, every live view."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from arena_live.clock import Clock, now_ms
from arena_live.config import Settings, get_settings
from arena_live.metrics import (
    Sparkline,
    SentimentGauge,
    build_sparkline,
    format_duration,
    gauge_for,
    leading_agent,
)
from arena_live.models import Agent, EnvelopeType, MarketContext, ScrapedArticle
from arena_live.preferences import PreferencesStore
from arena_live.services.arena_api import ArenaAPIClient, create_arena_client
from arena_live.stream import ConnectionState, EnvelopeRouter, StreamClient
from arena_live.stream.client import Connect
from arena_live.sync import (
    LeaderboardSynchronizer,
    NewsFeed,
    ReasoningFeed,
    RollingAggregator,
    SnapshotCache,
)

logger = logging.getLogger(__name__)


class Dashboard:
    """Wire the stream, caches, aggregator, leaderboard and feeds together.

    Every feature area subscribes to the shared router rather than opening
    its own connection. ``start()`` pulls the initial snapshots and opens the
    stream; ``stop()`` tears everything down and discards late responses.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: ArenaAPIClient | None = None,
        connect: Connect | None = None,
        preferences: PreferencesStore | None = None,
        clock: Clock = now_ms,
    ):
        self.settings = settings or get_settings()
        self.client = client or create_arena_client(self.settings.api_url)
        self.preferences = preferences or PreferencesStore(self.settings.preferences_path)
        self._scheduler = AsyncIOScheduler()
        self._unsubscribers: list[Callable[[], None]] = []
        self._started = False

        self.router = EnvelopeRouter()
        self.stream = StreamClient(
            self.settings.ws_url,
            on_message=self.router.dispatch,
            config=self.settings.stream,
            connect=connect,
        )

        market = self.settings.market
        self.roster: SnapshotCache[list[Agent]] = SnapshotCache(
            "agents", self.client.get_agents, clock=clock
        )
        self.sentiment: SnapshotCache[MarketContext] = SnapshotCache(
            "sentiment",
            self._fetch_market_context,
            poll_interval_ms=market.sentiment_poll_ms,
            scheduler=self._scheduler,
            should_fetch=self._has_symbols,
            clock=clock,
        )
        self.sources: SnapshotCache[MarketContext] = SnapshotCache(
            "sources",
            self._fetch_market_context,
            poll_interval_ms=market.sources_poll_ms,
            scheduler=self._scheduler,
            should_fetch=self._has_symbols,
            clock=clock,
        )
        self.news: SnapshotCache[MarketContext] = SnapshotCache(
            "news",
            self._fetch_market_context,
            poll_interval_ms=market.news_poll_ms,
            scheduler=self._scheduler,
            should_fetch=self._has_symbols,
            clock=clock,
        )

        self.history = RollingAggregator(
            lambda: self.roster.data or [],
            capacity=self.settings.history.capacity,
            throttle_ms=self.settings.history.throttle_ms,
            clock=clock,
        )
        self.leaderboard = LeaderboardSynchronizer(
            self.client.get_leaderboard,
            lambda: self.client.get_roi_history(self.settings.leaderboard.roi_history_limit),
            staleness_ms=self.settings.leaderboard.staleness_ms,
            clock=clock,
        )
        self.reasoning = ReasoningFeed(max_decisions=self.settings.feeds.max_decisions)
        self.news_feed = NewsFeed()

    @property
    def caches(self) -> list[SnapshotCache[Any]]:
        return [self.roster, self.sentiment, self.sources, self.news]

    @property
    def connected(self) -> bool:
        return self.stream.is_connected

    @property
    def connection_state(self) -> ConnectionState:
        return self.stream.state

    def _has_symbols(self) -> bool:
        return bool(self.settings.market.symbols)

    async def _fetch_market_context(self) -> MarketContext:
        return await self.client.get_market_context(self.settings.market.symbols)

    def _subscribe(self) -> None:
        routes = [
            (EnvelopeType.PRICE_UPDATE, self.history.on_price_update),
            (EnvelopeType.LEADERBOARD_UPDATED, self.leaderboard.on_leaderboard_updated),
            (EnvelopeType.AGENT_THINKING, self.reasoning.on_envelope),
            (EnvelopeType.AGENT_DECISION, self.reasoning.on_envelope),
            (EnvelopeType.NEWS_UPDATE, self.news_feed.on_envelope),
        ]
        for envelope_type, handler in routes:
            self._unsubscribers.append(self.router.subscribe(envelope_type.value, handler))

    async def start(self) -> None:
        """Load preferences, pull initial snapshots, then open the stream."""
        if self._started:
            return
        self._started = True

        self.preferences.load()
        await self.client.open()

        self._subscribe()
        await asyncio.gather(
            *(cache.start() for cache in self.caches),
            self.leaderboard.load(),
        )
        await self.stream.start()
        logger.info(
            f"Dashboard started (api={self.settings.api_url}, ws={self.settings.ws_url})"
        )

    async def stop(self) -> None:
        """Close the stream, stop polling and release the REST client."""
        await self.stream.close()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

        for cache in self.caches:
            cache.stop()
        self.leaderboard.close()

        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)

        await self.client.close()
        self._started = False
        logger.info("Dashboard stopped")

    async def __aenter__(self) -> Dashboard:
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Render-ready views
    # ------------------------------------------------------------------

    def sparkline_for(self, agent_id: str) -> Sparkline:
        entry = next((e for e in self.leaderboard.entries if e.agent_id == agent_id), None)
        current_roi = entry.roi if entry is not None else 0.0
        return build_sparkline(self.leaderboard.history_for(agent_id), current_roi)

    def sentiment_gauges(self) -> dict[str, SentimentGauge]:
        context = self.sentiment.data
        if context is None:
            return {}
        return {
            symbol: gauge_for(agg) for symbol, agg in context.stock_sentiments.items()
        }

    def source_durations(self) -> dict[str, str]:
        context = self.sources.data
        if context is None:
            return {}
        return {name: format_duration(raw) for name, raw in context.fetch_durations.items()}

    def breaking_news(self) -> list[ScrapedArticle]:
        context = self.news.data
        if context is None:
            return []
        return context.news[: self.settings.feeds.max_breaking_news]

    def summary(self) -> dict[str, Any]:
        agents = self.roster.data or []
        leader = leading_agent(agents)
        latest = self.history.latest
        return {
            "connected": self.connected,
            "dark_mode": self.preferences.dark_mode,
            "agents": len(agents),
            "leader": leader.name if leader is not None else None,
            "history_rows": len(self.history),
            "latest_balances": dict(latest.balances) if latest is not None else {},
            "leaderboard": [
                {
                    "rank": e.rank,
                    "agent": e.agent_name,
                    "roi": e.roi,
                    "trend": self.sparkline_for(e.agent_id).trend.value,
                }
                for e in self.leaderboard.entries
            ],
            "decisions": len(self.reasoning.decisions),
            "thinking": sorted(self.reasoning.thinking),
            "news_articles": len(self.news_feed.articles),
            "breaking_news": len(self.breaking_news()),
            "errors": {
                cache.key: cache.error for cache in self.caches if cache.error is not None
            },
        }
