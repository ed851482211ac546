"""Leaderboard synchronization: validated entries plus per-agent ROI history."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from pydantic import ValidationError

from arena_live.clock import Clock, now_ms
from arena_live.models import Envelope, EnvelopeType, LeaderboardEntry, ROIHistoryPoint

logger = logging.getLogger(__name__)


def validate_entries(payload: Any) -> list[LeaderboardEntry] | None:
    """Validate a leaderboard array, dropping rows that fail the shape check.

    Returns None when the payload is not an array at all.
    """
    if not isinstance(payload, list):
        return None

    entries: list[LeaderboardEntry] = []
    for row in payload:
        if not isinstance(row, dict):
            logger.debug(f"Dropping non-object leaderboard row: {row!r}")
            continue
        try:
            entries.append(LeaderboardEntry.model_validate(row))
        except ValidationError as e:
            logger.debug(
                f"Dropping invalid leaderboard row for {row.get('agent_id')!r}: "
                f"{e.error_count()} errors"
            )

    dropped = len(payload) - len(entries)
    if dropped:
        logger.warning(f"Dropped {dropped} of {len(payload)} leaderboard rows that failed validation")
    return entries


def parse_roi_history(payload: Any) -> dict[str, list[ROIHistoryPoint]] | None:
    """Parse ``agent_id -> [{time, roi}]``, keeping valid points sorted by time.

    Returns None when the payload is not a mapping.
    """
    if not isinstance(payload, dict):
        return None

    history: dict[str, list[ROIHistoryPoint]] = {}
    for agent_id, points in payload.items():
        if not isinstance(points, list):
            continue
        valid: list[ROIHistoryPoint] = []
        for point in points:
            if not isinstance(point, dict):
                continue
            try:
                valid.append(ROIHistoryPoint.model_validate(point))
            except ValidationError:
                continue
        valid.sort(key=lambda p: p.at)
        history[str(agent_id)] = valid
    return history


class LeaderboardSynchronizer:
    """Own the leaderboard and its ROI history cache.

    Pushed and pulled arrays share one validation path. After a pushed update
    the ROI history is refetched in the background once it is older than
    ``staleness_ms``; the leaderboard update itself never waits for it.
    """

    def __init__(
        self,
        fetch_leaderboard: Callable[[], Awaitable[Any]],
        fetch_roi_history: Callable[[], Awaitable[Any]],
        staleness_ms: int = 30_000,
        clock: Clock = now_ms,
    ):
        self._fetch_leaderboard = fetch_leaderboard
        self._fetch_roi_history = fetch_roi_history
        self.staleness_ms = staleness_ms
        self._clock = clock

        self.entries: list[LeaderboardEntry] = []
        self.roi_history: dict[str, list[ROIHistoryPoint]] = {}
        self.last_history_fetch_ms: int | None = None
        self.history_fetch_count = 0

        self._history_inflight = False
        self._pending: set[asyncio.Task[bool]] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def load(self) -> None:
        """Initial pull of the leaderboard snapshot and ROI history."""
        try:
            payload = await self._fetch_leaderboard()
        except Exception as e:
            logger.warning(f"Leaderboard fetch failed: {e}")
        else:
            if not self._closed:
                self.apply(payload)
        await self.refresh_history()

    def apply(self, payload: Any) -> bool:
        """Replace entries from a pulled or pushed array. Non-arrays are ignored."""
        entries = validate_entries(payload)
        if entries is None:
            logger.debug("Ignoring non-array leaderboard payload")
            return False
        self.entries = entries
        return True

    def on_leaderboard_updated(self, envelope: Envelope) -> None:
        if envelope.type != EnvelopeType.LEADERBOARD_UPDATED.value or self._closed:
            return
        if not self.apply(envelope.data):
            return
        if self.history_is_stale():
            self.schedule_history_refresh()

    def history_is_stale(self) -> bool:
        if self.last_history_fetch_ms is None:
            return True
        return self._clock() - self.last_history_fetch_ms > self.staleness_ms

    def schedule_history_refresh(self) -> asyncio.Task[bool] | None:
        """Start a background ROI-history fetch unless one is already running."""
        if self._closed or self._history_inflight or self._pending:
            return None
        task = asyncio.get_running_loop().create_task(self.refresh_history())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def refresh_history(self) -> bool:
        """Fetch and replace ROI history. Errors are logged and swallowed."""
        if self._closed or self._history_inflight:
            return False
        self._history_inflight = True
        self.history_fetch_count += 1
        try:
            payload = await self._fetch_roi_history()
        except Exception as e:
            logger.info(f"ROI history fetch failed, keeping previous trend data: {e}")
            return False
        finally:
            self._history_inflight = False

        if self._closed:
            logger.debug("Discarding ROI history that arrived after close")
            return False

        history = parse_roi_history(payload)
        if history is None:
            logger.info("ROI history payload is not a mapping; ignoring")
            return False

        self.roi_history = history
        self.last_history_fetch_ms = self._clock()
        return True

    def history_for(self, agent_id: str) -> list[ROIHistoryPoint]:
        return self.roi_history.get(agent_id, [])

    async def drain(self) -> None:
        """Wait for background history fetches to settle."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def close(self) -> None:
        """Stop applying updates. In-flight fetches finish but are discarded."""
        self._closed = True
