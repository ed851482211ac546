"""Pull-based snapshot cache with optional fixed-interval polling."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Literal, TypeVar

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from arena_live.clock import Clock, now_ms

logger = logging.getLogger(__name__)

T = TypeVar("T")

Ordering = Literal["arrival", "issue"]

# Overlapping polls are allowed; fetches are never deduplicated
MAX_CONCURRENT_POLLS = 32


def describe_error(exc: BaseException) -> str:
    """Human-readable message for a failed fetch."""
    message = str(exc).strip()
    return message or exc.__class__.__name__


class SnapshotCache(Generic[T]):
    """Cache one pulled resource, keeping stale data visible on failure.

    ``ordering="arrival"`` keeps last-write-wins on response arrival.
    ``ordering="issue"`` tags each request with an increasing token and drops
    responses older than the newest one already applied.
    """

    def __init__(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        poll_interval_ms: int = 0,
        scheduler: AsyncIOScheduler | None = None,
        ordering: Ordering = "arrival",
        should_fetch: Callable[[], bool] | None = None,
        clock: Clock = now_ms,
    ):
        if poll_interval_ms < 0:
            raise ValueError("poll_interval_ms must be >= 0")
        self.key = key
        self.poll_interval_ms = poll_interval_ms
        self.ordering = ordering
        self._fetcher = fetcher
        self._scheduler = scheduler
        self._owns_scheduler = False
        self._should_fetch = should_fetch
        self._clock = clock

        self.data: T | None = None
        self.error: str | None = None
        self.loading = True
        self.fetched_at: int | None = None
        self.fetch_count = 0

        self._issued = 0
        self._applied = 0
        self._started = False
        self._stopped = False

    @property
    def job_id(self) -> str:
        return f"snapshot:{self.key}"

    @property
    def active(self) -> bool:
        return self._started and not self._stopped

    async def start(self) -> None:
        """Fetch once now and, if an interval is set, keep polling."""
        if self._started:
            return
        self._started = True
        self._stopped = False

        if self.poll_interval_ms > 0:
            if self._scheduler is None:
                self._scheduler = AsyncIOScheduler(event_loop=asyncio.get_running_loop())
                self._owns_scheduler = True
            if not self._scheduler.running:
                self._scheduler.start()
            self._scheduler.add_job(
                self.refresh,
                IntervalTrigger(seconds=self.poll_interval_ms / 1000),
                id=self.job_id,
                name=f"Poll {self.key}",
                max_instances=MAX_CONCURRENT_POLLS,
                coalesce=False,
                replace_existing=True,
            )
            logger.info(f"Registered poll job {self.job_id} (every {self.poll_interval_ms} ms)")

        await self.refresh()

    def stop(self) -> None:
        """Stop polling. Responses that arrive afterwards are discarded."""
        self._stopped = True
        if self._scheduler is not None:
            try:
                self._scheduler.remove_job(self.job_id)
            except JobLookupError:
                pass
            if self._owns_scheduler and self._scheduler.running:
                self._scheduler.shutdown(wait=False)
            self._owns_scheduler = False

    async def refresh(self) -> bool:
        """Fetch once. Returns True when the response was applied."""
        if self._stopped:
            return False
        if self._should_fetch is not None and not self._should_fetch():
            logger.debug(f"Skipping fetch for {self.key}: nothing to fetch")
            self.loading = False
            return False

        self._issued += 1
        token = self._issued
        self.fetch_count += 1

        try:
            result = await self._fetcher()
        except Exception as e:
            if not self._accept(token):
                return False
            self.error = describe_error(e)
            self.loading = False
            logger.warning(f"Fetch failed for {self.key}: {self.error}")
            return False

        if not self._accept(token):
            return False
        self.data = result
        self.error = None
        self.loading = False
        self.fetched_at = self._clock()
        return True

    def _accept(self, token: int) -> bool:
        if self._stopped:
            logger.debug(f"Discarding response for {self.key}: cache stopped")
            return False
        if self.ordering == "issue":
            if token < self._applied:
                logger.debug(
                    f"Discarding stale response for {self.key} "
                    f"(token {token} < {self._applied})"
                )
                return False
            self._applied = token
        return True
