"""Time-throttled rolling history of agent balances."""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Sequence

from arena_live.clock import Clock, now_ms
from arena_live.models import Agent, AgentSnapshot, Envelope, EnvelopeType

logger = logging.getLogger(__name__)

RosterSource = Callable[[], Sequence[Agent]]


class RollingAggregator:
    """Bounded FIFO of balance snapshots, recorded on ``price_update`` envelopes.

    At most one snapshot is recorded per ``throttle_ms`` window regardless of
    how fast prices arrive, and the buffer never holds more than ``capacity``
    rows. Each snapshot copies the roster balances at append time.
    """

    def __init__(
        self,
        roster: RosterSource,
        capacity: int = 1440,
        throttle_ms: int = 1000,
        clock: Clock = now_ms,
    ):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._roster = roster
        self.capacity = capacity
        self.throttle_ms = throttle_ms
        self._clock = clock
        self._buffer: deque[AgentSnapshot] = deque(maxlen=capacity)
        self.last_recorded_ms: int | None = None

    def __len__(self) -> int:
        return len(self._buffer)

    @property
    def history(self) -> tuple[AgentSnapshot, ...]:
        """Read-only view of the buffer, oldest first."""
        return tuple(self._buffer)

    @property
    def latest(self) -> AgentSnapshot | None:
        return self._buffer[-1] if self._buffer else None

    def on_price_update(self, envelope: Envelope) -> AgentSnapshot | None:
        if envelope.type != EnvelopeType.PRICE_UPDATE.value:
            return None
        return self.record()

    def record(self) -> AgentSnapshot | None:
        """Append a snapshot unless throttled or the roster is empty."""
        agents = list(self._roster() or ())
        if not agents:
            return None

        now = self._clock()
        if self.last_recorded_ms is not None and now - self.last_recorded_ms < self.throttle_ms:
            return None

        snapshot = AgentSnapshot(
            timestamp=now,
            balances={agent.id: agent.current_balance for agent in agents},
        )
        self.last_recorded_ms = now
        self._buffer.append(snapshot)
        logger.debug(f"Recorded balance snapshot for {len(agents)} agents ({len(self._buffer)} rows)")
        return snapshot

    def clear(self) -> None:
        self._buffer.clear()
        self.last_recorded_ms = None
