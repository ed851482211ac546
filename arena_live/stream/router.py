"""Type-keyed publish/subscribe registry for stream envelopes.

A single shared connection feeds one router; each feature area subscribes to
the envelope types it needs. Handlers run synchronously in registration
order, so per-type arrival order is preserved.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from contextlib import contextmanager
from typing import Callable, Iterator

from arena_live.models import Envelope

logger = logging.getLogger(__name__)

EnvelopeHandler = Callable[[Envelope], None]


class EnvelopeRouter:
    """Fan envelopes out to handlers registered for their ``type``."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[EnvelopeHandler]] = defaultdict(list)
        self.dispatched = 0
        self.ignored = 0

    def subscribe(self, envelope_type: str, handler: EnvelopeHandler) -> Callable[[], None]:
        """Register ``handler`` for ``envelope_type``. Returns an unsubscribe callable."""
        self._subscribers[envelope_type].append(handler)
        logger.debug(f"Subscribed {getattr(handler, '__qualname__', handler)} to {envelope_type}")

        def _unsubscribe() -> None:
            self.unsubscribe(envelope_type, handler)

        return _unsubscribe

    def unsubscribe(self, envelope_type: str, handler: EnvelopeHandler) -> None:
        handlers = self._subscribers.get(envelope_type)
        if not handlers:
            return
        try:
            handlers.remove(handler)
        except ValueError:
            return
        if not handlers:
            self._subscribers.pop(envelope_type, None)

    @contextmanager
    def subscription(self, envelope_type: str, handler: EnvelopeHandler) -> Iterator[EnvelopeHandler]:
        """Context manager that registers ``handler`` and unsubscribes on exit."""
        unsubscribe = self.subscribe(envelope_type, handler)
        try:
            yield handler
        finally:
            unsubscribe()

    def subscriber_count(self, envelope_type: str) -> int:
        return len(self._subscribers.get(envelope_type, ()))

    def dispatch(self, envelope: Envelope) -> int:
        """Deliver ``envelope`` to its subscribers. Returns how many handlers ran.

        Unknown types are ignored. A failing handler is logged and does not
        prevent the remaining handlers from running.
        """
        handlers = list(self._subscribers.get(envelope.type, ()))
        if not handlers:
            self.ignored += 1
            logger.debug(f"No subscribers for envelope type {envelope.type!r}")
            return 0

        delivered = 0
        for handler in handlers:
            try:
                handler(envelope)
                delivered += 1
            except Exception:
                logger.exception(f"Handler failed for envelope type {envelope.type!r}")
        self.dispatched += 1
        return delivered

    def clear(self) -> None:
        self._subscribers.clear()
