"""WebSocket push-stream client.

Decodes each inbound frame into an :class:`Envelope` and hands it to a single
registered callback. Transport failures never propagate to callers; they only
flip the connectivity flag.
"""

from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import Any, AsyncContextManager, AsyncIterator, Callable

import websockets
from pydantic import ValidationError
from websockets.exceptions import WebSocketException

from arena_live.config import StreamConfig
from arena_live.models import Envelope

logger = logging.getLogger(__name__)

Frame = str | bytes
Connect = Callable[[str], AsyncContextManager[AsyncIterator[Frame]]]
MessageCallback = Callable[[Envelope], None]


class ConnectionState(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    RECONNECTING = "reconnecting"


class EnvelopeDecodeError(ValueError):
    """Frame could not be decoded into an envelope."""


def decode_envelope(frame: Frame) -> Envelope:
    """Decode one JSON frame into an Envelope."""
    try:
        payload = json.loads(frame)
    except (TypeError, ValueError) as e:
        raise EnvelopeDecodeError(f"invalid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise EnvelopeDecodeError(f"expected a JSON object, got {type(payload).__name__}")

    try:
        return Envelope.model_validate(payload)
    except ValidationError as e:
        raise EnvelopeDecodeError(f"invalid envelope: {e.error_count()} errors") from e


class StreamClient:
    """One connection to one stream URL, delivering envelopes to one callback."""

    def __init__(
        self,
        url: str,
        on_message: MessageCallback | None = None,
        config: StreamConfig | None = None,
        connect: Connect | None = None,
        on_state_change: Callable[[ConnectionState], None] | None = None,
    ):
        self.url = url
        self.config = config or StreamConfig()
        self._on_message = on_message
        self._on_state_change = on_state_change
        self._connect = connect or self._default_connect
        self._state = ConnectionState.DISCONNECTED
        self._task: asyncio.Task[None] | None = None
        self._closing = False

        self.last_message: Envelope | None = None
        self.frames_received = 0
        self.frames_dropped = 0
        self.reconnect_attempts = 0

    def _default_connect(self, url: str) -> AsyncContextManager[Any]:
        return websockets.connect(url, open_timeout=self.config.open_timeout_seconds)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def set_on_message(self, callback: MessageCallback | None) -> None:
        """Replace the consumer callback. The connection is left untouched."""
        self._on_message = callback

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        self._state = state
        logger.info(f"Stream {self.url} {state.value}")
        if self._on_state_change is not None:
            try:
                self._on_state_change(state)
            except Exception:
                logger.exception("Connection state listener failed")

    async def start(self) -> None:
        """Open the connection in a background task."""
        if self.running:
            return
        self._closing = False
        self._task = asyncio.create_task(self._run(), name=f"stream:{self.url}")

    async def wait_closed(self) -> None:
        if self._task is not None:
            await asyncio.shield(self._task)

    async def close(self) -> None:
        """Tear down the connection and clear the connectivity flag."""
        self._closing = True
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._set_state(ConnectionState.DISCONNECTED)

    async def _run(self) -> None:
        attempt = 0
        while not self._closing:
            try:
                async with self._connect(self.url) as connection:
                    attempt = 0
                    self._set_state(ConnectionState.CONNECTED)
                    async for frame in connection:
                        self.handle_frame(frame)
                logger.info(f"Stream {self.url} closed by remote")
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                logger.warning(f"Stream {self.url} error: {e}")
            except Exception:
                logger.exception(f"Stream {self.url} failed unexpectedly")
            finally:
                self._set_state(ConnectionState.DISCONNECTED)

            if self._closing or not self.config.reconnect:
                break

            delay = min(
                self.config.reconnect_base_delay_seconds * 2**attempt,
                self.config.reconnect_max_delay_seconds,
            )
            attempt += 1
            self.reconnect_attempts += 1
            self._set_state(ConnectionState.RECONNECTING)
            logger.info(f"Reconnecting to {self.url} in {delay:.1f}s (attempt {attempt})")
            await asyncio.sleep(delay)

    def handle_frame(self, frame: Frame) -> Envelope | None:
        """Decode and deliver one frame. Malformed frames are dropped."""
        self.frames_received += 1
        try:
            envelope = decode_envelope(frame)
        except EnvelopeDecodeError as e:
            self.frames_dropped += 1
            logger.warning(f"Dropping malformed frame: {e}")
            return None

        self.last_message = envelope
        callback = self._on_message
        if callback is not None:
            try:
                callback(envelope)
            except Exception:
                logger.exception(f"Stream consumer failed on {envelope.type!r} envelope")
        return envelope
