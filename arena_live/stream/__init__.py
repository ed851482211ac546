"""Push-stream client and envelope routing."""

from .client import (
    ConnectionState,
    EnvelopeDecodeError,
    StreamClient,
    decode_envelope,
)
from .router import EnvelopeRouter

__all__ = [
    "ConnectionState",
    "EnvelopeDecodeError",
    "EnvelopeRouter",
    "StreamClient",
    "decode_envelope",
]
