"""Arena REST service integration."""

from .client import ArenaAPIClient, create_arena_client
from .config import ArenaAPIConfig
from .exceptions import (
    ArenaAPIError,
    ArenaNotFoundError,
    ArenaResponseError,
    ArenaServerError,
)

__all__ = [
    "ArenaAPIClient",
    "create_arena_client",
    "ArenaAPIConfig",
    "ArenaAPIError",
    "ArenaNotFoundError",
    "ArenaResponseError",
    "ArenaServerError",
]
