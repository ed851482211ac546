from pydantic import BaseModel

from arena_live.config import DEFAULT_API_URL


class ArenaAPIConfig(BaseModel):
    """Configuration for the arena REST client."""

    base_url: str = DEFAULT_API_URL
    timeout_seconds: float = 15.0
    max_connections: int = 20
    max_keepalive_connections: int = 10
    max_retries: int = 3
    retry_base_delay_seconds: float = 1.0
