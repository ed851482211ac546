from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

import httpx
from pydantic import ValidationError

from arena_live.models import Agent, MarketContext

from .config import ArenaAPIConfig
from .exceptions import (
    ArenaAPIError,
    ArenaNotFoundError,
    ArenaResponseError,
    ArenaServerError,
)

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Server error"


class ArenaAPIClient:
    """Async client for the arena REST endpoints.

    Every endpoint wraps its payload as ``{success, data?, message?}``; this
    client unwraps it and raises ``ArenaAPIError`` subclasses on failure.
    """

    def __init__(
        self,
        config: ArenaAPIConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or ArenaAPIConfig()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        logger.info(f"Initialized ArenaAPIClient (base_url={self.config.base_url})")

    async def __aenter__(self) -> ArenaAPIClient:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: Exception | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

    async def open(self) -> None:
        if self._client is not None:
            return
        limits = httpx.Limits(
            max_connections=self.config.max_connections,
            max_keepalive_connections=self.config.max_keepalive_connections,
        )
        self._client = httpx.AsyncClient(
            base_url=self.config.base_url + "/",
            timeout=self.config.timeout_seconds,
            limits=limits,
            transport=self._transport,
        )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Closed ArenaAPIClient")

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(
                "ArenaAPIClient must be opened or used as async context manager"
            )
        return self._client

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        retry_count = 0
        last_error: Exception | None = None

        while retry_count < self.config.max_retries:
            try:
                response = await self.client.request(
                    method=method,
                    url=endpoint.lstrip("/"),
                    params=params,
                )

                if response.status_code == 404:
                    raise ArenaNotFoundError(
                        f"Resource not found: {endpoint}", status_code=404
                    )
                elif response.status_code >= 500:
                    last_error = ArenaServerError(
                        f"Server error {response.status_code} on {endpoint}",
                        status_code=response.status_code,
                    )
                    retry_count += 1
                    if retry_count < self.config.max_retries:
                        wait_time = self.config.retry_base_delay_seconds * 2 ** (retry_count - 1)
                        logger.warning(
                            f"Server error {response.status_code}, "
                            f"retrying in {wait_time}s..."
                        )
                        await asyncio.sleep(wait_time)
                    continue
                elif response.status_code >= 400:
                    raise ArenaAPIError(
                        f"Request to {endpoint} failed with status {response.status_code}",
                        status_code=response.status_code,
                    )

                try:
                    body = response.json()
                except ValueError as e:
                    raise ArenaResponseError(f"Invalid JSON from {endpoint}: {e}")
                if not isinstance(body, dict):
                    raise ArenaResponseError(f"Unexpected response shape from {endpoint}")
                return body

            except httpx.TimeoutException as e:
                last_error = e
                retry_count += 1
                if retry_count < self.config.max_retries:
                    logger.warning(f"Timeout, retrying ({retry_count})...")
                    await asyncio.sleep(self.config.retry_base_delay_seconds)

            except httpx.RequestError as e:
                logger.error(f"Network error: {e}")
                raise ArenaAPIError(f"Network error: {e}") from e

        if isinstance(last_error, ArenaServerError):
            raise last_error
        raise ArenaAPIError(
            f"Request failed after {retry_count} retries: {last_error}"
        )

    @staticmethod
    def _unwrap(body: dict[str, Any], require_success: bool = True) -> Any:
        if require_success and not body.get("success"):
            raise ArenaResponseError(body.get("message") or DEFAULT_ERROR_MESSAGE)
        return body.get("data")

    async def get_agents(self) -> list[Agent]:
        """Return the current agent roster. Malformed rows are skipped."""
        body = await self._request("GET", "v1/agents")
        data = self._unwrap(body, require_success=False) or []
        if not isinstance(data, list):
            logger.warning("Agents payload is not a list; treating roster as empty")
            return []

        agents: list[Agent] = []
        for row in data:
            try:
                agents.append(Agent.model_validate(row))
            except ValidationError as e:
                logger.warning(f"Skipping malformed agent row: {e.error_count()} errors")
        return agents

    async def get_leaderboard(self) -> Any:
        """Return the raw leaderboard payload; rows are validated by the caller."""
        body = await self._request("GET", "v1/leaderboard")
        return self._unwrap(body, require_success=False)

    async def get_roi_history(self, limit: int = 120) -> Any:
        """Return the raw ``agent_id -> [{time, roi}]`` mapping."""
        body = await self._request(
            "GET", "v1/leaderboard/roi-history", params={"limit": limit}
        )
        return self._unwrap(body)

    async def get_market_context(self, symbols: Sequence[str]) -> MarketContext:
        body = await self._request(
            "GET", "v1/market/context", params={"symbols": ",".join(symbols)}
        )
        data = self._unwrap(body)
        if data is None:
            raise ArenaResponseError(body.get("message") or DEFAULT_ERROR_MESSAGE)
        try:
            return MarketContext.model_validate(data)
        except ValidationError as e:
            raise ArenaResponseError(f"Malformed market context: {e.error_count()} errors")


def create_arena_client(base_url: str, **overrides: Any) -> ArenaAPIClient:
    """Factory function to create ArenaAPIClient for a base URL."""
    config = ArenaAPIConfig(base_url=base_url.rstrip("/"), **overrides)
    return ArenaAPIClient(config)
