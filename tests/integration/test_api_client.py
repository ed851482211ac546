"""Integration tests for ArenaAPIClient against a mocked HTTP transport."""

import asyncio
import json
from typing import Any, Callable

import httpx
import pytest

from arena_live.models import MarketContext
from arena_live.services.arena_api import (
    ArenaAPIClient,
    ArenaAPIConfig,
    ArenaAPIError,
    ArenaNotFoundError,
    ArenaResponseError,
    ArenaServerError,
)

BASE_URL = "http://arena.test/api"

Handler = Callable[[httpx.Request], httpx.Response]


def _client(handler: Handler, **overrides: Any) -> ArenaAPIClient:
    config = ArenaAPIConfig(base_url=BASE_URL, retry_base_delay_seconds=0, **overrides)
    return ArenaAPIClient(config, transport=httpx.MockTransport(handler))


def _call(client: ArenaAPIClient, method: str, *args: Any) -> Any:
    async def run() -> Any:
        async with client:
            return await getattr(client, method)(*args)

    return asyncio.run(run())


def _ok(data: Any, success: bool = True, **extra: Any) -> httpx.Response:
    return httpx.Response(200, json={"success": success, "data": data, **extra})


def test_get_agents_skips_malformed_rows() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return _ok(
            [
                {"id": "a1", "name": "Alpha", "model": "gpt-4o", "current_balance": 10500.5, "status": "active"},
                {"name": "no id"},
            ]
        )

    agents = _call(_client(handler), "get_agents")
    assert seen == ["/api/v1/agents"]
    assert [a.id for a in agents] == ["a1"]
    assert agents[0].is_active


def test_get_agents_ignores_success_flag() -> None:
    agents = _call(_client(lambda r: _ok(None, success=False)), "get_agents")
    assert agents == []


def test_get_leaderboard_returns_raw_rows() -> None:
    rows = [{"rank": 1}, {"rank": "bad"}]
    assert _call(_client(lambda r: _ok(rows)), "get_leaderboard") == rows


def test_get_roi_history_passes_limit() -> None:
    params: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        params.append(request.url.params["limit"])
        return _ok({"a1": [{"time": "2024-01-01T00:00:00Z", "roi": 1.0}]})

    history = _call(_client(handler), "get_roi_history", 120)
    assert params == ["120"]
    assert "a1" in history


def test_roi_history_failure_message() -> None:
    client = _client(lambda r: _ok(None, success=False, message="db down"))
    with pytest.raises(ArenaResponseError, match="db down"):
        _call(client, "get_roi_history")


def test_get_market_context() -> None:
    symbols: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        symbols.append(request.url.params["symbols"])
        return _ok(
            {
                "prices": [{"symbol": "THYAO", "price": 312.5}],
                "news": None,
                "stock_sentiments": {
                    "THYAO": {"symbol": "THYAO", "positive_count": 3, "avg_sentiment": 0.4}
                },
                "fetch_durations": {"prices": 1_500_000},
            }
        )

    context = _call(_client(handler), "get_market_context", ["THYAO", "AKBNK"])
    assert symbols == ["THYAO,AKBNK"]
    assert isinstance(context, MarketContext)
    assert context.news == []
    assert context.stock_sentiments["THYAO"].positive_count == 3


def test_market_context_default_error_message() -> None:
    client = _client(lambda r: _ok(None, success=False))
    with pytest.raises(ArenaResponseError, match="Server error"):
        _call(client, "get_market_context", ["THYAO"])


def test_not_found() -> None:
    client = _client(lambda r: httpx.Response(404))
    with pytest.raises(ArenaNotFoundError) as exc_info:
        _call(client, "get_leaderboard")
    assert exc_info.value.status_code == 404


def test_client_error_not_retried() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(400)

    with pytest.raises(ArenaAPIError):
        _call(_client(handler), "get_agents")
    assert len(calls) == 1


def test_server_error_retried_then_raised() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(503)

    with pytest.raises(ArenaServerError):
        _call(_client(handler), "get_agents")
    assert len(calls) == 3


def test_server_error_recovers() -> None:
    responses = [httpx.Response(500), _ok([])]
    agents = _call(_client(lambda r: responses.pop(0)), "get_agents")
    assert agents == []


def test_invalid_json() -> None:
    client = _client(lambda r: httpx.Response(200, content=b"<html>"))
    with pytest.raises(ArenaResponseError):
        _call(client, "get_leaderboard")


def test_non_object_body() -> None:
    client = _client(lambda r: httpx.Response(200, content=json.dumps([1, 2]).encode()))
    with pytest.raises(ArenaResponseError):
        _call(client, "get_leaderboard")


def test_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ArenaAPIError, match="Network error"):
        _call(_client(handler), "get_agents")


def test_timeouts_retried() -> None:
    calls: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(ArenaAPIError):
        _call(_client(handler), "get_agents")
    assert len(calls) == 3


def test_requires_open_client() -> None:
    client = _client(lambda r: _ok([]))
    with pytest.raises(RuntimeError):
        asyncio.run(client.get_agents())
