"""Arena Live CLI entry point."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

env_file = Path(__file__).parent.parent / ".env"
load_dotenv(env_file)

from arena_live import __version__
from arena_live.config import get_settings
from arena_live.dashboard import Dashboard
from arena_live.metrics import format_duration, gauge_for
from arena_live.preferences import PreferencesStore
from arena_live.services.arena_api import ArenaAPIError, create_arena_client
from arena_live.sync import parse_roi_history, validate_entries

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)


def _init_logfire() -> None:
    """Initialize Logfire if available, without failing commands."""
    try:
        from arena_live.observability import initialize_logfire

        initialize_logfire(get_settings())
    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")


def cmd_config(args: argparse.Namespace) -> int:
    """Display merged configuration."""
    try:
        settings = get_settings()

        print("\n=== Arena Live Configuration ===\n")
        print(f"Data Directory: {settings.data_dir}")
        print(f"API URL: {settings.api_url}")
        print(f"Stream URL: {settings.ws_url}\n")

        print("Stream:")
        print(f"  Reconnect: {settings.stream.reconnect}")
        print(f"  Backoff: {settings.stream.reconnect_base_delay_seconds}s .. "
              f"{settings.stream.reconnect_max_delay_seconds}s\n")

        print("History:")
        print(f"  Capacity: {settings.history.capacity:,} snapshots")
        print(f"  Throttle: {settings.history.throttle_ms} ms\n")

        print("Leaderboard:")
        print(f"  ROI History Staleness: {settings.leaderboard.staleness_ms} ms")
        print(f"  ROI History Limit: {settings.leaderboard.roi_history_limit}\n")

        print("Market:")
        print(f"  Symbols: {', '.join(settings.market.symbols) or '(none)'}")
        print(f"  Sentiment Poll: {settings.market.sentiment_poll_ms} ms")
        print(f"  Sources Poll: {settings.market.sources_poll_ms} ms")
        print(f"  News Poll: {settings.market.news_poll_ms or 'manual'}\n")

        print(f"Logfire: {'✓ Set' if settings.logfire_token else '✗ Not set'}\n")
        return 0

    except ValidationError as e:
        print("\n❌ Configuration Error:\n")
        for error in e.errors():
            print(f"  • {'.'.join(str(x) for x in error['loc'])}: {error['msg']}")
        print()
        return 1
    except Exception as e:
        logger.error(f"Failed to load config: {e}")
        print(f"\n❌ Failed to load configuration: {e}\n")
        return 1


async def _snapshot() -> None:
    settings = get_settings()
    async with create_arena_client(settings.api_url) as client:
        agents = await client.get_agents()
        entries = validate_entries(await client.get_leaderboard()) or []
        history = parse_roi_history(
            await client.get_roi_history(settings.leaderboard.roi_history_limit)
        ) or {}
        context = (
            await client.get_market_context(settings.market.symbols)
            if settings.market.symbols
            else None
        )

    print(f"Agents: {len(agents)}")
    for agent in agents:
        print(f"  • {agent.name or agent.id} ({agent.model}): ${agent.current_balance:,.2f} [{agent.status}]")
    print()

    print("Leaderboard:")
    if not entries:
        print("  (None)")
    for entry in entries:
        points = len(history.get(entry.agent_id, []))
        print(
            f"  {entry.rank}. {entry.agent_name}: ROI {entry.roi:+.2f}% "
            f"P/L ${entry.profit_loss:,.2f} ({points} history points)"
        )
    print()

    if context is not None:
        print("Sentiment:")
        for symbol, agg in context.stock_sentiments.items():
            gauge = gauge_for(agg)
            print(
                f"  {symbol}: +{gauge.positive_pct}% / -{gauge.negative_pct}% / "
                f"={gauge.neutral_pct}% (gauge {gauge.position})"
            )
        print("\nData sources:")
        for name, raw in context.fetch_durations.items():
            print(f"  {name}: {format_duration(raw)}")
        print()


def cmd_snapshot(args: argparse.Namespace) -> int:
    """Pull one snapshot of every REST endpoint and print it."""
    _init_logfire()

    try:
        print("\n=== Arena Snapshot ===\n")
        asyncio.run(_snapshot())
        return 0

    except ArenaAPIError as e:
        logger.error(f"Snapshot failed: {e}")
        print(f"\n❌ Snapshot failed: {e}\n")
        return 1


async def _watch(interval: float, duration: float | None) -> None:
    async with Dashboard() as dashboard:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + duration if duration else None
        while deadline is None or loop.time() < deadline:
            await asyncio.sleep(interval)
            summary = dashboard.summary()
            logger.info(
                f"connected={summary['connected']} agents={summary['agents']} "
                f"leader={summary['leader']} history={summary['history_rows']} "
                f"decisions={summary['decisions']} thinking={len(summary['thinking'])} "
                f"news={summary['news_articles']} errors={summary['errors'] or '-'}"
            )


def cmd_watch(args: argparse.Namespace) -> int:
    """Follow the live stream and periodically log a dashboard summary."""
    try:
        _init_logfire()

        if args.debug:
            logging.getLogger().setLevel(logging.DEBUG)

        settings = get_settings()
        if args.reconnect:
            settings.stream.reconnect = True

        print("\n=== Arena Live ===\n")
        print(f"Version: {__version__}")
        print(f"API: {settings.api_url}")
        print(f"Stream: {settings.ws_url}\n")
        print("Press Ctrl+C to stop\n")

        asyncio.run(_watch(args.interval, args.duration))
        return 0

    except KeyboardInterrupt:
        print("\n\nReceived interrupt signal. Shutting down...\n")
        return 0
    except Exception as e:
        logger.error(f"Watch failed: {e}", exc_info=True)
        print(f"\nWatch failed: {e}\n")
        return 1


def cmd_prefs(args: argparse.Namespace) -> int:
    """Show or change dashboard preferences."""
    try:
        store = PreferencesStore(get_settings().preferences_path)
        store.load()

        if args.toggle_dark_mode:
            store.toggle_dark_mode()
        elif args.dark_mode is not None:
            store.set_dark_mode(args.dark_mode == "on")

        print(f"\nDark mode: {'on' if store.dark_mode else 'off'}")
        print(f"Stored at: {store.path}\n")
        return 0

    except Exception as e:
        logger.error(f"Failed to update preferences: {e}")
        print(f"\n❌ Failed to update preferences: {e}\n")
        return 1


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Arena Live: terminal client for the AI trading arena",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Arena Live {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_config = subparsers.add_parser(
        "config",
        help="Display merged configuration",
    )
    parser_config.set_defaults(func=cmd_config)

    parser_snapshot = subparsers.add_parser(
        "snapshot",
        help="Fetch agents, leaderboard and market context once",
    )
    parser_snapshot.set_defaults(func=cmd_snapshot)

    parser_watch = subparsers.add_parser(
        "watch",
        help="Follow the live stream and log a summary periodically",
    )
    parser_watch.add_argument(
        "--interval",
        type=float,
        default=5.0,
        help="Seconds between summaries (default: 5)",
    )
    parser_watch.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop after this many seconds",
    )
    parser_watch.add_argument(
        "--reconnect",
        action="store_true",
        help="Reconnect with backoff when the stream closes",
    )
    parser_watch.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser_watch.set_defaults(func=cmd_watch)

    parser_prefs = subparsers.add_parser(
        "prefs",
        help="Show or change dashboard preferences",
    )
    group = parser_prefs.add_mutually_exclusive_group()
    group.add_argument(
        "--dark-mode",
        choices=["on", "off"],
        help="Set dark mode",
    )
    group.add_argument(
        "--toggle-dark-mode",
        action="store_true",
        help="Flip dark mode",
    )
    parser_prefs.set_defaults(func=cmd_prefs)

    args = parser.parse_args()

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
