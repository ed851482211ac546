"""Logfire cloud observability initialization and instrumentation."""

import logging

import logfire

from arena_live import __version__
from arena_live.config import Settings

logger = logging.getLogger(__name__)


def initialize_logfire(settings: Settings) -> bool:
    """
    Initialize Logfire for the dashboard process.

    Must be called once at startup, before any client is created, so that
    httpx instrumentation sees every REST request.

    This function configures Logfire cloud tracking and instruments:
    - HTTPX clients (roster, leaderboard, ROI history, market context pulls)
    - Python logging (bridges stream and cache logs to Logfire)

    Args:
        settings: Application settings containing Logfire token

    Returns:
        True when Logfire was configured, False when it was skipped.
    """
    if not settings.logfire_token:
        logger.debug("Logfire token not set - observability disabled")
        return False

    try:
        logfire.configure(
            token=settings.logfire_token,
            service_name="arena-live",
            service_version=__version__,
            environment=settings.environment,
        )

        logfire.instrument_httpx()

        root_logger = logging.getLogger()
        root_logger.addHandler(logfire.LogfireLoggingHandler())

        logger.info("Logfire cloud tracking initialized")
        return True

    except Exception as e:
        # Observability is optional; keep running without it
        logger.warning(f"Failed to initialize Logfire: {e}")
        return False
