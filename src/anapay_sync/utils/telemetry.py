"""Sentry error tracking."""

import logging
import os
from typing import Optional

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

from .. import __version__


logger = logging.getLogger(__name__)


def init_sentry(dsn: Optional[str] = None, environment: str = "production",
                traces_sample_rate: float = 1.0) -> bool:
    """Initialize Sentry error tracking.

    Args:
        dsn: Sentry DSN, falls back to the SENTRY_DSN environment variable
        environment: Environment name reported with events
        traces_sample_rate: Performance tracing sample rate

    Returns:
        True if Sentry was initialized, False if no DSN is configured
    """
    dsn = dsn or os.environ.get("SENTRY_DSN", "")
    if not dsn:
        logger.warning("Sentry DSN not set. Sentry error tracking will be disabled")
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        release=f"pocketsmith-anapay@{__version__}",
        traces_sample_rate=traces_sample_rate,
        integrations=[
            # ErrorHandler reports exceptions itself
            LoggingIntegration(level=logging.INFO, event_level=None),
        ],
        send_default_pii=False,
    )
    logger.info(f"Sentry initialized (environment: {environment})")
    return True


def flush(timeout: float = 2.0) -> None:
    """Send buffered events before the process exits"""
    sentry_sdk.flush(timeout=timeout)
