"""
structlog setup for the command-line entry point.

Library modules only call ``structlog.get_logger(__name__)``; the CLI decides
where events go and which levels pass.
"""

import logging
import os
import sys
from collections.abc import Mapping

import structlog

DEBUG_ENV = "HYPERDRIVE_DEBUG"


def debug_requested(flag: bool, env: Mapping[str, str] | None = None) -> bool:
    """Check whether the debug-trace channel should be enabled."""
    env = os.environ if env is None else env
    return flag or env.get(DEBUG_ENV, "").strip().lower() in {"1", "true", "yes", "on"}


def configure_logging(debug: bool = False) -> None:
    """
    Route structlog events to stderr.

    Args:
        debug: Emit debug events (full failure traces included). Otherwise only
            warnings and errors are shown.
    """
    level = logging.DEBUG if debug else logging.WARNING
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
