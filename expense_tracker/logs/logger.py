"""
Structured Logging

DESIGN DECISION: Every component logs through structlog with keyword
context (user_id, expense_id, month) instead of formatted strings.
This gives:
1. Machine-readable JSON lines in production
2. Readable console output in debug mode
3. One place to change processors for the whole application

Nothing logged here is persisted as an audit trail; these are
operational logs only.
"""

import logging
import sys
from typing import Optional

import structlog

from expense_tracker.config import AppSettings


_SHARED_PROCESSORS = [
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.UnicodeDecoder(),
]


def configure_logging(settings: Optional[AppSettings] = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    Safe to call more than once; the last call wins. Loggers are not
    cached on first use, so module-level loggers pick up a new
    configuration too.
    """
    level = settings.log_level if settings else "INFO"
    debug = settings.debug_mode if settings else False

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level),
        force=True,
    )

    renderer = (
        structlog.dev.ConsoleRenderer()
        if debug
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[*_SHARED_PROCESSORS, renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger bound to `name`."""
    return structlog.get_logger(name)


# Default configuration so modules can log before the app configures itself
configure_logging()
