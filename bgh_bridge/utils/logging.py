"""
Structured logging setup using structlog.
Outputs JSON-formatted logs for easy parsing.
"""

import logging
import os
import sys
from typing import Optional

import structlog


def setup_logging(log_level: Optional[str] = None):
    """
    Configure structlog for JSON-formatted logging.

    Log levels:
    - DEBUG: Vendor request details, polling attempts
    - INFO: Logins, queued/completed commands, SSE connects
    - WARNING: Failed polls, dropped subscribers
    - ERROR: Vendor failures, crashed jobs

    Usage:
        from bgh_bridge.utils.logging import get_logger
        log = get_logger(__name__)
        log.info("command_queued", job_id="...", queue_depth=2)
        log.warning("status_poll_failed", device_id=7, attempt=3)
        log.error("bgh_api_error", endpoint="HVACSetModes", status=502)
    """
    level_name = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    # Configure standard library logging (uvicorn, httpx)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.format_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = None) -> structlog.BoundLogger:
    """
    Get a structlog logger instance.

    Args:
        name: Optional logger name (e.g., module name)

    Returns:
        Configured structlog logger

    Example:
        log = get_logger(__name__).bind(service="bgh_service")
        log.info("homes_retrieved", home_count=2)
    """
    if name:
        return structlog.get_logger(name)
    return structlog.get_logger()
