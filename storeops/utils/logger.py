"""
Structured logging configuration using structlog.

This module provides centralized logging configuration for the API process and
any worker that imports the resilience layer. It supports both development
(human-readable) and production (JSON) formats.
"""

import logging
import sys
from typing import Any, Dict, Optional

import structlog
from structlog.types import Processor

from storeops.core.config import settings


def configure_logging() -> None:
    """
    Configure structured logging for the entire application.

    This function sets up:
    - Development: Human-readable logs with colors
    - Production: JSON structured logs for machine processing
    """
    is_development = settings.APP_ENV.lower() in ("development", "dev", "local")

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.INFO,
    )

    processors: list[Processor] = [
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.LINENO,
            ]
        ),
    ]

    if is_development:
        processors.extend(
            [
                structlog.dev.set_exc_info,
                structlog.dev.ConsoleRenderer(colors=True),
            ]
        )
    else:
        processors.extend(
            [
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ]
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


# Standard context processors for common scenarios
def add_dependency_context(dependency: str) -> Dict[str, Any]:
    """Add protected-dependency context to logs."""
    return {"circuit": dependency}


def add_dlq_context(dlq_id: Optional[str], queue: Optional[str] = None) -> Dict[str, Any]:
    """Add dead-letter record context to logs."""
    context: Dict[str, Any] = {"dlq_id": dlq_id}
    if queue:
        context["queue"] = queue
    return context
