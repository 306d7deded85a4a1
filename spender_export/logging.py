"""Logging utilities for the export orchestrator and job service."""

from __future__ import annotations

from functools import lru_cache

import structlog


@lru_cache(maxsize=1)
def configure_logging() -> structlog.stdlib.BoundLogger:
    """Configure structlog and return the package logger.

    ``main()`` configures logging before dispatching a command and
    ``create_app()`` does so again when it is not handed a logger, so
    ``spender-export serve`` reaches this twice and the test-suite builds many
    apps in one process. The cache keeps that to a single ``structlog.configure``.
    """
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    return structlog.get_logger()


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Return a logger bound to ``component``."""
    return structlog.get_logger().bind(component=component)


__all__ = ["configure_logging", "get_logger"]
