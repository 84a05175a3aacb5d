"""
Structured Logging
==================

JSON-structured logging for the routing engine.

Provides:
- Structured JSON logs (parseable by log aggregators)
- Sweep run ID for correlating all lines of one SLA sweep
- Contextual loggers for modules
- Timing utilities

Usage:
    from ticket_routing.shared.infrastructure.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Ticket escalated", extra={"ticket_id": 42})
"""

import logging
import sys
import time
from datetime import datetime, timezone
from typing import Any, Optional
from contextlib import contextmanager

from pythonjsonlogger.json import JsonFormatter


class RoutingJsonFormatter(JsonFormatter):
    """
    JSON formatter with routing-specific fields.

    Adds:
    - timestamp in ISO format (UTC)
    - run_id when the line belongs to an SLA sweep
    - environment name
    """

    def __init__(self, *args: Any, environment: str = "development", **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.environment = environment

    def add_fields(
        self,
        log_data: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_data, record, message_dict)

        if not log_data.get("timestamp"):
            log_data["timestamp"] = datetime.now(timezone.utc).isoformat()

        run_id = getattr(record, "run_id", None) or message_dict.get("run_id")
        if run_id:
            log_data["run_id"] = run_id

        log_data["environment"] = self.environment


def setup_logging(
    level: str = "INFO",
    environment: str = "development",
) -> None:
    """
    Configure structured JSON logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        environment: Environment name for log context
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))
    handler.setFormatter(
        RoutingJsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
            environment=environment,
        )
    )
    root_logger.addHandler(handler)

    # Silence noisy loggers
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)


class RunLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges per-call ``extra`` with the adapter context."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        kwargs["extra"] = {**(self.extra or {}), **(kwargs.get("extra") or {})}
        return msg, kwargs


def get_run_logger(name: str, run_id: Optional[str] = None) -> RunLoggerAdapter:
    """
    Get a logger that stamps every line with the sweep run ID.

    Args:
        name: Logger name
        run_id: Identifier of the current SLA sweep

    Returns:
        RunLoggerAdapter: Logger with run_id in extra
    """
    return RunLoggerAdapter(get_logger(name), {"run_id": run_id})


@contextmanager
def log_latency(logger: logging.Logger, operation: str, **extra_context: Any):
    """
    Context manager for measuring and logging operation latency.

    Usage:
        with log_latency(logger, "sla_sweep", batch_size=100):
            await monitor.run()
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        latency_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"{operation} completed",
            extra={
                "operation": operation,
                "latency_ms": round(latency_ms, 2),
                **extra_context,
            },
        )
