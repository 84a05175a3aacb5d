"""
Ticket Routing - Main Process
=============================

Runs the periodic SLA sweep (priority escalation and stale-ticket
reassignment) until interrupted.

STARTUP:
1. Setup structured logging
2. Initialize database (create tables in development)
3. Build the routing runtime
4. Start SLA scheduler

SHUTDOWN:
1. Stop SLA scheduler
2. Close database connections
"""

import asyncio
import signal

from ticket_routing.config import get_settings
from ticket_routing.infrastructure.database import (
    close_database, create_tables, get_session_context, init_database,
)
from ticket_routing.routing.infrastructure import SLAScheduler
from ticket_routing.routing.runtime import RoutingRuntime
from ticket_routing.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)


async def serve() -> None:
    settings = get_settings()

    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting ticket routing worker", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    init_database()
    if settings.environment == "development":
        logger.info("Creating database tables")
        await create_tables()

    runtime = RoutingRuntime(settings, get_session_context)

    scheduler = SLAScheduler(interval_seconds=settings.sla_monitor_interval)
    await scheduler.start(runtime.run_sla_sweep, run_immediately=True)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # add_signal_handler is unavailable on Windows event loops
            pass

    try:
        await stop.wait()
    finally:
        # === SHUTDOWN ===
        logger.info("Shutting down ticket routing worker")
        await scheduler.stop()
        await close_database()
        logger.info("Ticket routing worker shutdown complete")


def main() -> None:
    """Console entry point."""
    asyncio.run(serve())


if __name__ == "__main__":
    main()
