"""
Caption regeneration service entry point.

Bootstrap order: connect to the record store, write the snapshot, bulk-load
the working cache, run the first cycle, then regenerate on a fixed interval
until SIGINT/SIGTERM.
"""

# Performance: Install uvloop if available (Linux/macOS only)
try:
    import uvloop
    uvloop.install()
except ImportError:
    pass  # Windows - uvloop not available, use default asyncio

import asyncio
import signal
import sys
from contextlib import asynccontextmanager
from typing import Optional

from dependency_injector import providers

from core.config import Settings
from core.container import Container, container
from core.errors import StoreUnavailableError
from core.logging import configure_logging, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app_container: Container):
    """Own the record store connection for the life of the process."""
    database = app_container.database()
    await database.startup()
    try:
        yield database
    finally:
        await database.shutdown()


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Windows event loops; Ctrl+C still ends asyncio.run()
            pass


async def run(settings: Settings, stop_event: Optional[asyncio.Event] = None,
              app_container: Container = container) -> int:
    """Run the service until ``stop_event`` is set. Returns the exit code."""
    app_container.settings.override(providers.Object(settings))
    if stop_event is None:
        stop_event = asyncio.Event()
        _install_signal_handlers(stop_event)

    logger.info("Starting caption regeneration service",
                model=settings.ai_model,
                interval_seconds=settings.regen_interval_seconds,
                inter_record_delay=settings.inter_record_delay,
                cache_ttl=settings.cache_ttl)

    try:
        async with lifespan(app_container):
            if settings.snapshot_enabled:
                await app_container.snapshot_writer().write_snapshot()

            controller = app_container.controller()
            await controller.refresh_cache()

            scheduler = app_container.scheduler()
            scheduler.start(run_immediately=True)
            try:
                await stop_event.wait()
                logger.info("Shutdown requested")
            finally:
                scheduler.shutdown()
                if not await controller.wait_idle(settings.shutdown_grace_seconds):
                    logger.warning("Cycle still running at shutdown, closing store anyway",
                                   grace_seconds=settings.shutdown_grace_seconds)
    except StoreUnavailableError as e:
        logger.critical("Record store unavailable at startup, exiting", error=str(e))
        return 1

    logger.info("Service shutdown complete")
    return 0


def main() -> None:
    settings = Settings()
    configure_logging(settings)
    sys.exit(asyncio.run(run(settings)))


if __name__ == "__main__":
    main()
