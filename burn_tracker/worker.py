"""
Headless entry point: runs the burn scheduler without the HTTP API.
"""

import asyncio
import signal

import structlog

from burn_tracker.core.container import ServiceContainer, build_container
from burn_tracker.core.logging import setup_logging


logger = structlog.get_logger(__name__)


async def run_worker(container: ServiceContainer, stop_event: asyncio.Event):
    """Run the scheduler until stop_event is set."""
    await container.scheduler.start()
    logger.info("Burn worker running", status=container.scheduler.get_status()["status"])
    await stop_event.wait()


async def main():
    """Main function to run the worker service."""
    setup_logging()

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def signal_handler(signum):
        logger.info(f"Received signal {signum}, shutting down...")
        stop_event.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, signal_handler, signum)

    container = await build_container()
    try:
        await run_worker(container, stop_event)
    except Exception as e:
        logger.error("Burn worker failed", error=str(e))
        raise
    finally:
        await container.close()


def cli():
    asyncio.run(main())


if __name__ == "__main__":
    cli()
