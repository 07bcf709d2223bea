"""Worker process entry point for telemetry ingestion."""

import asyncio
import signal

from ruleinsight.container import Container
from ruleinsight.core.config import get_settings
from ruleinsight.core.logging import get_logger, setup_logging
from ruleinsight.messaging.consumer import TelemetryConsumer
from ruleinsight.storage.redis_client import close_redis_pool, init_redis_pool

logger = get_logger(__name__)


class WorkerManager:
    """Runs the telemetry consumer against the shared Redis pool."""

    def __init__(self):
        """Initialize worker manager."""
        self._settings = get_settings()
        self._container: Container | None = None
        self._consumer: TelemetryConsumer | None = None
        self._shutdown_event = asyncio.Event()

    async def start(self) -> None:
        """Start the worker."""
        setup_logging(self._settings)
        logger.info("Starting worker manager", queue=self._settings.rabbitmq_queue)

        await init_redis_pool()
        self._container = Container(settings=self._settings)
        self._consumer = TelemetryConsumer(self._container.analytics, settings=self._settings)

        try:
            await self._run_consumer()
        finally:
            await self._cleanup()

    async def _run_consumer(self) -> None:
        """Run message consumer."""
        if self._consumer:
            try:
                await self._consumer.start_consuming()
            except asyncio.CancelledError:
                logger.info("Consumer cancelled")
            except Exception as e:
                logger.error("Consumer error", error=str(e), exc_info=True)

    async def stop(self) -> None:
        """Signal workers to stop."""
        logger.info("Stopping workers")
        if self._consumer:
            self._consumer.stop()
        self._shutdown_event.set()

    async def _cleanup(self) -> None:
        """Clean up resources."""
        logger.info("Cleaning up resources")
        if self._consumer:
            await self._consumer.disconnect()
        await close_redis_pool()
        logger.info("Cleanup complete")


async def main() -> None:
    """Main entry point for worker process."""
    manager = WorkerManager()

    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        asyncio.create_task(manager.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    await manager.start()


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
