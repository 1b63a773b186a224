"""
Fulfillment worker process: polls the fulfillment queue and finalizes orders.

    python -m fulfillment_worker.app
"""

import asyncio
import logging
import signal

from broker.queue import RabbitTaskQueue
from common import RedisCache, Settings, setup_logging
from common.storage import init_db
from fulfillment_worker.worker import FulfillmentWorker
from notification_service.client import HttpNotifier

logger = logging.getLogger(__name__)


async def main() -> None:
    settings = Settings.from_env()
    setup_logging("fulfillment-worker", settings.log_level)
    init_db(settings.db_path)

    cache = RedisCache.from_url(settings.redis_url)
    notifier = HttpNotifier(settings.notification_url, settings.notification_timeout_ms)
    try:
        async with RabbitTaskQueue(
            settings.rabbit_url,
            settings.fulfillment_queue,
            visibility_timeout=settings.visibility_timeout_seconds,
        ) as queue:
            worker = FulfillmentWorker(
                settings.db_path,
                queue,
                cache,
                notifier,
                cache_ttl_seconds=settings.cache_ttl_seconds,
                poll_interval=settings.poll_interval_seconds,
                batch_size=settings.batch_size,
                wait_seconds=settings.wait_seconds,
            )
            stop = asyncio.Event()
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, stop.set)

            worker.start()
            await stop.wait()
            logger.info("Shutdown requested, waiting for in-flight batch")
            await worker.stop()
    finally:
        await notifier.close()
        await cache.close()


if __name__ == "__main__":
    asyncio.run(main())
