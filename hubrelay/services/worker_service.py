"""
Worker service - the long-running background process.

Wires the relay's collaborators together and runs, concurrently:
1. The event worker pool (queue consumers running the filter pipeline)
2. The subscription renewal scheduler
3. The periodic retention sweep
"""

import asyncio

import redis.asyncio as redis
import structlog

from hubrelay.accounts.repository import AccountDirectory
from hubrelay.config.settings import Settings, get_settings
from hubrelay.events.config import FilterConfig
from hubrelay.events.pipeline import EventPipeline
from hubrelay.events.queue import EventQueue
from hubrelay.events.repository import ItemRepository
from hubrelay.events.worker import EventWorker
from hubrelay.metadata.client import MetadataResolver
from hubrelay.metadata.config import MetadataConfig
from hubrelay.notifications.channels import TelegramChannel
from hubrelay.notifications.config import NotificationConfig
from hubrelay.notifications.dispatcher import NotificationDispatcher
from hubrelay.services.retention import RetentionService
from hubrelay.storage.cache import RedisCache
from hubrelay.storage.database import Database
from hubrelay.subscriptions.manager import SubscriptionManager
from hubrelay.subscriptions.repository import SubscriptionRepository
from hubrelay.subscriptions.scheduler import RenewalScheduler

logger = structlog.get_logger(__name__)


class WorkerService:
    """
    Owns every client the background process needs.

    Usage:
        service = WorkerService()
        await service.start()  # Runs until stopped
    """

    def __init__(
        self,
        settings: Settings | None = None,
        database: Database | None = None,
        queue: EventQueue | None = None,
        concurrency: int | None = None,
        enable_renewal: bool = True,
        enable_retention: bool = True,
    ):
        self._settings = settings or get_settings()
        self._database = database or Database()
        self._queue = queue or EventQueue()
        self._concurrency = concurrency or self._settings.worker_concurrency
        self._enable_renewal = enable_renewal
        self._enable_retention = enable_retention

        self._redis: redis.Redis | None = None
        self._worker: EventWorker | None = None
        self._scheduler: RenewalScheduler | None = None
        self._retention: RetentionService | None = None
        self._tasks: list[asyncio.Task] = []

    def _build(self) -> None:
        settings = self._settings
        self._redis = redis.from_url(
            str(settings.redis_url),
            encoding="utf-8",
            decode_responses=True,
        )
        cache = RedisCache(self._redis)
        items = ItemRepository(self._database)

        pipeline = EventPipeline(
            items=items,
            cache=cache,
            resolver=MetadataResolver(
                settings.youtube_api_key, cache=cache, config=MetadataConfig()
            ),
            accounts=AccountDirectory(self._database, settings.default_chat_ids),
            dispatcher=NotificationDispatcher(
                TelegramChannel(settings.telegram_bot_token, config=NotificationConfig())
            ),
            config=FilterConfig(),
        )
        self._worker = EventWorker(self._queue, pipeline, concurrency=self._concurrency)

        manager = SubscriptionManager(
            SubscriptionRepository(self._database),
            hub_url=settings.hub_url,
            callback_url=settings.callback_url,
        )
        self._scheduler = RenewalScheduler(manager)
        self._retention = RetentionService(
            items, self._queue, retention_days=settings.retention_days
        )

    async def start(self) -> None:
        """Connect and run all loops until stop() or cancellation."""
        logger.info("Starting worker service", concurrency=self._concurrency)

        await self._queue.connect()
        await self._database.connect()
        self._build()

        self._tasks = [asyncio.create_task(self._worker.start(), name="event-worker")]
        if self._enable_renewal:
            self._tasks.append(
                asyncio.create_task(self._scheduler.run(), name="renewal-scheduler")
            )
        if self._enable_retention:
            self._tasks.append(
                asyncio.create_task(
                    self._retention.run(self._settings.retention_interval_hours),
                    name="retention",
                )
            )

        try:
            await asyncio.gather(*self._tasks)
        except asyncio.CancelledError:
            logger.info("Worker service cancelled")
        finally:
            await self._cleanup()

    async def stop(self) -> None:
        """Stop all loops gracefully."""
        logger.info("Stopping worker service")
        if self._worker:
            await self._worker.stop()
        if self._scheduler:
            self._scheduler.stop()
        if self._retention:
            self._retention.stop()
        for task in self._tasks:
            task.cancel()

    async def _cleanup(self) -> None:
        for task in self._tasks:
            task.cancel()
        await self._queue.close()
        await self._database.close()
        if self._redis:
            await self._redis.aclose()
        logger.info("Worker service cleaned up")
