"""
Dependency injection for FastAPI endpoints.

Clients are owned by an ``AppResources`` instance stored on
``app.state`` and created on first use, so the app can start while
Redis or PostgreSQL are still coming up. Tests replace the ``get_*``
functions through ``app.dependency_overrides``.
"""

import asyncio

from fastapi import Depends, Request

from hubrelay.config.settings import Settings, get_settings
from hubrelay.events.queue import EventQueue
from hubrelay.storage.database import Database
from hubrelay.subscriptions.config import SubscriptionConfig
from hubrelay.subscriptions.manager import SubscriptionManager
from hubrelay.subscriptions.repository import SubscriptionRepository
from hubrelay.webhook.receiver import WebhookReceiver


class AppResources:
    """Lazily connected clients shared by all requests of one app."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._database: Database | None = None
        self._queue: EventQueue | None = None
        self._lock = asyncio.Lock()

    async def database(self) -> Database:
        async with self._lock:
            if self._database is None:
                database = Database()
                await database.connect()
                self._database = database
        return self._database

    async def queue(self) -> EventQueue:
        async with self._lock:
            if self._queue is None:
                queue = EventQueue()
                await queue.connect()
                self._queue = queue
        return self._queue

    async def close(self) -> None:
        if self._queue is not None:
            await self._queue.close()
            self._queue = None
        if self._database is not None:
            await self._database.close()
            self._database = None


def get_resources(request: Request) -> AppResources:
    return request.app.state.resources


def get_receiver(resources: AppResources = Depends(get_resources)) -> WebhookReceiver:
    return WebhookReceiver(resources.queue)


async def get_database(resources: AppResources = Depends(get_resources)) -> Database:
    return await resources.database()


async def get_subscription_repository(
    database: Database = Depends(get_database),
) -> SubscriptionRepository:
    return SubscriptionRepository(database)


def get_subscription_config() -> SubscriptionConfig:
    return SubscriptionConfig()


async def get_subscription_manager(
    repository: SubscriptionRepository = Depends(get_subscription_repository),
    config: SubscriptionConfig = Depends(get_subscription_config),
) -> SubscriptionManager:
    settings = get_settings()
    return SubscriptionManager(
        repository,
        hub_url=settings.hub_url,
        callback_url=settings.callback_url,
        config=config,
    )
