"""
Retention sweep: old items and old failed jobs.

Items are deleted by age regardless of how their processing ended;
failed jobs are trimmed from the failed stream by stream-id timestamp.
"""

import asyncio
from dataclasses import dataclass

import structlog

from hubrelay.events.queue import EventQueue
from hubrelay.events.repository import ItemRepository

logger = structlog.get_logger(__name__)


@dataclass
class RetentionReport:
    items: int = 0
    failed_jobs: int = 0
    dry_run: bool = False


class RetentionService:
    """
    Deletes items older than ``retention_days`` and failed jobs older
    than the queue's failed-job retention.

    Usage:
        service = RetentionService(items, queue, retention_days=7)
        report = await service.run_once()
    """

    def __init__(
        self,
        items: ItemRepository,
        queue: EventQueue,
        retention_days: int = 7,
        failed_retention_days: int | None = None,
    ) -> None:
        self._items = items
        self._queue = queue
        self._retention_days = retention_days
        self._failed_retention_days = (
            failed_retention_days or queue.queue_config.failed_retention_days
        )
        self._stopped = asyncio.Event()

    async def run_once(self, dry_run: bool = False) -> RetentionReport:
        if dry_run:
            report = RetentionReport(
                items=await self._items.count_older_than(self._retention_days),
                failed_jobs=await self._queue.count_failed_older_than(
                    self._failed_retention_days
                ),
                dry_run=True,
            )
        else:
            report = RetentionReport(
                items=await self._items.delete_older_than(self._retention_days),
                failed_jobs=await self._queue.clean_failed(self._failed_retention_days),
            )

        logger.info(
            "Retention sweep finished",
            items=report.items,
            failed_jobs=report.failed_jobs,
            dry_run=dry_run,
        )
        return report

    async def run(self, interval_hours: float) -> None:
        """Sweep every ``interval_hours`` until stop() is called."""
        while not self._stopped.is_set():
            try:
                await self.run_once()
            except Exception as e:
                logger.error("Retention sweep failed", error=str(e))
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=interval_hours * 3600)
            except asyncio.TimeoutError:
                continue

    def stop(self) -> None:
        self._stopped.set()
