"""Tests for the retention sweep."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from hubrelay.queues.config import QueueConfig
from hubrelay.services.retention import RetentionService


@pytest.fixture
def items():
    repo = AsyncMock()
    repo.delete_older_than.return_value = 12
    repo.count_older_than.return_value = 12
    return repo


@pytest.fixture
def queue():
    q = MagicMock()
    q.queue_config = QueueConfig(failed_retention_days=14)
    q.clean_failed = AsyncMock(return_value=3)
    q.count_failed_older_than = AsyncMock(return_value=3)
    return q


class TestRunOnce:

    @pytest.mark.asyncio
    async def test_deletes_items_and_failed_jobs(self, items, queue):
        report = await RetentionService(items, queue, retention_days=7).run_once()

        assert (report.items, report.failed_jobs, report.dry_run) == (12, 3, False)
        items.delete_older_than.assert_awaited_once_with(7)
        queue.clean_failed.assert_awaited_once_with(14)

    @pytest.mark.asyncio
    async def test_dry_run_only_counts(self, items, queue):
        report = await RetentionService(items, queue).run_once(dry_run=True)

        assert report.dry_run
        assert report.items == 12
        items.delete_older_than.assert_not_called()
        queue.clean_failed.assert_not_called()
        queue.count_failed_older_than.assert_awaited_once_with(14)

    @pytest.mark.asyncio
    async def test_explicit_failed_retention(self, items, queue):
        await RetentionService(items, queue, failed_retention_days=2).run_once()
        queue.clean_failed.assert_awaited_once_with(2)


class TestRun:

    @pytest.mark.asyncio
    async def test_errors_do_not_stop_the_loop(self, items, queue):
        items.delete_older_than.side_effect = RuntimeError("db down")
        service = RetentionService(items, queue)

        task = asyncio.create_task(service.run(interval_hours=1))
        for _ in range(10):
            await asyncio.sleep(0)
            if items.delete_older_than.await_count:
                break
        service.stop()
        await asyncio.wait_for(task, timeout=1)

        assert items.delete_older_than.await_count == 1
