"""
Event worker - consumes relay jobs and runs the filter pipeline.

Runs a fixed number of slots, each consuming one job at a time:
1. Starts a lock heartbeat for the job
2. Runs EventPipeline.process()
3. Completes the job, or fails it so the queue retries or parks it
"""

import asyncio
import contextlib
from collections.abc import Awaitable
from typing import Any

import structlog

from hubrelay.events.pipeline import EventPipeline
from hubrelay.events.queue import EventQueue
from hubrelay.events.schemas import Job, ProcessResult
from hubrelay.observability.logging import bind_context, clear_context
from hubrelay.observability.metrics import get_metrics
from hubrelay.queues.base import QueuedJob

logger = structlog.get_logger(__name__)


class EventWorker:
    """
    Worker pool that processes relay jobs from the queue.

    Features:
    - Bounded concurrency (one job per slot)
    - Lock renewal while a job is in flight
    - Retry with backoff via the queue on any handler error
    - Graceful shutdown

    Usage:
        worker = EventWorker(queue, pipeline, concurrency=5)
        await worker.start()  # Runs until stopped
    """

    def __init__(
        self,
        queue: EventQueue,
        pipeline: EventPipeline,
        concurrency: int = 5,
        block_ms: int = 5000,
    ):
        self._queue = queue
        self._pipeline = pipeline
        self._concurrency = max(1, concurrency)
        self._block_ms = block_ms
        self._running = False
        self._tasks: list[asyncio.Task] = []
        self._metrics = get_metrics()

        logger.info("EventWorker initialized", concurrency=self._concurrency)

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Run all slots until stop() is called or the task is cancelled."""
        self._running = True
        logger.info("Starting event worker", slots=self._concurrency)

        self._tasks = [
            asyncio.create_task(self._slot_loop(slot), name=f"relay-slot-{slot}")
            for slot in range(self._concurrency)
        ]
        try:
            await asyncio.gather(*self._tasks)
        except asyncio.CancelledError:
            logger.info("Event worker cancelled")
        finally:
            for task in self._tasks:
                task.cancel()
            self._running = False

    async def stop(self) -> None:
        """Stop the worker after in-flight jobs finish."""
        logger.info("Stopping event worker")
        self._running = False

    async def _slot_loop(self, slot: int) -> None:
        async for job in self._queue.consume(count=1, block_ms=self._block_ms):
            await self.handle(job)
            if not self._running:
                break
        logger.debug("Worker slot exited", slot=slot)

    async def handle(self, job: QueuedJob[Job]) -> ProcessResult | None:
        """
        Process one queued job end to end.

        Returns:
            The pipeline result, or None if the attempt failed.
        """
        bind_context(item_id=job.key, attempt=job.attempt + 1)
        heartbeat = asyncio.create_task(self._heartbeat(job))
        try:
            result = await self._pipeline.process(
                job.payload, reclaimed=job.stalled_count > 0
            )
        except Exception as e:
            self._metrics.jobs_processed.labels(outcome="error").inc()
            heartbeat.cancel()
            logger.warning(
                "Job attempt failed", error=str(e), error_type=type(e).__name__
            )
            await self._settle(self._queue.fail(job, f"{type(e).__name__}: {e}"), "fail")
            return None
        else:
            heartbeat.cancel()
            await self._settle(self._queue.complete(job), "complete")
            logger.debug(
                "Job completed",
                outcome=result.outcome.value,
                reason=result.reason,
            )
            return result
        finally:
            heartbeat.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await heartbeat
            clear_context()

    async def _heartbeat(self, job: QueuedJob[Job]) -> None:
        """Renew the job's lock every half lock duration."""
        interval = self._queue.queue_config.lock_renew_interval
        while True:
            await asyncio.sleep(interval)
            try:
                await self._queue.heartbeat(job)
            except Exception as e:
                logger.warning("Lock renewal failed", error=str(e))

    async def _settle(self, ack: Awaitable[Any], action: str) -> None:
        """Await an ack; on error the entry stays pending and is reclaimed as stalled."""
        try:
            await ack
        except Exception as e:
            logger.error(
                "Could not settle job, leaving it for stall recovery",
                action=action,
                error=str(e),
                error_type=type(e).__name__,
            )
