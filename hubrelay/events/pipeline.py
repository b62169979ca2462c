"""
Filter/dedup pipeline run for every consumed job.

Steps, cheapest and most selective first:
1. Processing guard (short-TTL cache lock on item_id)
2. Durable dedup (item already dispatched)
3. Title keyword denylist
4. Metadata resolution (None => filtered)
5. Privacy, duration and quality filters
6. Idempotent insert, account lookup, dispatch

The guard is an optimization only. The insert-on-conflict-ignore in
step 6 is what keeps a single record per item when two workers race.
"""

import time

import structlog

from hubrelay.accounts.repository import AccountDirectory
from hubrelay.events.config import FilterConfig
from hubrelay.events.filters import apply_metadata_filters, keyword_filter
from hubrelay.events.repository import DISPATCHED, NO_TARGETS, ItemRepository
from hubrelay.events.schemas import Item, Job, ProcessOutcome, ProcessResult
from hubrelay.metadata.client import MetadataResolver
from hubrelay.notifications.dispatcher import DispatchTarget, NotificationDispatcher
from hubrelay.observability.metrics import get_metrics
from hubrelay.storage.cache import RedisCache

logger = structlog.get_logger(__name__)


def guard_key(item_id: str) -> str:
    return f"proc:{item_id}"


class EventPipeline:
    """
    Decides what happens to one job and carries it out.

    Skips (duplicate, filtered) are returned as ProcessResult values.
    Anything else, including AllTargetsFailed from the dispatcher,
    propagates so that the queue's retry policy applies.

    Usage:
        pipeline = EventPipeline(items, cache, resolver, accounts, dispatcher)
        result = await pipeline.process(job)
    """

    def __init__(
        self,
        items: ItemRepository,
        cache: RedisCache,
        resolver: MetadataResolver,
        accounts: AccountDirectory,
        dispatcher: NotificationDispatcher,
        config: FilterConfig | None = None,
    ) -> None:
        self._items = items
        self._cache = cache
        self._resolver = resolver
        self._accounts = accounts
        self._dispatcher = dispatcher
        self._config = config or FilterConfig()

    @property
    def config(self) -> FilterConfig:
        return self._config

    async def process(self, job: Job, reclaimed: bool = False) -> ProcessResult:
        """
        Run one job through the pipeline, releasing the guard on every exit.

        Args:
            job: The job to process.
            reclaimed: The delivery was taken over from a stalled worker.
                Its guard may still be held by that worker, so it is taken
                over instead of being treated as a concurrent duplicate.
        """
        log = logger.bind(item_id=job.item_id, source_id=job.source_id)
        key = guard_key(job.item_id)
        ttl = self._config.guard_ttl_seconds

        if reclaimed:
            log.info("Taking over guard for reclaimed job")
            await self._cache.take_lock(key, ttl)
        elif not await self._cache.acquire_lock(key, ttl):
            log.info("Item already being processed")
            return self._finish(ProcessResult(ProcessOutcome.DUPLICATE, "guard_held"))

        start = time.monotonic()
        try:
            result = await self._run(job, log)
        finally:
            await self._cache.release_lock(key)
            get_metrics().record_stage_latency("process", time.monotonic() - start)

        return self._finish(result)

    def _finish(self, result: ProcessResult) -> ProcessResult:
        get_metrics().jobs_processed.labels(outcome=result.outcome.value).inc()
        return result

    async def _run(self, job: Job, log) -> ProcessResult:
        if await self._items.is_processed(job.item_id):
            log.info("Item already processed")
            return ProcessResult(ProcessOutcome.DUPLICATE, "already_processed")

        reason = keyword_filter(job.title, self._config)
        if reason:
            log.info("Item filtered", reason=reason, title=job.title)
            return ProcessResult(ProcessOutcome.FILTERED, reason)

        metadata = await self._resolver.resolve(
            job.item_id, extended=self._config.require_hd
        )
        if metadata is None:
            log.info("Item filtered", reason="metadata_unavailable")
            return ProcessResult(ProcessOutcome.FILTERED, "metadata_unavailable")

        reason = apply_metadata_filters(metadata, self._config)
        if reason:
            log.info("Item filtered", reason=reason)
            return ProcessResult(ProcessOutcome.FILTERED, reason)

        item = Item.from_job(job)
        created = await self._items.insert_ignore(item)
        if not created:
            # Another attempt stored it first; only a finished round is a duplicate
            if await self._items.is_processed(job.item_id):
                log.info("Item stored and dispatched concurrently")
                return ProcessResult(ProcessOutcome.DUPLICATE, "already_processed")
            log.info("Resuming dispatch for stored item")

        accounts = await self._accounts.accounts_watching(job.source_id)
        targets = [
            DispatchTarget(account_id=a.account_id, account_name=a.name, chat_id=chat_id)
            for a in accounts
            for chat_id in a.targets
        ]

        if not targets:
            await self._items.record_dispatch(job.item_id, NO_TARGETS)
            log.info("Item accepted, no interested accounts")
            return ProcessResult(ProcessOutcome.ACCEPTED, "no_targets")

        report = await self._dispatcher.dispatch(item, targets, title=metadata.title)
        await self._items.record_dispatch(
            job.item_id,
            DISPATCHED,
            targets_ok=len(report.succeeded),
            targets_failed=len(report.failed),
        )

        log.info(
            "Item accepted",
            accounts=len(accounts),
            targets_ok=len(report.succeeded),
            targets_failed=len(report.failed),
        )
        return ProcessResult(
            ProcessOutcome.ACCEPTED,
            accounts=len(accounts),
            targets_ok=len(report.succeeded),
            targets_failed=len(report.failed),
        )
