"""Tests for the filter/dedup pipeline."""

from unittest.mock import AsyncMock

import pytest

from hubrelay.accounts.schemas import AccountTargets
from hubrelay.events.config import FilterConfig
from hubrelay.events.pipeline import EventPipeline, guard_key
from hubrelay.events.repository import DISPATCHED, NO_TARGETS
from hubrelay.events.schemas import ProcessOutcome
from hubrelay.notifications.dispatcher import AllTargetsFailed, DispatchReport, DispatchTarget
from hubrelay.storage.cache import RedisCache

GUARD = "relay:" + guard_key("dQw4w9WgXcQ")


@pytest.fixture
def items():
    repo = AsyncMock()
    repo.is_processed.return_value = False
    repo.insert_ignore.return_value = True
    return repo


@pytest.fixture
def resolver(public_metadata):
    r = AsyncMock()
    r.resolve.return_value = public_metadata
    return r


@pytest.fixture
def accounts():
    directory = AsyncMock()
    directory.accounts_watching.return_value = [
        AccountTargets(account_id="1", name="Music", targets=["100", "200"]),
    ]
    return directory


@pytest.fixture
def dispatcher():
    d = AsyncMock()

    async def dispatch(item, targets, title=None):
        return DispatchReport(item_id=item.item_id, succeeded=list(targets))

    d.dispatch.side_effect = dispatch
    return d


@pytest.fixture
def cache(memory_redis):
    return RedisCache(memory_redis)


@pytest.fixture
def pipeline(items, cache, resolver, accounts, dispatcher):
    return EventPipeline(items, cache, resolver, accounts, dispatcher, FilterConfig())


class TestAccepted:

    @pytest.mark.asyncio
    async def test_dispatches_to_every_target(self, pipeline, sample_job, items, dispatcher):
        result = await pipeline.process(sample_job)

        assert result.outcome is ProcessOutcome.ACCEPTED
        assert result.targets_ok == 2
        item, targets = dispatcher.dispatch.await_args[0]
        assert item.item_id == "dQw4w9WgXcQ"
        assert targets == [
            DispatchTarget("1", "Music", "100"),
            DispatchTarget("1", "Music", "200"),
        ]
        assert dispatcher.dispatch.await_args.kwargs["title"] == "Full album walkthrough (official)"
        items.insert_ignore.assert_awaited_once()
        items.record_dispatch.assert_awaited_once_with(
            "dQw4w9WgXcQ", DISPATCHED, targets_ok=2, targets_failed=0
        )

    @pytest.mark.asyncio
    async def test_no_interested_accounts(self, pipeline, sample_job, items, accounts, dispatcher):
        accounts.accounts_watching.return_value = []

        result = await pipeline.process(sample_job)

        assert result.outcome is ProcessOutcome.ACCEPTED
        assert result.reason == "no_targets"
        dispatcher.dispatch.assert_not_called()
        items.record_dispatch.assert_awaited_once_with("dQw4w9WgXcQ", NO_TARGETS)

    @pytest.mark.asyncio
    async def test_guard_released_after_success(self, pipeline, sample_job, memory_redis):
        await pipeline.process(sample_job)
        assert GUARD not in memory_redis.store

    @pytest.mark.asyncio
    async def test_extended_metadata_only_when_quality_required(
        self, items, cache, resolver, accounts, dispatcher, sample_job
    ):
        strict = EventPipeline(
            items, cache, resolver, accounts, dispatcher, FilterConfig(require_hd=True)
        )
        await strict.process(sample_job)
        resolver.resolve.assert_awaited_with("dQw4w9WgXcQ", extended=True)


class TestSkips:

    @pytest.mark.asyncio
    async def test_held_guard_is_duplicate(self, pipeline, sample_job, memory_redis, items):
        await memory_redis.set(GUARD, "1", ex=300)

        result = await pipeline.process(sample_job)

        assert result.outcome is ProcessOutcome.DUPLICATE
        items.is_processed.assert_not_called()
        # Someone else's guard is left alone
        assert GUARD in memory_redis.store

    @pytest.mark.asyncio
    async def test_reclaimed_job_takes_over_held_guard(
        self, pipeline, sample_job, memory_redis, items, dispatcher
    ):
        await memory_redis.set(GUARD, "1", ex=300)

        result = await pipeline.process(sample_job, reclaimed=True)

        assert result.outcome is ProcessOutcome.ACCEPTED
        items.insert_ignore.assert_awaited_once()
        dispatcher.dispatch.assert_awaited_once()
        assert GUARD not in memory_redis.store

    @pytest.mark.asyncio
    async def test_already_processed_is_duplicate(self, pipeline, sample_job, items, resolver):
        items.is_processed.return_value = True

        result = await pipeline.process(sample_job)

        assert result.outcome is ProcessOutcome.DUPLICATE
        resolver.resolve.assert_not_called()

    @pytest.mark.asyncio
    async def test_keyword_filter_runs_before_metadata(self, pipeline, sample_job, resolver):
        job = sample_job.model_copy(update={"title": "Weekly Shorts Live"})

        result = await pipeline.process(job)

        assert result.outcome is ProcessOutcome.FILTERED
        assert result.reason.startswith("keyword")
        resolver.resolve.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_metadata_is_filtered(self, pipeline, sample_job, resolver, items):
        resolver.resolve.return_value = None

        result = await pipeline.process(sample_job)

        assert result.outcome is ProcessOutcome.FILTERED
        assert result.reason == "metadata_unavailable"
        items.insert_ignore.assert_not_called()

    @pytest.mark.asyncio
    async def test_short_video_is_filtered(self, pipeline, sample_job, resolver, public_metadata, items):
        public_metadata.duration = "PT3M30S"  # exactly 210s

        result = await pipeline.process(sample_job)

        assert result.outcome is ProcessOutcome.FILTERED
        assert result.reason.startswith("duration")
        items.insert_ignore.assert_not_called()

    @pytest.mark.asyncio
    async def test_concurrent_winner_already_dispatched(self, pipeline, sample_job, items, dispatcher):
        items.insert_ignore.return_value = False
        items.is_processed.side_effect = [False, True]

        result = await pipeline.process(sample_job)

        assert result.outcome is ProcessOutcome.DUPLICATE
        dispatcher.dispatch.assert_not_called()


class TestFailures:

    @pytest.mark.asyncio
    async def test_guard_released_when_dispatch_fails(
        self, pipeline, sample_job, dispatcher, memory_redis, items
    ):
        dispatcher.dispatch.side_effect = AllTargetsFailed("dQw4w9WgXcQ", [])

        with pytest.raises(AllTargetsFailed):
            await pipeline.process(sample_job)

        assert GUARD not in memory_redis.store
        items.record_dispatch.assert_not_called()

    @pytest.mark.asyncio
    async def test_guard_released_when_store_raises(self, pipeline, sample_job, items, memory_redis):
        items.is_processed.side_effect = ConnectionError("db down")

        with pytest.raises(ConnectionError):
            await pipeline.process(sample_job)

        assert GUARD not in memory_redis.store

    @pytest.mark.asyncio
    async def test_retry_after_total_failure_resumes_dispatch(
        self, pipeline, sample_job, items, dispatcher
    ):
        # First attempt stored the item, then every send failed
        items.insert_ignore.return_value = False
        items.is_processed.return_value = False

        result = await pipeline.process(sample_job)

        assert result.outcome is ProcessOutcome.ACCEPTED
        dispatcher.dispatch.assert_awaited_once()
        items.record_dispatch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cache_outage_falls_through_to_store(
        self, items, resolver, accounts, dispatcher, sample_job
    ):
        broken = AsyncMock()
        broken.set.side_effect = ConnectionError("redis down")
        broken.delete.side_effect = ConnectionError("redis down")
        pipeline = EventPipeline(items, RedisCache(broken), resolver, accounts, dispatcher)

        result = await pipeline.process(sample_job)

        assert result.outcome is ProcessOutcome.ACCEPTED
        items.is_processed.assert_awaited()
