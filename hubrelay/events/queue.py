"""
Redis Streams job queue for announced items.

Streams:
    - 'relay_jobs': Main stream of pending jobs
    - 'relay_jobs:failed': Jobs that exhausted their attempts or stalled too often

Keys:
    - 'relay_jobs:delayed': Sorted set of jobs waiting for a retry
    - 'relay_jobs:key:<item_id>': Enqueue-dedup key per job

Consumer Groups:
    - 'relay_workers': Workers that run the filter pipeline
"""

import logging

from hubrelay.config.settings import get_settings
from hubrelay.events.schemas import Job
from hubrelay.observability.metrics import get_metrics
from hubrelay.queues.base import BaseRedisQueue, StreamConfig
from hubrelay.queues.config import QueueConfig

logger = logging.getLogger(__name__)


class EventQueue(BaseRedisQueue[Job]):
    """
    Job queue keyed by item id.

    Usage:
        async with EventQueue() as queue:
            await queue.enqueue(job)

            async for queued in queue.consume():
                await pipeline.process(queued.payload)
                await queue.complete(queued)
    """

    def __init__(
        self,
        redis_url: str | None = None,
        queue_config: QueueConfig | None = None,
        stream_name: str | None = None,
        consumer_group: str | None = None,
    ):
        settings = get_settings()
        super().__init__(
            redis_url=redis_url or str(settings.redis_url),
            queue_config=queue_config,
        )
        self._stream_name = stream_name or settings.redis_stream_name
        self._group_name = consumer_group or settings.redis_consumer_group
        self._max_stream_length = settings.redis_max_stream_length

    def _get_stream_config(self) -> StreamConfig:
        return StreamConfig(
            stream_name=self._stream_name,
            consumer_group=self._group_name,
            failed_stream_name=f"{self._stream_name}:failed",
            delayed_set_name=f"{self._stream_name}:delayed",
            key_prefix=f"{self._stream_name}:key:",
            max_stream_length=self._max_stream_length,
        )

    def _get_consumer_prefix(self) -> str:
        return "relay_worker"

    def _job_key(self, payload: Job) -> str:
        return payload.item_id

    def _serialize_payload(self, payload: Job) -> str:
        return payload.model_dump_json()

    def _parse_payload(self, data: str) -> Job:
        return Job.model_validate_json(data)

    async def enqueue(self, job: Job) -> str | None:
        """
        Enqueue a job unless one with the same item id exists.

        Returns:
            Stream message ID, or None for a duplicate submission.
        """
        message_id = await self.add(job)
        get_metrics().jobs_enqueued.labels(
            result="enqueued" if message_id else "duplicate"
        ).inc()
        return message_id
