"""
Redis Streams job queue with idempotent enqueue, lock renewal and retries.

Classes:
    BaseRedisQueue: Abstract base class for Redis Streams queues
    StreamConfig: Redis key layout for a queue
    QueuedJob: A consumed job handed to a worker
    QueueConfig: Lock, stall, retry and retention settings
    ExponentialBackoff / DelaySchedule: Retry delay strategies

Example:
    from hubrelay.queues import BaseRedisQueue, StreamConfig

    class MyQueue(BaseRedisQueue[MyPayload]):
        def _get_stream_config(self) -> StreamConfig:
            return StreamConfig(
                stream_name="my_stream",
                consumer_group="my_workers",
                failed_stream_name="my_stream:failed",
                delayed_set_name="my_stream:delayed",
                key_prefix="my_stream:key:",
            )
        ...
"""

from hubrelay.queues.backoff import DelaySchedule, ExponentialBackoff
from hubrelay.queues.base import BaseRedisQueue, QueuedJob, StreamConfig
from hubrelay.queues.config import QueueConfig

__all__ = [
    "BaseRedisQueue",
    "DelaySchedule",
    "ExponentialBackoff",
    "QueueConfig",
    "QueuedJob",
    "StreamConfig",
]
