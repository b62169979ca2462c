"""
Abstract base class for Redis Streams job queues.

Provides common functionality for Redis Streams-based job queues including:
- Connection lifecycle management
- Consumer group creation
- Per-key idempotent enqueue (SET NX guard in front of XADD)
- Job consumption with automatic stalled-job reclaim (XAUTOCLAIM)
- Lock renewal for in-flight jobs (XCLAIM JUSTID resets idle time)
- Delayed retries with exponential backoff (sorted set promoted into the stream)
- Failed-job stream with time-based retention

A consumed job stays in the consumer group's pending entries list until
it is completed or failed. While a worker handles it, the worker renews
the lock with heartbeat(). If the worker dies, the entry goes idle and
is reclaimed by another consumer once lock_duration_ms has elapsed; the
delivery counter tracks how often that happened.
"""

import asyncio
import json
import logging
import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from types import TracebackType
from typing import Generic, TypeVar

import redis.asyncio as redis

from hubrelay.observability.metrics import get_metrics
from hubrelay.queues.backoff import ExponentialBackoff
from hubrelay.queues.config import QueueConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class StreamConfig:
    """
    Redis key layout for one queue.

    Attributes:
        stream_name: Name of the main Redis stream
        consumer_group: Name of the consumer group
        failed_stream_name: Stream holding permanently failed jobs
        delayed_set_name: Sorted set of jobs waiting for a retry
        key_prefix: Prefix of the per-job enqueue-dedup keys
        max_stream_length: Approximate cap on the main stream
    """

    stream_name: str
    consumer_group: str
    failed_stream_name: str
    delayed_set_name: str
    key_prefix: str
    max_stream_length: int = 50_000


@dataclass
class QueuedJob(Generic[T]):
    """
    A job handed to a worker.

    Attributes:
        message_id: Redis stream message ID (used for ack/lock renewal)
        key: Job identity used for enqueue dedup
        payload: Parsed job payload
        attempt: Handler attempts that already failed
        stalled_count: Times this delivery was reclaimed after stalling
        fields: Raw stream fields, re-used for retries and the failed stream
    """

    message_id: str
    key: str
    payload: T
    attempt: int = 0
    stalled_count: int = 0
    fields: dict[str, str] = field(default_factory=dict, repr=False)


class BaseRedisQueue(ABC, Generic[T]):
    """
    Abstract base class for Redis Streams job queues.

    Subclasses must implement:
        - _get_stream_config(): Return StreamConfig for this queue
        - _get_consumer_prefix(): Return prefix for consumer name generation
        - _job_key(): Identity of a payload (enqueue dedup key)
        - _serialize_payload() / _parse_payload(): Payload <-> str

    Usage:
        async with MyQueue(redis_url) as queue:
            await queue.add(payload)

            async for job in queue.consume():
                try:
                    handle(job.payload)
                    await queue.complete(job)
                except Exception as e:
                    await queue.fail(job, str(e))
    """

    def __init__(
        self,
        redis_url: str,
        queue_config: QueueConfig | None = None,
    ):
        self._redis_url = redis_url
        self._queue_config = queue_config or QueueConfig()

        self._redis: redis.Redis | None = None
        self._consumer_name: str | None = None
        self._stream_config: StreamConfig | None = None

    @abstractmethod
    def _get_stream_config(self) -> StreamConfig:
        """Get the stream configuration for this queue."""
        ...

    @abstractmethod
    def _get_consumer_prefix(self) -> str:
        """Get the prefix for consumer name generation."""
        ...

    @abstractmethod
    def _job_key(self, payload: T) -> str:
        """Identity of a payload; two payloads with the same key are one job."""
        ...

    @abstractmethod
    def _serialize_payload(self, payload: T) -> str:
        """Serialize a payload into the stream's ``data`` field."""
        ...

    @abstractmethod
    def _parse_payload(self, data: str) -> T:
        """Parse the stream's ``data`` field back into a payload."""
        ...

    @property
    def queue_config(self) -> QueueConfig:
        return self._queue_config

    async def connect(self) -> None:
        """Establish Redis connection and ensure stream/group exist."""
        if self._redis is not None:
            return

        self._redis = redis.from_url(
            self._redis_url,
            encoding="utf-8",
            decode_responses=True,
        )

        self._stream_config = self._get_stream_config()

        prefix = self._get_consumer_prefix()
        self._consumer_name = f"{prefix}_{uuid.uuid4().hex[:8]}"

        try:
            await self._redis.xgroup_create(
                name=self._stream_config.stream_name,
                groupname=self._stream_config.consumer_group,
                id="0",
                mkstream=True,
            )
            logger.info(
                f"Created consumer group '{self._stream_config.consumer_group}' "
                f"for stream '{self._stream_config.stream_name}'"
            )
        except redis.ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise
            # Group already exists

        logger.info(
            f"Connected to Redis, consumer={self._consumer_name}, "
            f"stream={self._stream_config.stream_name}"
        )

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            logger.info(
                f"Redis connection closed for stream "
                f"{self._stream_config.stream_name if self._stream_config else 'unknown'}"
            )

    async def __aenter__(self) -> "BaseRedisQueue[T]":
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def redis(self) -> redis.Redis:
        """Get Redis client, raising if not connected."""
        if self._redis is None:
            raise RuntimeError("Not connected to Redis. Call connect() first.")
        return self._redis

    @property
    def stream_config(self) -> StreamConfig:
        """Get stream configuration, raising if not connected."""
        if self._stream_config is None:
            raise RuntimeError("Not connected. Call connect() first.")
        return self._stream_config

    def _dedup_key(self, key: str) -> str:
        return f"{self.stream_config.key_prefix}{key}"

    # ── Producer side ───────────────────────────────────────

    async def add(self, payload: T) -> str | None:
        """
        Enqueue a payload unless a job with the same key already exists.

        Returns:
            The stream message ID, or None for a duplicate submission.
        """
        key = self._job_key(payload)
        dedup_key = self._dedup_key(key)

        created = await self.redis.set(
            dedup_key,
            "queued",
            nx=True,
            ex=self._queue_config.key_ttl_seconds,
        )
        if not created:
            logger.debug(f"Job {key} already queued, ignoring duplicate submission")
            return None

        fields = {
            "key": key,
            "data": self._serialize_payload(payload),
            "attempt": "0",
            "queued_at": str(time.time()),
        }

        try:
            message_id = await self.redis.xadd(
                name=self.stream_config.stream_name,
                fields=fields,
                maxlen=self.stream_config.max_stream_length,
                approximate=True,
            )
        except Exception:
            # Free the key so the hub's next delivery can enqueue it
            await self.redis.delete(dedup_key)
            raise

        logger.debug(f"Enqueued job {key}, message_id={message_id}")
        return str(message_id)

    # ── Consumer side ───────────────────────────────────────

    async def consume(
        self,
        count: int = 1,
        block_ms: int = 5000,
    ) -> AsyncIterator[QueuedJob[T]]:
        """
        Consume jobs from the queue.

        Each iteration:
        1. Promotes delayed retries that are due back into the stream
        2. Reclaims stalled jobs (idle longer than the lock duration)
        3. Reads new messages with XREADGROUP

        Args:
            count: Maximum number of messages to fetch per iteration
            block_ms: How long to block waiting for new messages (milliseconds)

        Yields:
            QueuedJob objects to be passed back to complete() or fail()
        """
        if self._consumer_name is None:
            raise RuntimeError("Not connected. Call connect() first.")

        backoff = ExponentialBackoff(
            base_delay=self._queue_config.backoff_base_delay,
            max_delay=self._queue_config.backoff_max_delay,
        )

        while True:
            try:
                await self._promote_delayed()

                async for job in self._reclaim_stalled():
                    yield job

                messages = await self.redis.xreadgroup(
                    groupname=self.stream_config.consumer_group,
                    consumername=self._consumer_name,
                    streams={self.stream_config.stream_name: ">"},
                    count=count,
                    block=block_ms,
                )
                backoff.reset()

                if not messages:
                    continue

                # messages is a list of [stream_name, [(id, fields), ...]]
                for _stream_name, msg_list in messages:
                    for msg_id, fields in msg_list:
                        job = await self._build_job(msg_id, fields, stalled_count=0)
                        if job is not None:
                            yield job

            except asyncio.CancelledError:
                logger.info("Consumer cancelled, stopping gracefully")
                break
            except Exception as e:
                delay = backoff.next_delay()
                logger.error(f"Error consuming jobs: {e}, retrying in {delay:.1f}s")
                await asyncio.sleep(delay)

    async def _build_job(
        self,
        msg_id: str,
        fields: dict[str, str],
        stalled_count: int,
    ) -> QueuedJob[T] | None:
        """Parse stream fields; unparsable messages go straight to the failed stream."""
        try:
            return QueuedJob(
                message_id=msg_id,
                key=fields["key"],
                payload=self._parse_payload(fields["data"]),
                attempt=int(fields.get("attempt", "0")),
                stalled_count=stalled_count,
                fields=dict(fields),
            )
        except Exception as e:
            logger.error(f"Failed to parse message {msg_id}: {e}")
            await self._move_to_failed(msg_id, fields, f"unparsable: {e}")
            await self._discard(msg_id)
            get_metrics().dlq_max_retries.labels(
                queue=self.stream_config.stream_name, reason="unparsable"
            ).inc()
            return None

    async def _reclaim_stalled(self) -> AsyncIterator[QueuedJob[T]]:
        """
        Reclaim stalled jobs using XAUTOCLAIM.

        Claims messages idle longer than lock_duration_ms. Each reclaim
        bumps the delivery counter; a job reclaimed more than
        max_stalled_count times is failed permanently.
        """
        metrics = get_metrics()

        try:
            # XAUTOCLAIM returns: [next_start_id, [(msg_id, fields), ...], [deleted_ids]]
            result = await self.redis.xautoclaim(
                name=self.stream_config.stream_name,
                groupname=self.stream_config.consumer_group,
                consumername=self._consumer_name,
                min_idle_time=self._queue_config.lock_duration_ms,
                start_id="0-0",
                count=self._queue_config.reclaim_batch_size,
            )

            if not result or not result[1]:
                return

            claimed_messages = result[1]
            logger.info(
                f"Reclaimed {len(claimed_messages)} stalled jobs "
                f"from {self.stream_config.stream_name}"
            )

            delivery_counts = await self._get_delivery_counts(
                [msg_id for msg_id, _ in claimed_messages]
            )

            for msg_id, fields in claimed_messages:
                if not fields:
                    # Entry was deleted while still pending
                    await self.ack(msg_id)
                    continue

                # The first delivery is not a stall
                stalled_count = max(delivery_counts.get(msg_id, 2) - 1, 1)

                if stalled_count > self._queue_config.max_stalled_count:
                    logger.warning(
                        f"Job {fields.get('key')} ({msg_id}) stalled "
                        f"{stalled_count} times "
                        f"(limit {self._queue_config.max_stalled_count}), failing"
                    )
                    await self._fail_permanently(msg_id, fields, "job stalled more than allowable limit")
                    metrics.dlq_max_retries.labels(
                        queue=self.stream_config.stream_name, reason="stalled"
                    ).inc()
                    continue

                job = await self._build_job(msg_id, fields, stalled_count=stalled_count)
                if job is None:
                    continue

                metrics.pending_reclaimed.labels(
                    queue=self.stream_config.stream_name
                ).inc()
                yield job

        except redis.ResponseError as e:
            # XAUTOCLAIM requires Redis 6.2+
            if "unknown command" in str(e).lower():
                logger.warning(
                    "XAUTOCLAIM not available (requires Redis 6.2+), "
                    "skipping stalled job reclaim"
                )
            else:
                logger.error(f"Error reclaiming stalled jobs: {e}")
        except Exception as e:
            logger.error(f"Error reclaiming stalled jobs: {e}")

    async def _get_delivery_counts(self, message_ids: list[str]) -> dict[str, int]:
        """Get delivery counts for message IDs via XPENDING with range."""
        if not message_ids:
            return {}

        try:
            pending_info = await self.redis.xpending_range(
                name=self.stream_config.stream_name,
                groupname=self.stream_config.consumer_group,
                min="-",
                max="+",
                count=len(message_ids) * 2,
            )

            wanted = set(message_ids)
            return {
                info["message_id"]: info["times_delivered"]
                for info in pending_info
                if info["message_id"] in wanted
            }

        except Exception as e:
            logger.error(f"Error getting delivery counts: {e}")
            return {msg_id: 2 for msg_id in message_ids}

    async def _promote_delayed(self) -> int:
        """Move retries whose backoff has elapsed back into the main stream."""
        now_ms = int(time.time() * 1000)
        due = await self.redis.zrangebyscore(
            self.stream_config.delayed_set_name,
            min="-inf",
            max=now_ms,
            start=0,
            num=self._queue_config.promote_batch_size,
        )

        promoted = 0
        for member in due:
            # Only the consumer that removes the member re-adds it
            if not await self.redis.zrem(self.stream_config.delayed_set_name, member):
                continue
            fields = json.loads(member)
            await self.redis.xadd(
                name=self.stream_config.stream_name,
                fields=fields,
                maxlen=self.stream_config.max_stream_length,
                approximate=True,
            )
            promoted += 1

        if promoted:
            logger.debug(f"Promoted {promoted} delayed retries")
        return promoted

    # ── Job completion ──────────────────────────────────────

    async def heartbeat(self, job: QueuedJob[T]) -> None:
        """Renew the lock on an in-flight job by resetting its idle time."""
        await self.redis.xclaim(
            name=self.stream_config.stream_name,
            groupname=self.stream_config.consumer_group,
            consumername=self._consumer_name,
            min_idle_time=0,
            message_ids=[job.message_id],
            justid=True,
        )

    async def ack(self, message_id: str) -> None:
        """Acknowledge a message (removes it from the pending entries list)."""
        await self.redis.xack(
            self.stream_config.stream_name,
            self.stream_config.consumer_group,
            message_id,
        )
        logger.debug(f"Acknowledged message {message_id}")

    async def _discard(self, message_id: str) -> None:
        """Acknowledge and delete a stream entry."""
        await self.ack(message_id)
        await self.redis.xdel(self.stream_config.stream_name, message_id)

    async def complete(self, job: QueuedJob[T]) -> None:
        """
        Mark a job as done. Successful jobs are not retained: the stream
        entry and the dedup key are removed.
        """
        pipe = self.redis.pipeline()
        pipe.xack(
            self.stream_config.stream_name,
            self.stream_config.consumer_group,
            job.message_id,
        )
        pipe.xdel(self.stream_config.stream_name, job.message_id)
        pipe.delete(self._dedup_key(job.key))
        await pipe.execute()
        logger.debug(f"Completed job {job.key} ({job.message_id})")

    async def fail(self, job: QueuedJob[T], error: str) -> bool:
        """
        Record a handler failure.

        Schedules a delayed retry while attempts remain, otherwise moves
        the job to the failed stream.

        Returns:
            True if a retry was scheduled, False if the job failed permanently.
        """
        attempt = job.attempt + 1
        fields = {**job.fields, "attempt": str(attempt), "last_error": error[:500]}

        if attempt >= self._queue_config.max_attempts:
            logger.warning(
                f"Job {job.key} failed after {attempt} attempts, "
                f"moving to {self.stream_config.failed_stream_name}: {error}"
            )
            await self._fail_permanently(job.message_id, fields, error)
            get_metrics().dlq_max_retries.labels(
                queue=self.stream_config.stream_name, reason="attempts_exhausted"
            ).inc()
            return False

        delay_ms = self._queue_config.retry_delay_ms(attempt)
        ready_at = int(time.time() * 1000) + delay_ms

        pipe = self.redis.pipeline()
        pipe.zadd(
            self.stream_config.delayed_set_name,
            {json.dumps(fields, sort_keys=True): ready_at},
        )
        pipe.xack(
            self.stream_config.stream_name,
            self.stream_config.consumer_group,
            job.message_id,
        )
        pipe.xdel(self.stream_config.stream_name, job.message_id)
        await pipe.execute()

        logger.info(
            f"Job {job.key} attempt {attempt} failed, retrying in {delay_ms}ms: {error}"
        )
        return True

    async def _fail_permanently(
        self,
        message_id: str,
        fields: dict[str, str],
        error: str,
    ) -> None:
        """Park a job in the failed stream; its dedup key is kept for the retention window."""
        await self._move_to_failed(message_id, fields, error)
        await self._discard(message_id)
        key = fields.get("key")
        if key:
            await self.redis.expire(
                self._dedup_key(key), self._queue_config.key_ttl_seconds
            )

    async def _move_to_failed(
        self,
        original_id: str,
        fields: dict[str, str],
        error: str | None,
    ) -> None:
        """Append a job to the failed stream."""
        failed_fields = {
            **fields,
            "original_id": original_id,
            "error": error or "unknown",
            "failed_at": str(time.time()),
        }

        await self.redis.xadd(self.stream_config.failed_stream_name, failed_fields)
        logger.warning(f"Moved message {original_id} to failed stream: {error}")

    # ── Retention & inspection ──────────────────────────────

    async def clean_failed(self, older_than_days: int | None = None) -> int:
        """
        Trim failed jobs older than the retention window.

        Stream IDs start with a millisecond timestamp, so MINID trimming
        drops entries by age.

        Returns:
            Number of failed jobs removed
        """
        days = older_than_days or self._queue_config.failed_retention_days
        cutoff_ms = int((time.time() - days * 86_400) * 1000)
        removed = await self.redis.xtrim(
            self.stream_config.failed_stream_name,
            minid=f"{cutoff_ms}-0",
            approximate=False,
        )
        if removed:
            logger.info(f"Trimmed {removed} failed jobs older than {days} days")
        return int(removed or 0)

    async def count_failed_older_than(self, older_than_days: int | None = None) -> int:
        """Number of failed jobs clean_failed() would remove."""
        days = older_than_days or self._queue_config.failed_retention_days
        cutoff_ms = int((time.time() - days * 86_400) * 1000)
        entries = await self.redis.xrange(
            self.stream_config.failed_stream_name, min="-", max=f"({cutoff_ms}-0"
        )
        return len(entries)

    async def list_failed(self, count: int = 50) -> list[dict[str, str]]:
        """Most recent failed jobs, newest first."""
        entries = await self.redis.xrevrange(
            self.stream_config.failed_stream_name, count=count
        )
        return [{"id": entry_id, **fields} for entry_id, fields in entries]

    async def get_pending_count(self) -> int:
        """Get count of in-flight (unacknowledged) jobs."""
        try:
            info = await self.redis.xpending(
                self.stream_config.stream_name,
                self.stream_config.consumer_group,
            )
            return info["pending"] if info else 0
        except Exception:
            return 0

    async def get_stream_length(self) -> int:
        """Get total number of messages in the main stream."""
        return await self.redis.xlen(self.stream_config.stream_name)

    async def get_delayed_count(self) -> int:
        """Get number of jobs waiting for a retry."""
        return await self.redis.zcard(self.stream_config.delayed_set_name)

    async def get_failed_count(self) -> int:
        """Get number of retained failed jobs."""
        return await self.redis.xlen(self.stream_config.failed_stream_name)

    async def health_check(self) -> bool:
        """Check if Redis connection is healthy."""
        try:
            await self.redis.ping()
            return True
        except Exception:
            return False
