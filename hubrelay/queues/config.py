"""
Queue configuration for Redis Streams job handling.

Provides settings for lock/stall detection, retry limits and failed-job
retention so the queue gives at-least-once delivery with a bounded
amount of redelivery.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class QueueConfig(BaseSettings):
    """
    Configuration for queue lock, retry and retention behavior.

    Settings can be overridden via environment variables prefixed with QUEUE_.

    Attributes:
        lock_duration_ms: Time after which an unacknowledged job whose
            worker stopped renewing its lock is considered stalled and
            eligible for reclaim by another consumer. Workers renew the
            lock every half of this window.

        max_stalled_count: Number of times a job may be reclaimed after
            stalling before it is failed permanently.

        max_attempts: Total handler attempts (first run included) before
            a failing job is moved to the failed stream.

        backoff_delay_ms: Base retry delay. Attempt n waits
            backoff_delay_ms * 2^(n-1).

        failed_retention_days: Age after which failed jobs are trimmed by
            the retention sweep. Enqueue-dedup keys of failed jobs live
            this long as well.

        reclaim_batch_size: Number of pending messages to attempt to
            reclaim in a single XAUTOCLAIM call.

        promote_batch_size: Number of due delayed retries moved back into
            the stream per consume iteration.
    """

    model_config = SettingsConfigDict(
        env_prefix="QUEUE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    lock_duration_ms: int = 60_000
    max_stalled_count: int = 2
    max_attempts: int = 3
    backoff_delay_ms: int = 2_000
    failed_retention_days: int = 7
    reclaim_batch_size: int = 10
    promote_batch_size: int = 50

    # Backoff settings for consume() error recovery
    backoff_base_delay: float = 1.0
    backoff_max_delay: float = 60.0

    @property
    def lock_renew_interval(self) -> float:
        """Seconds between lock renewals for an in-flight job."""
        return self.lock_duration_ms / 2000

    @property
    def key_ttl_seconds(self) -> int:
        """Lifetime of enqueue-dedup keys that are not explicitly removed."""
        return self.failed_retention_days * 86_400

    def retry_delay_ms(self, attempt: int) -> int:
        """Exponential delay before retry number ``attempt`` (1-indexed)."""
        return self.backoff_delay_ms * (2 ** max(attempt - 1, 0))
