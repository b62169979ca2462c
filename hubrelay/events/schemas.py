"""Schema definitions for relay jobs and persisted items.

A ``Job`` is the queue's unit of work, one per announced video. Its
fields are validated when the job is built, so nothing malformed ever
reaches the stream. An ``Item`` maps 1:1 to the ``items`` table and is
written only once every filter has passed.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Job(BaseModel):
    """One announced item, as carried through the queue.

    The job identity is ``item_id``: enqueueing the same id twice is a
    no-op while the first job is queued, in flight, or retained as failed.
    """

    model_config = ConfigDict(frozen=True)

    item_id: str = Field(..., min_length=1, max_length=64)
    source_id: str = Field(..., min_length=1, max_length=64)
    title: str = ""
    published_at: datetime
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("item_id", "source_id")
    @classmethod
    def _strip_identity(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("identifier must not be blank")
        return value

    @field_validator("published_at", "received_at")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


@dataclass
class Item:
    """A persisted item record from the items table.

    Attributes:
        item_id: External video id (primary key).
        source_id: Channel that published the video.
        title: Title as announced by the hub.
        published_at: Publication time (delivery time when the feed had none).
        received_at: When the hub delivery arrived.
        created_at: When the item was accepted and stored.
    """

    item_id: str
    source_id: str
    title: str
    published_at: datetime
    received_at: datetime
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @classmethod
    def from_job(cls, job: Job) -> "Item":
        return cls(
            item_id=job.item_id,
            source_id=job.source_id,
            title=job.title,
            published_at=job.published_at,
            received_at=job.received_at,
        )


class ProcessOutcome(str, enum.Enum):
    """Terminal state of one processing attempt."""

    ACCEPTED = "accepted"
    DUPLICATE = "skip:duplicate"
    FILTERED = "skip:filtered"


@dataclass
class ProcessResult:
    """Outcome of a processing attempt plus the reason for a skip.

    Errors are not results: they propagate to the queue so its retry
    policy applies.
    """

    outcome: ProcessOutcome
    reason: str = ""
    accounts: int = 0
    targets_ok: int = 0
    targets_failed: int = 0
