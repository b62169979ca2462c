"""
Webhook receiver for hub handshakes and deliveries.

A delivery is acknowledged with 200 once every valid entry has been
offered to the queue. Malformed feeds and enqueue failures, including an
unreachable queue, are logged and acknowledged too, so the hub does not
retry them. Only a missing or non-text body is rejected with 400.
"""

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field

import structlog
from pydantic import ValidationError

from hubrelay.events.queue import EventQueue
from hubrelay.events.schemas import Job
from hubrelay.observability.metrics import get_metrics
from hubrelay.webhook.parser import FeedEntry, FeedParseError, parse_feed

logger = structlog.get_logger(__name__)

QueueProvider = Callable[[], Awaitable[EventQueue]]

CHALLENGE_PARAMS = ("hub.challenge", "challenge")

FEED_MEDIA_TYPES = frozenset({
    "application/atom+xml",
    "application/rss+xml",
    "application/xml",
})


@dataclass
class WebhookResponse:
    """Status and plain-text body to send back to the hub."""

    status_code: int
    body: str = ""
    enqueued: list[str] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)
    skipped: int = 0
    errors: int = 0


def is_feed_content_type(content_type: str | None) -> bool:
    """True for feed media types and any text/* type; a missing header is allowed."""
    if not content_type:
        return True
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type in FEED_MEDIA_TYPES or media_type.startswith("text/")


def handle_challenge(params: Mapping[str, str]) -> WebhookResponse:
    """Echo the verification token verbatim, or 200 with an empty body."""
    for name in CHALLENGE_PARAMS:
        token = params.get(name)
        if token is not None:
            logger.info(
                "Hub verification",
                mode=params.get("hub.mode"),
                topic=params.get("hub.topic"),
                lease_seconds=params.get("hub.lease_seconds"),
            )
            return WebhookResponse(200, token)
    return WebhookResponse(200, "")


class WebhookReceiver:
    """
    Turns hub deliveries into queued jobs.

    The queue is resolved per delivery through ``queue_provider`` so a
    connection failure is handled like any other enqueue error.

    Usage:
        receiver = WebhookReceiver(resources.queue)
        response = await receiver.handle_delivery(body, content_type)
    """

    def __init__(self, queue_provider: QueueProvider) -> None:
        self._queue_provider = queue_provider

    async def handle_delivery(
        self,
        body: bytes | str | None,
        content_type: str | None,
    ) -> WebhookResponse:
        metrics = get_metrics()

        if not body:
            metrics.webhook_deliveries.labels(result="rejected").inc()
            return WebhookResponse(400, "Missing body")

        if not is_feed_content_type(content_type):
            metrics.webhook_deliveries.labels(result="rejected").inc()
            logger.warning("Rejected delivery", content_type=content_type)
            return WebhookResponse(400, "Unsupported content type")

        if isinstance(body, bytes):
            try:
                text = body.decode("utf-8")
            except UnicodeDecodeError:
                metrics.webhook_deliveries.labels(result="rejected").inc()
                return WebhookResponse(400, "Body is not text")
        else:
            text = body

        try:
            entries = parse_feed(text)
        except FeedParseError as e:
            metrics.webhook_deliveries.labels(result="unparsable").inc()
            logger.warning("Dropping unparsable delivery", error=str(e), size=len(text))
            return WebhookResponse(200, "")

        response = WebhookResponse(200, "")
        jobs = self._build_jobs(entries, response)
        if jobs:
            await self._enqueue_all(jobs, response)

        metrics.webhook_deliveries.labels(result="accepted").inc()
        return response

    def _build_jobs(self, entries: list[FeedEntry], response: WebhookResponse) -> list[Job]:
        metrics = get_metrics()
        jobs = []
        for entry in entries:
            if not entry.is_valid:
                response.skipped += 1
                metrics.jobs_enqueued.labels(result="skipped").inc()
                logger.info("Skipping entry without identity", title=entry.title)
                continue

            try:
                jobs.append(Job(
                    item_id=entry.item_id,
                    source_id=entry.source_id,
                    title=entry.title,
                    published_at=entry.published_at,
                ))
            except ValidationError as e:
                response.skipped += 1
                metrics.jobs_enqueued.labels(result="skipped").inc()
                logger.info("Skipping invalid entry", item_id=entry.item_id, error=str(e))
        return jobs

    async def _enqueue_all(self, jobs: list[Job], response: WebhookResponse) -> None:
        metrics = get_metrics()
        try:
            queue = await self._queue_provider()
        except Exception as e:
            response.errors += len(jobs)
            metrics.jobs_enqueued.labels(result="error").inc(len(jobs))
            logger.error(
                "Queue unavailable, dropping delivery",
                item_ids=[job.item_id for job in jobs],
                error=str(e),
            )
            return

        for job in jobs:
            try:
                message_id = await queue.enqueue(job)
            except Exception as e:
                response.errors += 1
                metrics.jobs_enqueued.labels(result="error").inc()
                logger.error("Enqueue failed", item_id=job.item_id, error=str(e))
                continue

            if message_id:
                response.enqueued.append(job.item_id)
                logger.info("Job enqueued", item_id=job.item_id, source_id=job.source_id)
            else:
                response.duplicates.append(job.item_id)
                logger.debug("Duplicate delivery ignored", item_id=job.item_id)
