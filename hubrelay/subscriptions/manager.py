"""
Hub subscription lifecycle.

``subscribe`` performs the WebSub subscribe handshake for one source,
retrying over a fixed delay table, and persists the outcome. The
renewal sweep and the admin "renew" endpoints both go through it.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone

import httpx
import structlog

from hubrelay.observability.metrics import get_metrics
from hubrelay.queues.backoff import DelaySchedule
from hubrelay.subscriptions.config import SubscriptionConfig
from hubrelay.subscriptions.repository import SubscriptionRepository
from hubrelay.subscriptions.schemas import SubscribeResult

logger = structlog.get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class SubscriptionManager:
    """
    Subscribe/renew sources with the hub and record their state.

    Usage:
        manager = SubscriptionManager(repo, hub_url, callback_url)
        result = await manager.subscribe("UCxxxx")
        results = await manager.renew_due()
    """

    def __init__(
        self,
        repository: SubscriptionRepository,
        hub_url: str,
        callback_url: str,
        config: SubscriptionConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._repo = repository
        self._hub_url = hub_url
        self._callback_url = callback_url
        self._config = config or SubscriptionConfig()
        self._transport = transport
        self._sleep = sleep
        self._schedule = DelaySchedule(self._config.retry_delays, self._config.max_retries)

    @property
    def config(self) -> SubscriptionConfig:
        return self._config

    def _form(self, topic: str) -> dict[str, str]:
        return {
            "hub.mode": "subscribe",
            "hub.topic": topic,
            "hub.callback": self._callback_url,
            "hub.verify": "async",
        }

    async def _handshake(self, topic: str) -> tuple[int | None, str | None]:
        """One subscribe request. Returns (status_code, error); error is None on success."""
        try:
            async with httpx.AsyncClient(
                timeout=self._config.request_timeout, transport=self._transport
            ) as client:
                resp = await client.post(self._hub_url, data=self._form(topic))
        except httpx.HTTPError as e:
            return None, f"{type(e).__name__}: {e}" if str(e) else type(e).__name__

        if resp.is_success:
            return resp.status_code, None
        return resp.status_code, f"HTTP {resp.status_code}: {resp.text[:500]}"

    async def subscribe(self, source_id: str) -> SubscribeResult:
        """
        Subscribe (or renew) one source.

        On success the row becomes active with a fresh lease. After the
        last retry fails the row becomes failed with the error recorded;
        the next sweep tries again.
        """
        topic = self._config.topic_for(source_id)
        log = logger.bind(source_id=source_id)
        metrics = get_metrics()

        await self._repo.ensure_pending(source_id, topic)

        status_code: int | None = None
        error: str | None = None
        attempts = 0

        for attempt, delay in self._schedule:
            if delay:
                log.warning(
                    "Subscription attempt failed, retrying",
                    attempt=attempt,
                    delay=delay,
                    status_code=status_code,
                    error=error,
                )
                metrics.subscription_attempts.labels(result="retry").inc()
                await self._sleep(delay)

            attempts = attempt + 1
            status_code, error = await self._handshake(topic)
            if error is None:
                break

        if error is None:
            now = datetime.now(timezone.utc)
            expires_at = now + timedelta(days=self._config.lease_days)
            await self._repo.upsert_active(source_id, topic, expires_at, now)
            metrics.subscription_attempts.labels(result="active").inc()
            log.info(
                "Hub subscription active",
                status_code=status_code,
                attempts=attempts,
                expires_at=expires_at.isoformat(),
            )
            return SubscribeResult(
                source_id=source_id,
                ok=True,
                attempts=attempts,
                status_code=status_code,
                expires_at=expires_at,
            )

        await self._repo.upsert_failed(source_id, topic, error)
        metrics.subscription_attempts.labels(result="failed").inc()
        log.error(
            "Hub subscription failed after retries",
            status_code=status_code,
            attempts=attempts,
            error=error,
        )
        return SubscribeResult(
            source_id=source_id,
            ok=False,
            attempts=attempts,
            status_code=status_code,
            error=error,
        )

    async def due_for_renewal(self, now: datetime | None = None) -> list[str]:
        """Source ids whose lease is unknown or ends within the lookahead window."""
        now = now or datetime.now(timezone.utc)
        lookahead = timedelta(hours=self._config.lookahead_hours)
        subscriptions = await self._repo.list_all()
        return [s.source_id for s in subscriptions if s.needs_renewal(now, lookahead)]

    async def renew_due(self, now: datetime | None = None) -> list[SubscribeResult]:
        """
        Run one renewal sweep.

        Calls are serial with a pause in between. A source whose renewal
        raises is logged and skipped; the sweep carries on.
        """
        due = await self.due_for_renewal(now)
        logger.info("Renewal sweep started", due=len(due))

        results: list[SubscribeResult] = []
        for index, source_id in enumerate(due):
            if index:
                await self._sleep(self._config.inter_call_delay_seconds)
            try:
                results.append(await self.subscribe(source_id))
            except Exception as e:
                logger.error("Renewal raised", source_id=source_id, error=str(e))
                results.append(
                    SubscribeResult(source_id=source_id, ok=False, attempts=0, error=str(e))
                )

        renewed = sum(1 for r in results if r.ok)
        logger.info(
            "Renewal sweep finished",
            due=len(due),
            renewed=renewed,
            failed=len(results) - renewed,
        )
        return results
