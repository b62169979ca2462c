"""Timer that drives the renewal sweep: once shortly after startup, then periodically."""

import asyncio

import structlog

from hubrelay.subscriptions.manager import SubscriptionManager

logger = structlog.get_logger(__name__)


class RenewalScheduler:
    """
    Runs ``SubscriptionManager.renew_due`` on an interval.

    Usage:
        scheduler = RenewalScheduler(manager)
        task = asyncio.create_task(scheduler.run())
        ...
        scheduler.stop()
    """

    def __init__(self, manager: SubscriptionManager) -> None:
        self._manager = manager
        self._config = manager.config
        self._stopped = asyncio.Event()

    async def _wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; True if stop() was called meanwhile."""
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False

    async def run_once(self) -> None:
        try:
            await self._manager.renew_due()
        except Exception as e:
            logger.error("Renewal sweep failed", error=str(e))

    async def run(self) -> None:
        logger.info(
            "Renewal scheduler started",
            startup_delay=self._config.startup_delay_seconds,
            interval_hours=self._config.sweep_interval_hours,
        )
        if await self._wait(self._config.startup_delay_seconds):
            return
        while True:
            await self.run_once()
            if await self._wait(self._config.sweep_interval_hours * 3600):
                return

    def stop(self) -> None:
        self._stopped.set()
