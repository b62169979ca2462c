"""Fan an accepted item out to every target of every interested account.

Sends run concurrently and independently. A round succeeds if at least
one send succeeded; only a round in which every send failed raises
``AllTargetsFailed`` so that the queue retries the whole job. Targets
that already received the message may see it again on that retry.
"""

import asyncio
import html
from dataclasses import dataclass, field

import structlog

from hubrelay.events.schemas import Item
from hubrelay.notifications.channels import TelegramChannel
from hubrelay.observability.metrics import get_metrics

logger = structlog.get_logger(__name__)

VIDEO_URL = "https://youtu.be/{item_id}"


class AllTargetsFailed(Exception):
    """Every send of a dispatch round failed."""

    def __init__(self, item_id: str, failed: list["DispatchTarget"]):
        self.item_id = item_id
        self.failed = failed
        super().__init__(f"All {len(failed)} targets failed for item {item_id}")


@dataclass(frozen=True)
class DispatchTarget:
    """One chat to notify, with the account it belongs to."""

    account_id: str
    account_name: str
    chat_id: str


@dataclass
class DispatchReport:
    """Per-target outcome of a dispatch round."""

    item_id: str
    succeeded: list[DispatchTarget] = field(default_factory=list)
    failed: list[DispatchTarget] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def all_failed(self) -> bool:
        return self.total > 0 and not self.succeeded


def escape_html(text: str) -> str:
    """Escape text for Telegram's HTML parse mode."""
    return html.escape(text, quote=False)


def format_message(item_id: str, title: str, account_name: str) -> str:
    """Render the notification text for one account."""
    return (
        f"[{escape_html(account_name)}] New video: <b>{escape_html(title)}</b>\n"
        f"{VIDEO_URL.format(item_id=item_id)}"
    )


class NotificationDispatcher:
    """Sends one item to a list of targets, tolerating partial failure.

    Usage:
        dispatcher = NotificationDispatcher(TelegramChannel(token))
        report = await dispatcher.dispatch(item, targets)
    """

    def __init__(self, channel: TelegramChannel) -> None:
        self._channel = channel

    async def _send_one(self, item: Item, title: str, target: DispatchTarget) -> bool:
        text = format_message(item.item_id, title, target.account_name)
        try:
            return await self._channel.send(target.chat_id, text)
        except Exception as e:
            logger.warning(
                "Dispatch send raised",
                item_id=item.item_id,
                chat_id=target.chat_id,
                error=str(e),
            )
            return False

    async def dispatch(
        self,
        item: Item,
        targets: list[DispatchTarget],
        title: str | None = None,
    ) -> DispatchReport:
        """Send ``item`` to every target.

        Args:
            item: The accepted item.
            targets: Chats to notify.
            title: Title to display (defaults to the item's feed title).

        Returns:
            DispatchReport with per-target outcomes.

        Raises:
            AllTargetsFailed: If there was at least one target and every send failed.
        """
        report = DispatchReport(item_id=item.item_id)
        if not targets:
            return report

        display_title = title or item.title
        results = await asyncio.gather(
            *(self._send_one(item, display_title, target) for target in targets)
        )

        metrics = get_metrics()
        for target, ok in zip(targets, results):
            if ok:
                report.succeeded.append(target)
                metrics.dispatch_sends.labels(result="ok").inc()
            else:
                report.failed.append(target)
                metrics.dispatch_sends.labels(result="failed").inc()

        if report.failed:
            logger.warning(
                "Dispatch had failed targets",
                item_id=item.item_id,
                succeeded=len(report.succeeded),
                failed=len(report.failed),
                failed_chats=[t.chat_id for t in report.failed],
            )

        if report.all_failed:
            raise AllTargetsFailed(item.item_id, report.failed)

        logger.info(
            "Item dispatched",
            item_id=item.item_id,
            targets=report.total,
            succeeded=len(report.succeeded),
        )
        return report
