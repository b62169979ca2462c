"""Database repository for accepted items and their dispatch log.

``items`` rows are immutable once written; the insert is
insert-on-conflict-ignore on ``item_id`` and is the point at which
concurrent deliveries of the same video are linearized.
``item_dispatches`` records that an item's notification round finished.
"""

import logging
from datetime import datetime, timedelta, timezone

from hubrelay.events.schemas import Item
from hubrelay.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS items (
    item_id      TEXT PRIMARY KEY,
    source_id    TEXT NOT NULL,
    title        TEXT NOT NULL DEFAULT '',
    published_at TIMESTAMPTZ NOT NULL,
    received_at  TIMESTAMPTZ NOT NULL,
    created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_items_source_id
    ON items(source_id);
CREATE INDEX IF NOT EXISTS idx_items_created_at
    ON items(created_at);

CREATE TABLE IF NOT EXISTS item_dispatches (
    item_id        TEXT PRIMARY KEY REFERENCES items(item_id) ON DELETE CASCADE,
    status         TEXT NOT NULL,
    targets_ok     INTEGER NOT NULL DEFAULT 0,
    targets_failed INTEGER NOT NULL DEFAULT 0,
    completed_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

_INSERT_ITEM_SQL = """
INSERT INTO items (item_id, source_id, title, published_at, received_at)
VALUES ($1, $2, $3, $4, $5)
ON CONFLICT (item_id) DO NOTHING
RETURNING item_id
"""

_RECORD_DISPATCH_SQL = """
INSERT INTO item_dispatches (item_id, status, targets_ok, targets_failed)
VALUES ($1, $2, $3, $4)
ON CONFLICT (item_id) DO NOTHING
"""

DISPATCHED = "dispatched"
NO_TARGETS = "no_targets"


def _affected_rows(status: str) -> int:
    """Parse the row count out of an asyncpg command tag ('DELETE 3')."""
    try:
        return int(status.split()[-1])
    except (AttributeError, IndexError, ValueError):
        return 0


class ItemRepository:
    """Persistence for accepted items."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_tables(self) -> None:
        """Create the items and item_dispatches tables (idempotent)."""
        await self._db.execute(_CREATE_TABLES_SQL)
        logger.info("Items tables ensured")

    async def is_processed(self, item_id: str) -> bool:
        """True if the item was stored and its dispatch round completed."""
        value = await self._db.fetchval(
            "SELECT 1 FROM item_dispatches WHERE item_id = $1", item_id
        )
        return value is not None

    async def insert_ignore(self, item: Item) -> bool:
        """Insert an item unless it already exists.

        Returns:
            True if this call created the row, False if it existed.
        """
        created = await self._db.fetchval(
            _INSERT_ITEM_SQL,
            item.item_id,
            item.source_id,
            item.title,
            item.published_at,
            item.received_at,
        )
        return created is not None

    async def record_dispatch(
        self,
        item_id: str,
        status: str,
        targets_ok: int = 0,
        targets_failed: int = 0,
    ) -> None:
        """Mark an item's notification round as finished."""
        await self._db.execute(
            _RECORD_DISPATCH_SQL, item_id, status, targets_ok, targets_failed
        )

    async def delete_older_than(self, days: int, now: datetime | None = None) -> int:
        """Delete items (and their dispatch rows) created more than ``days`` ago."""
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days)
        status = await self._db.execute(
            "DELETE FROM items WHERE created_at < $1", cutoff
        )
        deleted = _affected_rows(status)
        if deleted:
            logger.info("Deleted %d items older than %d days", deleted, days)
        return deleted

    async def count_older_than(self, days: int, now: datetime | None = None) -> int:
        """Number of items a retention sweep would delete."""
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days)
        return await self._db.fetchval(
            "SELECT COUNT(*) FROM items WHERE created_at < $1", cutoff
        )
