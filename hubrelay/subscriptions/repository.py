"""Database repository for the subscriptions table.

Rows are only ever upserted, never deleted, while the source is tracked.
"""

import logging
from datetime import datetime

from hubrelay.storage.database import Database
from hubrelay.subscriptions.schemas import Subscription, SubscriptionStatus

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS subscriptions (
    source_id        TEXT PRIMARY KEY,
    topic            TEXT NOT NULL,
    status           TEXT NOT NULL DEFAULT 'pending',
    expires_at       TIMESTAMPTZ,
    last_renewed_at  TIMESTAMPTZ,
    renewal_attempts INTEGER NOT NULL DEFAULT 0,
    error_message    TEXT,
    created_at       TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at       TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_subscriptions_expires_at
    ON subscriptions(expires_at);
"""

_ENSURE_PENDING_SQL = """
INSERT INTO subscriptions (source_id, topic, status)
VALUES ($1, $2, 'pending')
ON CONFLICT (source_id) DO NOTHING
"""

_UPSERT_ACTIVE_SQL = """
INSERT INTO subscriptions (
    source_id, topic, status, expires_at, last_renewed_at, renewal_attempts, error_message
) VALUES ($1, $2, 'active', $3, $4, 0, NULL)
ON CONFLICT (source_id) DO UPDATE SET
    topic = EXCLUDED.topic,
    status = 'active',
    expires_at = EXCLUDED.expires_at,
    last_renewed_at = EXCLUDED.last_renewed_at,
    renewal_attempts = 0,
    error_message = NULL,
    updated_at = NOW()
"""

_UPSERT_FAILED_SQL = """
INSERT INTO subscriptions (source_id, topic, status, renewal_attempts, error_message)
VALUES ($1, $2, 'failed', 1, $3)
ON CONFLICT (source_id) DO UPDATE SET
    topic = EXCLUDED.topic,
    status = 'failed',
    renewal_attempts = subscriptions.renewal_attempts + 1,
    error_message = EXCLUDED.error_message,
    updated_at = NOW()
"""


def _record_to_subscription(record) -> Subscription:
    """Convert an asyncpg Record to a Subscription dataclass."""
    return Subscription(
        source_id=record["source_id"],
        topic=record["topic"],
        status=SubscriptionStatus(record["status"]),
        expires_at=record["expires_at"],
        last_renewed_at=record["last_renewed_at"],
        renewal_attempts=record["renewal_attempts"],
        error_message=record["error_message"],
        created_at=record["created_at"],
        updated_at=record["updated_at"],
    )


class SubscriptionRepository:
    """Upsert and read operations for subscriptions."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the subscriptions table and index (idempotent)."""
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("Subscriptions table ensured")

    async def ensure_pending(self, source_id: str, topic: str) -> None:
        """Create a pending row on the first subscribe attempt."""
        await self._db.execute(_ENSURE_PENDING_SQL, source_id, topic)

    async def upsert_active(
        self,
        source_id: str,
        topic: str,
        expires_at: datetime,
        renewed_at: datetime,
    ) -> None:
        await self._db.execute(_UPSERT_ACTIVE_SQL, source_id, topic, expires_at, renewed_at)

    async def upsert_failed(self, source_id: str, topic: str, error: str) -> None:
        await self._db.execute(_UPSERT_FAILED_SQL, source_id, topic, error[:1000])

    async def get(self, source_id: str) -> Subscription | None:
        row = await self._db.fetchrow(
            "SELECT * FROM subscriptions WHERE source_id = $1", source_id
        )
        if row is None:
            return None
        return _record_to_subscription(row)

    async def list_all(self) -> list[Subscription]:
        """All subscriptions, soonest expiry first (unknown expiry first of all)."""
        rows = await self._db.fetch(
            "SELECT * FROM subscriptions ORDER BY expires_at ASC NULLS FIRST, source_id"
        )
        return [_record_to_subscription(r) for r in rows]
