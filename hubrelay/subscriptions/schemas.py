"""Schema definitions for hub subscriptions.

Maps 1:1 to the ``subscriptions`` table. The stored ``status`` is what
the lifecycle manager last wrote; ``effective_status`` and ``health``
derive the current picture from the expiry time.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone


class SubscriptionStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    EXPIRING = "expiring"
    EXPIRED = "expired"
    FAILED = "failed"


class SubscriptionHealth(str, enum.Enum):
    UNKNOWN = "unknown"
    EXPIRED = "expired"
    EXPIRING_SOON = "expiring_soon"
    OK = "ok"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Subscription:
    """A persisted subscription record.

    Attributes:
        source_id: Channel id (primary key).
        topic: Hub topic URL.
        status: Last status written by the lifecycle manager.
        expires_at: End of the current lease (None until the first success).
        last_renewed_at: Time of the last successful handshake.
        renewal_attempts: Failed rounds since the last success.
        error_message: Error of the last failed round.
    """

    source_id: str
    topic: str
    status: SubscriptionStatus = SubscriptionStatus.PENDING
    expires_at: datetime | None = None
    last_renewed_at: datetime | None = None
    renewal_attempts: int = 0
    error_message: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def hours_until_expiry(self, now: datetime | None = None) -> float | None:
        if self.expires_at is None:
            return None
        delta = self.expires_at - (now or _utcnow())
        return round(delta.total_seconds() / 3600, 1)

    def health(
        self,
        now: datetime | None = None,
        expiring_soon_hours: float = 48.0,
    ) -> SubscriptionHealth:
        hours = self.hours_until_expiry(now)
        if hours is None:
            return SubscriptionHealth.UNKNOWN
        if hours <= 0:
            return SubscriptionHealth.EXPIRED
        if hours <= expiring_soon_hours:
            return SubscriptionHealth.EXPIRING_SOON
        return SubscriptionHealth.OK

    def effective_status(
        self,
        now: datetime | None = None,
        expiring_soon_hours: float = 48.0,
    ) -> SubscriptionStatus:
        """Stored status, with an active lease aged into expiring/expired."""
        if self.status is not SubscriptionStatus.ACTIVE:
            return self.status
        health = self.health(now, expiring_soon_hours)
        if health is SubscriptionHealth.EXPIRED:
            return SubscriptionStatus.EXPIRED
        if health is SubscriptionHealth.EXPIRING_SOON:
            return SubscriptionStatus.EXPIRING
        return self.status

    def needs_renewal(
        self,
        now: datetime | None = None,
        lookahead: timedelta = timedelta(hours=48),
    ) -> bool:
        """True when the lease is unknown or ends within ``lookahead``."""
        if self.expires_at is None:
            return True
        return self.expires_at <= (now or _utcnow()) + lookahead


@dataclass
class SubscribeResult:
    """Outcome of one subscribe call (all attempts included)."""

    source_id: str
    ok: bool
    attempts: int
    status_code: int | None = None
    error: str | None = None
    expires_at: datetime | None = None
