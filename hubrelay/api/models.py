"""
Request and response models for the admin API.
"""

import datetime as dt

from pydantic import BaseModel, Field


class SubscriptionItem(BaseModel):
    """One subscription with derived health."""

    source_id: str
    topic: str
    status: str = Field(..., description="Effective status (active leases age into expiring/expired)")
    stored_status: str = Field(..., description="Status last written by the lifecycle manager")
    health: str = Field(..., description="unknown, expired, expiring_soon or ok")
    expires_at: dt.datetime | None = None
    hours_until_expiry: float | None = None
    last_renewed_at: dt.datetime | None = None
    renewal_attempts: int = 0
    error_message: str | None = None


class SubscriptionListResponse(BaseModel):
    """Response model for the subscription listing."""

    subscriptions: list[SubscriptionItem]
    total: int
    healthy: int = Field(..., description="Subscriptions with health 'ok'")
    needs_attention: int = Field(..., description="Subscriptions not 'ok'")


class SubscribeResultItem(BaseModel):
    """Outcome of one subscribe call."""

    source_id: str
    ok: bool
    attempts: int
    status_code: int | None = None
    error: str | None = None
    expires_at: dt.datetime | None = None


class RenewSweepResponse(BaseModel):
    """Response model for a manually triggered renewal sweep."""

    results: list[SubscribeResultItem]
    renewed: int
    failed: int
