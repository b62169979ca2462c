"""
Subscription admin endpoints: health listing and manual renewal.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Path

from hubrelay.api.auth import verify_api_key
from hubrelay.api.dependencies import (
    get_subscription_config,
    get_subscription_manager,
    get_subscription_repository,
)
from hubrelay.api.models import (
    RenewSweepResponse,
    SubscribeResultItem,
    SubscriptionItem,
    SubscriptionListResponse,
)
from hubrelay.subscriptions.config import SubscriptionConfig
from hubrelay.subscriptions.manager import SubscriptionManager
from hubrelay.subscriptions.repository import SubscriptionRepository
from hubrelay.subscriptions.schemas import SubscribeResult, Subscription, SubscriptionHealth

router = APIRouter(prefix="/subscriptions", dependencies=[Depends(verify_api_key)])


def _to_item(sub: Subscription, now: datetime, expiring_soon_hours: float) -> SubscriptionItem:
    return SubscriptionItem(
        source_id=sub.source_id,
        topic=sub.topic,
        status=sub.effective_status(now, expiring_soon_hours).value,
        stored_status=sub.status.value,
        health=sub.health(now, expiring_soon_hours).value,
        expires_at=sub.expires_at,
        hours_until_expiry=sub.hours_until_expiry(now),
        last_renewed_at=sub.last_renewed_at,
        renewal_attempts=sub.renewal_attempts,
        error_message=sub.error_message,
    )


def _to_result(result: SubscribeResult) -> SubscribeResultItem:
    return SubscribeResultItem(
        source_id=result.source_id,
        ok=result.ok,
        attempts=result.attempts,
        status_code=result.status_code,
        error=result.error,
        expires_at=result.expires_at,
    )


@router.get("", response_model=SubscriptionListResponse)
async def list_subscriptions(
    repository: SubscriptionRepository = Depends(get_subscription_repository),
    config: SubscriptionConfig = Depends(get_subscription_config),
) -> SubscriptionListResponse:
    """List subscriptions with health derived from their expiry."""
    now = datetime.now(timezone.utc)
    items = [
        _to_item(sub, now, config.expiring_soon_hours)
        for sub in await repository.list_all()
    ]
    healthy = sum(1 for i in items if i.health == SubscriptionHealth.OK.value)
    return SubscriptionListResponse(
        subscriptions=items,
        total=len(items),
        healthy=healthy,
        needs_attention=len(items) - healthy,
    )


@router.get("/{source_id}", response_model=SubscriptionItem)
async def get_subscription(
    source_id: str = Path(..., min_length=1, max_length=64),
    repository: SubscriptionRepository = Depends(get_subscription_repository),
    config: SubscriptionConfig = Depends(get_subscription_config),
) -> SubscriptionItem:
    """One subscription with its health."""
    sub = await repository.get(source_id.strip())
    if sub is None:
        raise HTTPException(status_code=404, detail=f"No subscription for {source_id}")
    return _to_item(sub, datetime.now(timezone.utc), config.expiring_soon_hours)


@router.post("/renew", response_model=RenewSweepResponse)
async def renew_due(
    manager: SubscriptionManager = Depends(get_subscription_manager),
) -> RenewSweepResponse:
    """Run one renewal sweep now."""
    results = await manager.renew_due()
    renewed = sum(1 for r in results if r.ok)
    return RenewSweepResponse(
        results=[_to_result(r) for r in results],
        renewed=renewed,
        failed=len(results) - renewed,
    )


@router.post("/{source_id}/renew", response_model=SubscribeResultItem)
async def renew_one(
    source_id: str = Path(..., min_length=1, max_length=64),
    manager: SubscriptionManager = Depends(get_subscription_manager),
) -> SubscribeResultItem:
    """Subscribe or renew a single source with the hub."""
    result = await manager.subscribe(source_id.strip())
    if not result.ok:
        raise HTTPException(
            status_code=502,
            detail={"source_id": result.source_id, "error": result.error, "attempts": result.attempts},
        )
    return _to_result(result)
