"""Hub subscription lifecycle: subscribe, persist, renew."""

from hubrelay.subscriptions.config import SubscriptionConfig
from hubrelay.subscriptions.manager import SubscriptionManager
from hubrelay.subscriptions.repository import SubscriptionRepository
from hubrelay.subscriptions.scheduler import RenewalScheduler
from hubrelay.subscriptions.schemas import (
    SubscribeResult,
    Subscription,
    SubscriptionHealth,
    SubscriptionStatus,
)

__all__ = [
    "RenewalScheduler",
    "SubscribeResult",
    "Subscription",
    "SubscriptionConfig",
    "SubscriptionHealth",
    "SubscriptionManager",
    "SubscriptionRepository",
    "SubscriptionStatus",
]
