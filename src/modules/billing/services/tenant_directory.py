from typing import Optional

from src.core.utils.clock import Clock, SystemClock
from src.modules.billing.enums.subscription_status import SubscriptionStatus
from src.modules.billing.models.subscription import Subscription
from src.modules.billing.repositories.interfaces import ISubscriptionRepository
from src.modules.billing.services.ports import ITenantDirectory


class SubscriptionTenantDirectory(ITenantDirectory):
    """
    Tenant directory backed by the subscriptions table.

    Trialing and active subscriptions grant their plan. A cancelled
    subscription keeps its plan until the grace period ends, even if the
    expiry sweep has not run yet. Paused and expired ones fall back to the
    default plan.
    """

    def __init__(self, subscription_repo: ISubscriptionRepository, clock: Optional[Clock] = None):
        self.subscription_repo = subscription_repo
        self.clock = clock or SystemClock()

    def find_live_subscription(self, tenant_id: str) -> Optional[Subscription]:
        return self.subscription_repo.find_live_by_tenant(tenant_id)

    def effective_plan_id(self, tenant_id: str) -> Optional[str]:
        subscription = self.find_live_subscription(tenant_id)
        if subscription is None:
            return None

        if subscription.status in (SubscriptionStatus.TRIALING, SubscriptionStatus.ACTIVE):
            return subscription.plan_id
        if subscription.status == SubscriptionStatus.CANCELLED_GRACE:
            if subscription.grace_elapsed(self.clock.now()):
                return None
            return subscription.plan_id
        return None
