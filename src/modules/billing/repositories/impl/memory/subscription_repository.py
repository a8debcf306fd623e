from datetime import datetime
from typing import Any, Dict, List, Optional

from src.core.database.memory_repository import MemoryRepository
from src.core.utils.exceptions import DuplicateError
from src.modules.billing.enums.subscription_status import SubscriptionStatus
from src.modules.billing.models.subscription import Subscription
from src.modules.billing.repositories.interfaces import ISubscriptionRepository


def _is_due(subscription: Subscription, now: datetime) -> bool:
    if subscription.status == SubscriptionStatus.TRIALING:
        return subscription.trial_end is not None and subscription.trial_end <= now
    if subscription.status == SubscriptionStatus.ACTIVE:
        return subscription.current_period_end <= now
    if subscription.status == SubscriptionStatus.CANCELLED_GRACE:
        return subscription.expiry_due(now)
    return False


class MemorySubscriptionRepository(MemoryRepository[Subscription], ISubscriptionRepository):
    def __init__(self, clock=None):
        super().__init__(Subscription, id_column="subscription_id", clock=clock)

    def create_live(self, data: Dict[str, Any]) -> Subscription:
        # Held across the check and the insert: one live subscription per tenant.
        with self._lock:
            if self.find_live_by_tenant(data["tenant_id"]) is not None:
                raise DuplicateError(
                    f"Tenant {data['tenant_id']} already has a live subscription",
                    tenant_id=data["tenant_id"],
                )
            return self.create(data)

    def find_live_by_tenant(self, tenant_id: str) -> Optional[Subscription]:
        live = self.find_where(
            lambda s: s.tenant_id == tenant_id and s.is_live,
            limit=1,
            order_by="created_at",
            descending=True,
        )
        return live[0] if live else None

    def find_by_tenant(self, tenant_id: str) -> List[Subscription]:
        return self.find_where(
            lambda s: s.tenant_id == tenant_id, limit=None, order_by="created_at", descending=True
        )

    def find_due(self, now: datetime, limit: int = 100) -> List[Subscription]:
        return self.find_where(lambda s: _is_due(s, now), limit=limit, order_by="updated_at")

    def count_live_by_plan(self, plan_id: str) -> int:
        return len(
            self.find_where(
                lambda s: s.is_live and plan_id in (s.plan_id, s.pending_plan_id), limit=None
            )
        )
