from typing import List, Optional

from src.core.database.memory_repository import MemoryRepository
from src.modules.billing.models.usage_event import UsageEvent
from src.modules.billing.repositories.interfaces import IUsageEventRepository


class MemoryUsageEventRepository(MemoryRepository[UsageEvent], IUsageEventRepository):
    def __init__(self, clock=None):
        super().__init__(UsageEvent, id_column="event_id", clock=clock)

    def find_by_tenant(
        self, tenant_id: str, feature_id: Optional[str] = None, limit: int = 100
    ) -> List[UsageEvent]:
        events = self.find_where(
            lambda e: e.tenant_id == tenant_id and (feature_id is None or e.feature_id == feature_id),
            limit=None,
            order_by="created_at",
        )
        return list(reversed(events))[:limit]
