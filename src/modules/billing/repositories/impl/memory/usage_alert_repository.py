from typing import List, Optional

from src.core.database.memory_repository import MemoryRepository
from src.modules.billing.models.usage_alert import UsageAlert
from src.modules.billing.repositories.interfaces import IUsageAlertRepository


class MemoryUsageAlertRepository(MemoryRepository[UsageAlert], IUsageAlertRepository):
    def __init__(self, clock=None):
        super().__init__(UsageAlert, id_column="alert_id", clock=clock)

    def find_pending(self, tenant_id: Optional[str] = None, limit: int = 100) -> List[UsageAlert]:
        return self.find_where(
            lambda a: not a.is_delivered and (tenant_id is None or a.tenant_id == tenant_id),
            limit=limit,
            order_by="created_at",
        )

    def find_by_tenant(self, tenant_id: str, limit: int = 100) -> List[UsageAlert]:
        alerts = self.find_by({"tenant_id": tenant_id}, limit=None, order_by="created_at")
        return list(reversed(alerts))[:limit]
