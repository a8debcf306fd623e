from typing import List, Optional

from src.core.database.memory_repository import MemoryRepository
from src.modules.billing.models.plan import Plan
from src.modules.billing.repositories.interfaces import IPlanRepository


class MemoryPlanRepository(MemoryRepository[Plan], IPlanRepository):
    def __init__(self, clock=None):
        super().__init__(Plan, id_column="plan_id", clock=clock)

    def find_by_name(self, name: str) -> Optional[Plan]:
        results = self.find_by({"name": name}, limit=1)
        return results[0] if results else None

    def find_active(self) -> List[Plan]:
        plans = self.find_where(lambda p: p.active, limit=None)
        return sorted(plans, key=lambda p: (p.price_cents, p.plan_id))
