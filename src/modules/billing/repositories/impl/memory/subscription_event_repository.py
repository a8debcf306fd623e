from typing import List

from src.core.database.memory_repository import MemoryRepository
from src.modules.billing.models.subscription_event import SubscriptionEvent
from src.modules.billing.repositories.interfaces import ISubscriptionEventRepository


class MemorySubscriptionEventRepository(MemoryRepository[SubscriptionEvent], ISubscriptionEventRepository):
    def __init__(self, clock=None):
        super().__init__(SubscriptionEvent, id_column="event_id", clock=clock)

    def find_by_subscription(self, subscription_id: str) -> List[SubscriptionEvent]:
        return self.find_by({"subscription_id": subscription_id}, limit=1000, order_by="created_at")
