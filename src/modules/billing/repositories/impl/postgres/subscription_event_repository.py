from typing import List

from src.modules.billing.models.subscription_event import SubscriptionEvent
from src.modules.billing.repositories.impl.postgres.base import BillingPostgresRepository
from src.modules.billing.repositories.interfaces import ISubscriptionEventRepository


class PostgresSubscriptionEventRepository(BillingPostgresRepository[SubscriptionEvent], ISubscriptionEventRepository):
    model = SubscriptionEvent

    def __init__(self, db):
        super().__init__(db, "subscription_events", SubscriptionEvent, id_column="event_id")

    def find_by_subscription(self, subscription_id: str) -> List[SubscriptionEvent]:
        return self.find_by({"subscription_id": subscription_id}, limit=1000, order_by="created_at")
