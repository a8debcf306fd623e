from datetime import datetime
from typing import Any, Dict, List, Optional

from src.core.database.memory_repository import MemoryRepository
from src.modules.billing.models.retention_offer import RetentionOffer
from src.modules.billing.repositories.interfaces import IRetentionOfferRepository


class MemoryRetentionOfferRepository(MemoryRepository[RetentionOffer], IRetentionOfferRepository):
    def __init__(self, clock=None):
        super().__init__(RetentionOffer, id_column="offer_id", clock=clock)

    def create_once(self, data: Dict[str, Any]) -> RetentionOffer:
        with self._lock:
            existing = self.find_by(
                {"subscription_id": data["subscription_id"], "cancellation_seq": data["cancellation_seq"]},
                limit=1,
            )
            if existing:
                return existing[0]
            return self.create(data)

    def find_by_subscription(self, subscription_id: str) -> List[RetentionOffer]:
        return self.find_by({"subscription_id": subscription_id}, limit=None, order_by="created_at")

    def consume(self, offer_id: str, at: datetime) -> Optional[RetentionOffer]:
        with self._lock:
            offer = self.find_by_id(offer_id)
            if offer is None or offer.is_accepted or offer.is_expired:
                return None
            return self.update(offer_id, {"is_accepted": True, "accepted_at": at})

    def release(self, offer_id: str, accepted_at: datetime) -> Optional[RetentionOffer]:
        with self._lock:
            offer = self.find_by_id(offer_id)
            if offer is None or not offer.is_accepted or offer.accepted_at != accepted_at:
                return None
            return self.update(offer_id, {"is_accepted": False, "accepted_at": None})

    def find_stale(self, now: datetime, limit: int = 100) -> List[RetentionOffer]:
        return self.find_where(
            lambda o: not o.is_accepted and not o.is_expired and o.valid_until <= now,
            limit=limit,
            order_by="valid_until",
        )
