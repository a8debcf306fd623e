from typing import List

from src.core.database.memory_repository import MemoryRepository
from src.modules.billing.models.feature import Feature
from src.modules.billing.repositories.interfaces import IFeatureRepository


class MemoryFeatureRepository(MemoryRepository[Feature], IFeatureRepository):
    def __init__(self, clock=None):
        super().__init__(Feature, id_column="feature_id", generate_ids=False, clock=clock)

    def find_all(self) -> List[Feature]:
        return self.find_where(lambda f: True, limit=None, order_by="feature_id")

    def find_by_category(self, category: str) -> List[Feature]:
        return self.find_by({"category": category}, limit=1000, order_by="feature_id")
