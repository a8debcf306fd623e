from typing import List

from src.modules.billing.models.feature import Feature
from src.modules.billing.repositories.impl.postgres.base import BillingPostgresRepository
from src.modules.billing.repositories.interfaces import IFeatureRepository


class PostgresFeatureRepository(BillingPostgresRepository[Feature], IFeatureRepository):
    model = Feature

    def __init__(self, db):
        super().__init__(db, "features", Feature, id_column="feature_id", generate_ids=False)

    def find_all(self) -> List[Feature]:
        return self.find_by({}, limit=1000, order_by="feature_id")

    def find_by_category(self, category: str) -> List[Feature]:
        return self.find_by({"category": category}, limit=1000, order_by="feature_id")
