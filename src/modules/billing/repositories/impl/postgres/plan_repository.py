from typing import List, Optional

from psycopg2 import sql

from src.modules.billing.models.plan import Plan
from src.modules.billing.repositories.impl.postgres.base import BillingPostgresRepository
from src.modules.billing.repositories.interfaces import IPlanRepository


class PostgresPlanRepository(BillingPostgresRepository[Plan], IPlanRepository):
    model = Plan

    def __init__(self, db):
        super().__init__(db, "plans", Plan, id_column="plan_id")

    def find_by_name(self, name: str) -> Optional[Plan]:
        results = self.find_by({"name": name}, limit=1)
        return results[0] if results else None

    def find_active(self) -> List[Plan]:
        query = sql.SQL("""
            SELECT * FROM {table}
            WHERE active = true
            ORDER BY price_cents ASC, plan_id ASC
        """).format(table=self.table_identifier)

        results = self._execute_query(query, fetch_all=True)
        return [self.model_class(**row) for row in results]
