from typing import List, Optional

from psycopg2 import sql

from src.modules.billing.models.usage_event import UsageEvent
from src.modules.billing.repositories.impl.postgres.base import BillingPostgresRepository
from src.modules.billing.repositories.interfaces import IUsageEventRepository


class PostgresUsageEventRepository(BillingPostgresRepository[UsageEvent], IUsageEventRepository):
    model = UsageEvent

    def __init__(self, db):
        super().__init__(db, "usage_events", UsageEvent, id_column="event_id")

    def find_by_tenant(
        self, tenant_id: str, feature_id: Optional[str] = None, limit: int = 100
    ) -> List[UsageEvent]:
        conditions = [sql.SQL("tenant_id = %s")]
        params = [tenant_id]
        if feature_id:
            conditions.append(sql.SQL("feature_id = %s"))
            params.append(feature_id)

        query = sql.SQL("SELECT * FROM {table} WHERE {where} ORDER BY created_at DESC LIMIT %s").format(
            table=self.table_identifier,
            where=sql.SQL(" AND ").join(conditions),
        )
        results = self._execute_query(query, tuple(params) + (limit,), fetch_all=True)
        return [self.model_class(**row) for row in results]
