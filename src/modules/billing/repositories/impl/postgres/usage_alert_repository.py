from typing import List, Optional

from psycopg2 import sql

from src.modules.billing.models.usage_alert import UsageAlert
from src.modules.billing.repositories.impl.postgres.base import BillingPostgresRepository
from src.modules.billing.repositories.interfaces import IUsageAlertRepository


class PostgresUsageAlertRepository(BillingPostgresRepository[UsageAlert], IUsageAlertRepository):
    model = UsageAlert

    def __init__(self, db):
        super().__init__(db, "usage_alerts", UsageAlert, id_column="alert_id")

    def find_pending(self, tenant_id: Optional[str] = None, limit: int = 100) -> List[UsageAlert]:
        filters = {"is_delivered": False}
        if tenant_id:
            filters["tenant_id"] = tenant_id
        return self.find_by(filters, limit=limit, order_by="created_at")

    def find_by_tenant(self, tenant_id: str, limit: int = 100) -> List[UsageAlert]:
        query = sql.SQL("""
            SELECT * FROM {table}
            WHERE tenant_id = %s
            ORDER BY created_at DESC
            LIMIT %s
        """).format(table=self.table_identifier)

        results = self._execute_query(query, (tenant_id, limit), fetch_all=True)
        return [self.model_class(**row) for row in results]
