from datetime import datetime
from typing import Any, Dict, List, Optional

from psycopg2 import sql

from src.core.utils import get_logger
from src.modules.billing.enums.subscription_status import SubscriptionStatus
from src.modules.billing.models.subscription import Subscription
from src.modules.billing.repositories.impl.postgres.base import BillingPostgresRepository
from src.modules.billing.repositories.interfaces import ISubscriptionRepository

logger = get_logger(__name__)


class PostgresSubscriptionRepository(BillingPostgresRepository[Subscription], ISubscriptionRepository):
    """
    Subscriptions table.

    The partial unique index `subscriptions_one_live_per_tenant` rejects a
    second non-expired row for a tenant, which `create` reports as DuplicateError.
    """
    model = Subscription

    def __init__(self, db):
        super().__init__(db, "subscriptions", Subscription, id_column="subscription_id")

    def create_live(self, data: Dict[str, Any]) -> Subscription:
        return self.create(data)

    def find_live_by_tenant(self, tenant_id: str) -> Optional[Subscription]:
        query = sql.SQL("""
            SELECT * FROM {table}
            WHERE tenant_id = %s AND status <> %s
            ORDER BY created_at DESC
            LIMIT 1
        """).format(table=self.table_identifier)

        result = self._execute_query(
            query, (tenant_id, SubscriptionStatus.EXPIRED.value), fetch_one=True
        )
        return self._to_model(result)

    def find_by_tenant(self, tenant_id: str) -> List[Subscription]:
        query = sql.SQL("""
            SELECT * FROM {table}
            WHERE tenant_id = %s
            ORDER BY created_at DESC
        """).format(table=self.table_identifier)

        results = self._execute_query(query, (tenant_id,), fetch_all=True)
        return [self.model_class(**row) for row in results]

    def find_due(self, now: datetime, limit: int = 100) -> List[Subscription]:
        query = sql.SQL("""
            SELECT * FROM {table}
            WHERE (status = %s AND trial_end <= %s)
               OR (status = %s AND current_period_end <= %s)
               OR (status = %s AND grace_period_end <= %s
                   AND (offer_valid_until IS NULL OR offer_valid_until <= %s))
            ORDER BY updated_at ASC
            LIMIT %s
        """).format(table=self.table_identifier)

        params = (
            SubscriptionStatus.TRIALING.value, now,
            SubscriptionStatus.ACTIVE.value, now,
            SubscriptionStatus.CANCELLED_GRACE.value, now, now,
            limit,
        )
        results = self._execute_query(query, params, fetch_all=True)
        return [self.model_class(**row) for row in results]

    def count_live_by_plan(self, plan_id: str) -> int:
        query = sql.SQL("""
            SELECT COUNT(*) AS count FROM {table}
            WHERE (plan_id = %s OR pending_plan_id = %s) AND status <> %s
        """).format(table=self.table_identifier)

        result = self._execute_query(
            query, (plan_id, plan_id, SubscriptionStatus.EXPIRED.value), fetch_one=True
        )
        return result["count"] if result else 0
