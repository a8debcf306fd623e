from datetime import datetime
from typing import List, Optional

import psycopg2
from psycopg2 import sql

from src.core.database.postgres_repository import to_db_value
from src.core.utils import get_logger
from src.core.utils.custom_ulid import generate_ulid
from src.modules.billing.enums.metering_window import MeteringWindow
from src.modules.billing.models.usage_counter import CounterKey, UsageCounter
from src.modules.billing.repositories.impl.postgres.base import BillingPostgresRepository
from src.modules.billing.repositories.interfaces import CounterMutation, IUsageCounterRepository

logger = get_logger(__name__)

KEY_COLUMNS = ("tenant_id", "feature_id", "metric", "window", "window_start")
MUTABLE_COLUMNS = ("value", "limit_snapshot", "crossed_thresholds", "closed", "window_end")


class PostgresUsageCounterRepository(BillingPostgresRepository[UsageCounter], IUsageCounterRepository):
    """
    Usage counters with row-level locking.

    `mutate` seeds the row with INSERT ... ON CONFLICT DO NOTHING, locks it
    with SELECT ... FOR UPDATE and writes the mutation back, all in a single
    transaction, so concurrent writers to the same key queue on the row lock.
    """
    model = UsageCounter

    def __init__(self, db):
        super().__init__(db, "usage_counters", UsageCounter, id_column="counter_id")

    def _key_clause(self) -> sql.Composable:
        return sql.SQL(" AND ").join(
            sql.SQL("{} = %s").format(sql.Identifier(col)) for col in KEY_COLUMNS
        )

    @staticmethod
    def _key_params(key: CounterKey) -> tuple:
        return (key.tenant_id, key.feature_id, key.metric, key.window.value, key.window_start)

    def find_by_key(self, key: CounterKey) -> Optional[UsageCounter]:
        query = sql.SQL("SELECT * FROM {table} WHERE ").format(
            table=self.table_identifier
        ) + self._key_clause()

        result = self._execute_query(query, self._key_params(key), fetch_one=True)
        return self._to_model(result)

    def mutate(self, seed: UsageCounter, mutation: CounterMutation) -> UsageCounter:
        key = seed.key
        seed_row = seed.model_dump(exclude={"created_at", "updated_at"})
        seed_row["counter_id"] = seed.counter_id or generate_ulid()
        columns = list(seed_row.keys())

        insert = sql.SQL(
            "INSERT INTO {table} ({columns}) VALUES ({values}) ON CONFLICT ({key}) DO NOTHING"
        ).format(
            table=self.table_identifier,
            columns=sql.SQL(", ").join(map(sql.Identifier, columns)),
            values=sql.SQL(", ").join(sql.Placeholder() * len(columns)),
            key=sql.SQL(", ").join(map(sql.Identifier, KEY_COLUMNS)),
        )
        lock = sql.SQL("SELECT * FROM {table} WHERE ").format(
            table=self.table_identifier
        ) + self._key_clause() + sql.SQL(" FOR UPDATE")
        update = sql.SQL(
            "UPDATE {table} SET {assignments}, version = version + 1, updated_at = NOW() "
            "WHERE counter_id = %s RETURNING *"
        ).format(
            table=self.table_identifier,
            assignments=sql.SQL(", ").join(
                sql.SQL("{} = %s").format(sql.Identifier(col)) for col in MUTABLE_COLUMNS
            ),
        )

        try:
            with self.db.transaction() as cursor:
                cursor.execute(insert, tuple(to_db_value(seed_row[c]) for c in columns))
                cursor.execute(lock, self._key_params(key))
                current = UsageCounter(**cursor.fetchone())

                updated = mutation(current)

                cursor.execute(
                    update,
                    tuple(to_db_value(getattr(updated, col)) for col in MUTABLE_COLUMNS)
                    + (current.counter_id,),
                )
                return UsageCounter(**cursor.fetchone())
        except psycopg2.Error as e:
            raise self._wrap("mutate_counter", e, tenant_id=key.tenant_id, feature_id=key.feature_id)

    def find_open_by_tenant(self, tenant_id: str) -> List[UsageCounter]:
        return self.find_by({"tenant_id": tenant_id, "closed": False}, limit=1000, order_by="feature_id")

    def find_ended(self, at: datetime, limit: int = 1000) -> List[UsageCounter]:
        query = sql.SQL("""
            SELECT * FROM {table}
            WHERE closed = false AND window_end IS NOT NULL AND window_end <= %s
            ORDER BY window_end ASC
            LIMIT %s
        """).format(table=self.table_identifier)

        results = self._execute_query(query, (at, limit), fetch_all=True)
        return [self.model_class(**row) for row in results]

    def find_history(
        self,
        tenant_id: str,
        feature_id: str,
        metric: str,
        window: MeteringWindow,
        limit: int = 12,
    ) -> List[UsageCounter]:
        query = sql.SQL("""
            SELECT * FROM {table}
            WHERE tenant_id = %s AND feature_id = %s AND metric = %s AND "window" = %s
            ORDER BY window_start DESC
            LIMIT %s
        """).format(table=self.table_identifier)

        results = self._execute_query(
            query, (tenant_id, feature_id, metric, window.value, limit), fetch_all=True
        )
        return [self.model_class(**row) for row in results]
