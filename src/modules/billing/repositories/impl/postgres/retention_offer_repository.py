from datetime import datetime
from typing import Any, Dict, List, Optional

from psycopg2 import sql

from src.core.database.postgres_repository import to_db_value
from src.core.utils.custom_ulid import generate_ulid
from src.modules.billing.models.retention_offer import RetentionOffer
from src.modules.billing.repositories.impl.postgres.base import BillingPostgresRepository
from src.modules.billing.repositories.interfaces import IRetentionOfferRepository


class PostgresRetentionOfferRepository(BillingPostgresRepository[RetentionOffer], IRetentionOfferRepository):
    model = RetentionOffer

    def __init__(self, db):
        super().__init__(db, "retention_offers", RetentionOffer, id_column="offer_id")

    def create_once(self, data: Dict[str, Any]) -> RetentionOffer:
        row = {"offer_id": generate_ulid(), **data}
        columns = list(row.keys())

        query = sql.SQL("""
            INSERT INTO {table} ({columns}) VALUES ({values})
            ON CONFLICT (subscription_id, cancellation_seq) DO NOTHING
            RETURNING *
        """).format(
            table=self.table_identifier,
            columns=sql.SQL(", ").join(map(sql.Identifier, columns)),
            values=sql.SQL(", ").join(sql.Placeholder() * len(columns)),
        )

        result = self._execute_query(
            query, tuple(to_db_value(v) for v in row.values()), fetch_one=True, commit=True
        )
        if result:
            return self.model_class(**result)

        existing = self.find_by(
            {"subscription_id": data["subscription_id"], "cancellation_seq": data["cancellation_seq"]},
            limit=1,
        )
        return existing[0]

    def find_by_subscription(self, subscription_id: str) -> List[RetentionOffer]:
        return self.find_by({"subscription_id": subscription_id}, order_by="created_at")

    def consume(self, offer_id: str, at: datetime) -> Optional[RetentionOffer]:
        query = sql.SQL("""
            UPDATE {table}
            SET is_accepted = true, accepted_at = %s
            WHERE offer_id = %s AND is_accepted = false AND is_expired = false
            RETURNING *
        """).format(table=self.table_identifier)

        result = self._execute_query(query, (at, offer_id), fetch_one=True, commit=True)
        return self._to_model(result)

    def release(self, offer_id: str, accepted_at: datetime) -> Optional[RetentionOffer]:
        query = sql.SQL("""
            UPDATE {table}
            SET is_accepted = false, accepted_at = NULL
            WHERE offer_id = %s AND is_accepted = true AND accepted_at = %s
            RETURNING *
        """).format(table=self.table_identifier)

        result = self._execute_query(query, (offer_id, accepted_at), fetch_one=True, commit=True)
        return self._to_model(result)

    def find_stale(self, now: datetime, limit: int = 100) -> List[RetentionOffer]:
        query = sql.SQL("""
            SELECT * FROM {table}
            WHERE is_accepted = false AND is_expired = false AND valid_until <= %s
            ORDER BY valid_until ASC
            LIMIT %s
        """).format(table=self.table_identifier)

        results = self._execute_query(query, (now, limit), fetch_all=True)
        return [self.model_class(**row) for row in results]
