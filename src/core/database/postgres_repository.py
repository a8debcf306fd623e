"""
PostgreSQL implementation of the Repository Pattern using raw SQL (psycopg2).
"""

from enum import Enum
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar, Union

from psycopg2 import errors, sql
from psycopg2.extras import Json, RealDictCursor
from pydantic import BaseModel

from src.core.utils import get_logger
from src.core.utils.custom_ulid import generate_ulid
from src.core.utils.exceptions import DuplicateError
from src.core.database.postgres_session import PostgresDatabase

logger = get_logger(__name__)

T = TypeVar("T")  # Pydantic Model


def to_db_value(value: Any) -> Any:
    """Adapt python values (enums, models, lists) to psycopg2 parameters."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, BaseModel):
        return Json(value.model_dump(mode="json"))
    if isinstance(value, (dict, list)):
        return Json(value)
    return value


class PostgresRepository(Generic[T]):
    """
    PostgreSQL implementation of IRepository using raw SQL (psycopg2).

    This class generates and executes raw SQL queries, mapping results directly
    to Pydantic models without an ORM overhead.
    """

    def __init__(
        self,
        db: PostgresDatabase,
        table_name: str,
        model_class: Type[T],
        id_column: str = "id",
        generate_ids: bool = True,
    ):
        """
        Initialize Postgres Raw repository.

        Args:
            db: PostgresDatabase instance (pool/connection manager)
            table_name: Name of the database table (supports "schema.table" format)
            model_class: Pydantic model class (for return types)
            id_column: Primary key column
            generate_ids: Assign a ULID primary key on create when none is given
        """
        self.db = db
        self.table_name = table_name
        self.model_class = model_class
        self.id_column = id_column
        self.generate_ids = generate_ids

        if "." in table_name:
            schema, table = table_name.split(".", 1)
            self.table_identifier = sql.SQL('"{}"."{}"').format(sql.SQL(schema), sql.SQL(table))
        else:
            self.table_identifier = sql.SQL('"{}"').format(sql.SQL(table_name))

    def _execute_query(
        self,
        query: sql.Composable,
        params: tuple = None,
        fetch_one: bool = False,
        fetch_all: bool = False,
        commit: bool = False,
    ) -> Any:
        """Helper to execute queries with cursor management."""
        with self.db.connection() as conn:
            cursor = conn.cursor(cursor_factory=RealDictCursor)
            try:
                cursor.execute(query, params)

                if fetch_one:
                    result = cursor.fetchone()
                    if commit:
                        conn.commit()
                    return result
                if fetch_all:
                    result = cursor.fetchall()
                    if commit:
                        conn.commit()
                    return result

                if commit:
                    conn.commit()
                return cursor.rowcount

            except Exception as e:
                conn.rollback()
                logger.error(
                    f"Error executing query on {self.table_name}", error=str(e)
                )
                raise
            finally:
                cursor.close()

    def _to_model(self, row: Optional[Dict[str, Any]]) -> Optional[T]:
        if row is None:
            return None
        return self.model_class(**row)

    def create(self, data: Dict[str, Any]) -> Optional[T]:
        """
        Create a new record using raw INSERT.
        """
        if self.generate_ids and not data.get(self.id_column):
            data = {self.id_column: generate_ulid(), **data}

        columns = list(data.keys())
        values = [to_db_value(v) for v in data.values()]

        query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
            self.table_identifier,
            sql.SQL(", ").join(map(sql.Identifier, columns)),
            sql.SQL(", ").join(sql.Placeholder() * len(columns)),
        )

        try:
            result = self._execute_query(
                query, tuple(values), fetch_one=True, commit=True
            )
        except errors.UniqueViolation as e:
            raise DuplicateError(
                f"Duplicate row in {self.table_name}", table=self.table_name
            ) from e
        return self._to_model(result)

    def find_by_id(self, id_value: Any, id_column: str = None) -> Optional[T]:
        """
        Find a record by ID using raw SELECT.
        """
        id_column = id_column or self.id_column
        query = sql.SQL("SELECT * FROM {} WHERE {} = %s").format(
            self.table_identifier, sql.Identifier(id_column)
        )

        result = self._execute_query(query, (id_value,), fetch_one=True)
        return self._to_model(result)

    def update(
        self,
        id_value: Union[int, str],
        data: Dict[str, Any],
        id_column: str = None,
        current_version: Optional[int] = None,
    ) -> Optional[T]:
        """
        Update a record using raw UPDATE.

        With `current_version` the row only changes if its version still
        matches, and the version is bumped; a lost race returns None.
        """
        id_column = id_column or self.id_column
        if not data:
            return self.find_by_id(id_value, id_column)

        where_clause = sql.SQL("{} = %s").format(sql.Identifier(id_column))

        if current_version is not None:
            if "version" not in data:
                data = {**data, "version": current_version + 1}
            where_clause = where_clause + sql.SQL(" AND version = %s")

        set_clauses = [
            sql.SQL("{} = {}").format(sql.Identifier(k), sql.Placeholder())
            for k in data.keys()
        ]

        query = sql.SQL("UPDATE {} SET {} WHERE ").format(
            self.table_identifier,
            sql.SQL(", ").join(set_clauses),
        ) + where_clause + sql.SQL(" RETURNING *")

        # Params: values for SET + id_value for WHERE
        params = tuple(to_db_value(v) for v in data.values()) + (id_value,)
        if current_version is not None:
            params = params + (current_version,)

        result = self._execute_query(query, params, fetch_one=True, commit=True)
        return self._to_model(result)

    def find_by(
        self,
        filters: Dict[str, Any],
        limit: int = 100,
        order_by: Optional[str] = None,
    ) -> List[T]:
        """
        Find records by equality filters using raw SELECT.
        """
        conditions = []
        values = []

        for k, v in filters.items():
            conditions.append(
                sql.SQL("{} = {}").format(sql.Identifier(k), sql.Placeholder())
            )
            values.append(to_db_value(v))

        where_clause = (
            sql.SQL(" WHERE {}").format(sql.SQL(" AND ").join(conditions))
            if conditions
            else sql.SQL("")
        )
        order_clause = (
            sql.SQL(" ORDER BY {}").format(sql.Identifier(order_by))
            if order_by
            else sql.SQL("")
        )

        query = (
            sql.SQL("SELECT * FROM {}").format(self.table_identifier)
            + where_clause
            + order_clause
            + sql.SQL(" LIMIT %s")
        )

        params = tuple(values) + (limit,)
        results = self._execute_query(query, params, fetch_all=True)

        return [self.model_class(**row) for row in results]

    def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        """
        Count records using raw SELECT COUNT(*).
        """
        conditions = []
        values = []

        if filters:
            for k, v in filters.items():
                conditions.append(
                    sql.SQL("{} = {}").format(sql.Identifier(k), sql.Placeholder())
                )
                values.append(to_db_value(v))

        where_clause = (
            sql.SQL(" WHERE {}").format(sql.SQL(" AND ").join(conditions))
            if conditions
            else sql.SQL("")
        )

        query = (
            sql.SQL("SELECT COUNT(*) as count FROM {}").format(
                self.table_identifier
            )
            + where_clause
        )

        result = self._execute_query(query, tuple(values), fetch_one=True)
        return result["count"] if result else 0
