from typing import Any

import psycopg2
from psycopg2 import errors, sql

from src.core.database.postgres_repository import PostgresRepository, T
from src.core.utils import get_logger
from src.modules.billing.exceptions import BillingRepositoryError

logger = get_logger(__name__)


class BillingPostgresRepository(PostgresRepository[T]):
    """
    PostgresRepository that surfaces driver failures as BillingRepositoryError.

    Unique violations pass through untouched so the base `create` can turn
    them into DuplicateError.
    """

    def _execute_query(self, query: sql.Composable, params: tuple = None, **kwargs: Any) -> Any:
        try:
            return super()._execute_query(query, params, **kwargs)
        except errors.UniqueViolation:
            raise
        except psycopg2.Error as e:
            raise BillingRepositoryError(
                f"Query on {self.table_name} failed", original_error=e, table=self.table_name
            ) from e

    def _wrap(self, operation: str, error: Exception, **context: Any) -> BillingRepositoryError:
        logger.error(f"{operation}_failed", table=self.table_name, error=str(error), **context)
        return BillingRepositoryError(
            f"Failed to {operation.replace('_', ' ')} on {self.table_name}",
            original_error=error,
            **context,
        )
