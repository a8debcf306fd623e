from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from psycopg2.extensions import register_adapter
from psycopg2.extras import Json, RealDictCursor
from psycopg2.pool import ThreadedConnectionPool


class PostgresDatabase:
    def __init__(self, *, dsn: str, minconn: int = 1, maxconn: int = 10):
        # JSONB columns (entitlements, metadata, offer effects)
        register_adapter(dict, Json)

        self._pool = ThreadedConnectionPool(minconn=minconn, maxconn=maxconn, dsn=dsn)

    @contextmanager
    def connection(self) -> Iterator:
        conn = self._pool.getconn()
        try:
            yield conn
        finally:
            self._pool.putconn(conn)

    @contextmanager
    def transaction(self) -> Iterator:
        """
        Yield a dict cursor inside a single transaction.

        Commits when the block exits normally and rolls back on any exception,
        so row locks taken with SELECT ... FOR UPDATE are held until the end.
        """
        with self.connection() as conn:
            cursor = conn.cursor(cursor_factory=RealDictCursor)
            try:
                yield cursor
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                cursor.close()

    def close(self) -> None:
        self._pool.closeall()
