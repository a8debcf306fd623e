"""
In-memory implementation of the Repository Pattern.

Used for embedding the library in a single process and for tests. Rows are
kept as validated Pydantic models; every operation holds the repository lock
so concurrent callers observe whole rows only.
"""

import threading
from typing import Any, Callable, Dict, Generic, List, Optional, Type, TypeVar, Union

from src.core.utils.clock import Clock, SystemClock
from src.core.utils.custom_ulid import generate_ulid
from src.core.utils.exceptions import DuplicateError

T = TypeVar("T")  # Pydantic Model


class MemoryRepository(Generic[T]):
    """Thread-safe dict-backed repository keyed by `id_column`."""

    def __init__(
        self,
        model_class: Type[T],
        id_column: str = "id",
        generate_ids: bool = True,
        clock: Optional[Clock] = None,
    ):
        self.model_class = model_class
        self.id_column = id_column
        self.generate_ids = generate_ids
        self.clock = clock or SystemClock()
        self._rows: Dict[Any, T] = {}
        self._lock = threading.RLock()

    def _fields(self) -> Dict[str, Any]:
        return self.model_class.model_fields

    def _stamp_new(self, data: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(data)
        now = self.clock.now()
        fields = self._fields()
        if self.generate_ids and not row.get(self.id_column):
            row[self.id_column] = generate_ulid()
        if "created_at" in fields:
            row.setdefault("created_at", now)
        if "updated_at" in fields:
            row.setdefault("updated_at", now)
        if "version" in fields:
            row.setdefault("version", 1)
        return row

    def _matches(self, row: T, filters: Dict[str, Any]) -> bool:
        return all(getattr(row, k) == v for k, v in filters.items())

    def create(self, data: Dict[str, Any]) -> Optional[T]:
        row = self._stamp_new(data)
        model = self.model_class(**row)
        key = getattr(model, self.id_column)
        with self._lock:
            if key in self._rows:
                raise DuplicateError(
                    f"{self.model_class.__name__} {key} already exists", id=key
                )
            self._rows[key] = model
        return model

    def find_by_id(self, id_value: Any, id_column: str = None) -> Optional[T]:
        if id_column and id_column != self.id_column:
            found = self.find_by({id_column: id_value}, limit=1)
            return found[0] if found else None
        with self._lock:
            return self._rows.get(id_value)

    def update(
        self,
        id_value: Union[int, str],
        data: Dict[str, Any],
        id_column: str = None,
        current_version: Optional[int] = None,
    ) -> Optional[T]:
        with self._lock:
            existing = self._rows.get(id_value)
            if existing is None:
                return None
            if current_version is not None and getattr(existing, "version", None) != current_version:
                return None

            row = existing.model_dump()
            row.update(data)
            if "updated_at" in self._fields() and "updated_at" not in data:
                row["updated_at"] = self.clock.now()
            if current_version is not None and "version" not in data:
                row["version"] = current_version + 1

            model = self.model_class(**row)
            self._rows[id_value] = model
            return model

    def find_by(
        self,
        filters: Dict[str, Any],
        limit: int = 100,
        order_by: Optional[str] = None,
    ) -> List[T]:
        return self.find_where(lambda row: self._matches(row, filters), limit, order_by)

    def find_where(
        self,
        predicate: Callable[[T], bool],
        limit: int = 100,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[T]:
        with self._lock:
            rows = [row for row in self._rows.values() if predicate(row)]
        if order_by:
            rows.sort(key=lambda row: getattr(row, order_by), reverse=descending)
        return rows[:limit] if limit is not None else rows

    def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        with self._lock:
            return sum(1 for row in self._rows.values() if self._matches(row, filters or {}))
