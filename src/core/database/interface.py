from typing import Any, Dict, Generic, List, Optional, Protocol, TypeVar, Union

T = TypeVar("T")


class IRepository(Generic[T], Protocol):
    """
    Generic repository interface.
    CRUD contract independent of the storage backend (memory, Postgres).
    """

    def create(self, data: Dict[str, Any]) -> Optional[T]:
        """Create a new record."""
        ...

    def find_by_id(self, id_value: Any, id_column: str = None) -> Optional[T]:
        """Find a record by its ID."""
        ...

    def update(
        self,
        id_value: Union[int, str],
        data: Dict[str, Any],
        id_column: str = None,
        current_version: Optional[int] = None,
    ) -> Optional[T]:
        """
        Update an existing record.

        When `current_version` is given the update only applies if the stored
        version still matches (compare-and-swap); otherwise None is returned.
        """
        ...

    def find_by(self, filters: Dict[str, Any], limit: int = 100) -> List[T]:
        """Find records matching simple equality filters."""
        ...

    def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        """Count records matching filters."""
        ...
