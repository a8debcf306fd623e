import threading
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from src.core.database.memory_repository import MemoryRepository
from src.core.utils.custom_ulid import generate_ulid
from src.modules.billing.enums.metering_window import MeteringWindow
from src.modules.billing.models.usage_counter import CounterKey, UsageCounter
from src.modules.billing.repositories.interfaces import CounterMutation, IUsageCounterRepository


class MemoryUsageCounterRepository(MemoryRepository[UsageCounter], IUsageCounterRepository):
    """
    In-memory usage counters.

    Counter keys hash onto a fixed pool of lock stripes; `mutate` holds the
    key's stripe for the whole read-modify-write so concurrent writers to
    one key run one at a time. Keys on other stripes proceed in parallel,
    and the pool does not grow with the number of windows.
    """

    def __init__(self, clock=None, lock_stripes: int = 64):
        super().__init__(UsageCounter, id_column="counter_id", clock=clock)
        self._ids: Dict[CounterKey, str] = {}
        self._stripes: Tuple[threading.Lock, ...] = tuple(
            threading.Lock() for _ in range(max(1, lock_stripes))
        )

    def _lock_for(self, key: CounterKey) -> threading.Lock:
        return self._stripes[hash(key) % len(self._stripes)]

    def find_by_key(self, key: CounterKey) -> Optional[UsageCounter]:
        with self._lock:
            counter_id = self._ids.get(key)
            return self._rows.get(counter_id) if counter_id else None

    def mutate(self, seed: UsageCounter, mutation: CounterMutation) -> UsageCounter:
        key = seed.key
        with self._lock_for(key):
            current = self.find_by_key(key)
            if current is None:
                current = self.create(
                    {**seed.model_dump(exclude={"created_at", "updated_at"}), "counter_id": generate_ulid()}
                )
                with self._lock:
                    self._ids[key] = current.counter_id

            updated = mutation(current)

            changes = updated.model_dump(
                include={"value", "limit_snapshot", "crossed_thresholds", "closed", "window_end"}
            )
            return self.update(current.counter_id, changes, current_version=current.version)

    def find_open_by_tenant(self, tenant_id: str) -> List[UsageCounter]:
        return self.find_where(
            lambda c: c.tenant_id == tenant_id and not c.closed, limit=None, order_by="feature_id"
        )

    def find_ended(self, at: datetime, limit: int = 1000) -> List[UsageCounter]:
        return self.find_where(
            lambda c: not c.closed and c.window_end is not None and c.window_end <= at,
            limit=limit,
            order_by="window_end",
        )

    def find_history(
        self,
        tenant_id: str,
        feature_id: str,
        metric: str,
        window: MeteringWindow,
        limit: int = 12,
    ) -> List[UsageCounter]:
        return self.find_where(
            lambda c: (c.tenant_id, c.feature_id, c.metric, c.window) == (tenant_id, feature_id, metric, window),
            limit=limit,
            order_by="window_start",
            descending=True,
        )
