from datetime import datetime
from typing import List, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.modules.billing.enums.metering_window import MeteringWindow
from src.modules.billing.models.plan import UNLIMITED


class CounterKey(NamedTuple):
    tenant_id: str
    feature_id: str
    metric: str
    window: MeteringWindow
    window_start: datetime


class UsageCounter(BaseModel):
    """
    Usage accumulated by one tenant for one feature metric in one window.

    A counter that was never written reads as value 0 with no counter_id.
    """
    counter_id: Optional[str] = None
    tenant_id: str
    feature_id: str
    metric: str
    window: MeteringWindow
    window_start: datetime
    window_end: Optional[datetime] = None
    value: int = Field(0, ge=0)
    limit_snapshot: int = 0
    crossed_thresholds: List[int] = Field(default_factory=list)
    closed: bool = False
    version: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def key(self) -> CounterKey:
        return CounterKey(
            self.tenant_id, self.feature_id, self.metric, self.window, self.window_start
        )

    @property
    def is_unlimited(self) -> bool:
        return self.limit_snapshot == UNLIMITED

    @property
    def percentage_used(self) -> float:
        if self.is_unlimited or self.limit_snapshot <= 0:
            return 0.0
        return round(self.value / self.limit_snapshot * 100, 2)

    @property
    def remaining(self) -> Optional[int]:
        """None when unlimited."""
        if self.is_unlimited:
            return None
        return max(0, self.limit_snapshot - self.value)

    def __repr__(self) -> str:
        return (
            f"UsageCounter(tenant={self.tenant_id}, key={self.feature_id}.{self.metric}, "
            f"window={self.window.value}@{self.window_start.isoformat()}, value={self.value})"
        )
