from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.modules.billing.enums.metering_window import MeteringWindow
from src.modules.billing.models.plan import UNLIMITED
from src.modules.billing.models.usage_alert import UsageAlert

OK = "OK"
NOT_INCLUDED = "not_included"
LIMIT_REACHED = "limit_reached"


@dataclass(frozen=True)
class EntitlementResolution:
    included: bool
    limit: int
    window: MeteringWindow
    plan_id: str

    @property
    def is_unlimited(self) -> bool:
        return self.included and self.limit == UNLIMITED


@dataclass
class AccessDecision:
    allowed: bool
    reason: str
    current_usage: int = 0
    limit: Optional[int] = None
    remaining: Optional[int] = None
    feature_id: Optional[str] = None
    metric: Optional[str] = None
    tenant_id: Optional[str] = None
    plan_id: Optional[str] = None

    @property
    def is_unlimited(self) -> bool:
        return self.limit == UNLIMITED

    @property
    def percentage_used(self) -> float:
        if not self.limit or self.limit <= 0:
            return 0.0
        return round(self.current_usage / self.limit * 100, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "reason": self.reason,
            "current_usage": self.current_usage,
            "limit": self.limit,
            "remaining": self.remaining,
            "percentage_used": self.percentage_used,
            "feature_id": self.feature_id,
            "metric": self.metric,
            "plan_id": self.plan_id,
        }


@dataclass(frozen=True)
class UpgradeSuggestion:
    plan_id: str
    display_name: str
    price_cents: int
    price_delta_cents: int
    new_limit: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "plan_id": self.plan_id,
            "display_name": self.display_name,
            "price_cents": self.price_cents,
            "price_delta_cents": self.price_delta_cents,
            "new_limit": self.new_limit,
        }


@dataclass
class UsageSummary:
    feature_id: str
    metric: str
    current_usage: int
    limit: int
    window: MeteringWindow
    window_start: datetime
    window_end: Optional[datetime]

    @property
    def is_unlimited(self) -> bool:
        return self.limit == UNLIMITED

    @property
    def percentage_used(self) -> float:
        if self.is_unlimited or self.limit <= 0:
            return 0.0
        return round(self.current_usage / self.limit * 100, 2)

    @property
    def remaining(self) -> Optional[int]:
        if self.is_unlimited:
            return None
        return max(0, self.limit - self.current_usage)

    @property
    def is_approaching_limit(self) -> bool:
        return self.percentage_used >= 80.0


@dataclass
class TrackResult:
    """Outcome of a tracked usage change; truthy when it was applied."""
    success: bool
    reason: str = "OK"
    current_usage: int = 0
    limit: Optional[int] = None
    alerts: List[UsageAlert] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.success
