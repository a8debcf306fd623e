from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from src.modules.billing.enums.plan_change_direction import PlanChangeDirection
from src.modules.billing.enums.proration_mode import ProrationMode


@dataclass(frozen=True)
class ProrationPolicy:
    upgrade_mode: ProrationMode = ProrationMode.IMMEDIATE_FULL
    downgrade_mode: ProrationMode = ProrationMode.NEXT_RENEWAL

    def mode_for(self, direction: PlanChangeDirection) -> ProrationMode:
        if direction == PlanChangeDirection.DOWNGRADE:
            return self.downgrade_mode
        return self.upgrade_mode


@dataclass(frozen=True)
class ProrationResult:
    """Money movement for a plan change. Amounts are in cents."""
    credit_for_unused_time_cents: int
    charge_for_new_plan_cents: int
    net_amount_cents: int
    effective_date: datetime
    direction: PlanChangeDirection
    mode: ProrationMode
    remaining_days: float
    total_days: float
    new_period_start: Optional[datetime] = None
    new_period_end: Optional[datetime] = None

    @property
    def is_immediate(self) -> bool:
        return self.mode != ProrationMode.NEXT_RENEWAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "credit_for_unused_time_cents": self.credit_for_unused_time_cents,
            "charge_for_new_plan_cents": self.charge_for_new_plan_cents,
            "net_amount_cents": self.net_amount_cents,
            "effective_date": self.effective_date.isoformat(),
            "direction": self.direction.value,
            "mode": self.mode.value,
            "remaining_days": self.remaining_days,
            "total_days": self.total_days,
        }
