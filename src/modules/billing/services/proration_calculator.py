from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from src.core.utils.clock import Clock, SystemClock
from src.modules.billing.enums.plan_change_direction import PlanChangeDirection
from src.modules.billing.enums.proration_mode import ProrationMode
from src.modules.billing.models.plan import Plan
from src.modules.billing.models.proration import ProrationPolicy, ProrationResult
from src.modules.billing.models.subscription import Subscription

SECONDS_PER_DAY = Decimal(86400)


def _cents(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def change_direction(current_plan: Plan, new_plan: Plan) -> PlanChangeDirection:
    if new_plan.price_cents > current_plan.price_cents:
        return PlanChangeDirection.UPGRADE
    if new_plan.price_cents < current_plan.price_cents:
        return PlanChangeDirection.DOWNGRADE
    return PlanChangeDirection.LATERAL


class ProrationCalculator:
    """
    Computes the money movement of a plan change. Pure: never touches storage.

    Unused time is measured in seconds between `at` and the period end and
    credited as `old_price * remaining / total`, rounded half-up to cents.
    """

    def __init__(self, policy: Optional[ProrationPolicy] = None, clock: Optional[Clock] = None):
        self.policy = policy or ProrationPolicy()
        self.clock = clock or SystemClock()

    def calculate(
        self,
        subscription: Subscription,
        current_plan: Plan,
        new_plan: Plan,
        at: Optional[datetime] = None,
        mode: Optional[ProrationMode] = None,
    ) -> ProrationResult:
        at = at or self.clock.now()
        direction = change_direction(current_plan, new_plan)
        mode = mode or self.policy.mode_for(direction)

        period_start = subscription.current_period_start
        period_end = subscription.current_period_end
        total = Decimal(max(0, int((period_end - period_start).total_seconds())))
        remaining = Decimal(max(0, int((period_end - at).total_seconds())))
        remaining = min(remaining, total)
        fraction = remaining / total if total else Decimal(0)

        remaining_days = float(round(remaining / SECONDS_PER_DAY, 4))
        total_days = float(round(total / SECONDS_PER_DAY, 4))

        if mode == ProrationMode.NEXT_RENEWAL:
            return ProrationResult(
                credit_for_unused_time_cents=0,
                charge_for_new_plan_cents=0,
                net_amount_cents=0,
                effective_date=period_end,
                direction=direction,
                mode=mode,
                remaining_days=remaining_days,
                total_days=total_days,
                new_period_start=period_end,
                new_period_end=new_plan.billing_period.advance(period_end),
            )

        credit = _cents(Decimal(current_plan.price_cents) * fraction)

        if mode == ProrationMode.IMMEDIATE_FULL:
            charge = new_plan.price_cents
            new_period_start = at
            new_period_end = new_plan.billing_period.advance(at)
        else:
            charge = _cents(Decimal(new_plan.price_cents) * fraction)
            new_period_start = period_start
            new_period_end = period_end

        return ProrationResult(
            credit_for_unused_time_cents=credit,
            charge_for_new_plan_cents=charge,
            net_amount_cents=charge - credit,
            effective_date=at,
            direction=direction,
            mode=mode,
            remaining_days=remaining_days,
            total_days=total_days,
            new_period_start=new_period_start,
            new_period_end=new_period_end,
        )
