from typing import List, Optional

from src.core.utils import get_logger
from src.core.utils.clock import Clock, SystemClock
from src.modules.billing.exceptions import PlanInUseError, PlanNotFoundError
from src.modules.billing.models.plan import Entitlement, EntitlementTable, Plan, PlanCreate, PlanUpdate
from src.modules.billing.repositories.interfaces import IPlanRepository, ISubscriptionRepository
from src.modules.billing.services.ports import IPlanCatalog

logger = get_logger(__name__)


class PlanCatalogService(IPlanCatalog):
    """Manages subscription plans and their entitlement tables."""

    def __init__(
        self,
        plan_repo: IPlanRepository,
        subscription_repo: ISubscriptionRepository,
        default_plan_id: str = "free",
        clock: Optional[Clock] = None,
    ):
        self.plan_repo = plan_repo
        self.subscription_repo = subscription_repo
        self.default_plan_id = default_plan_id
        self.clock = clock or SystemClock()

    def create_plan(self, plan_data: PlanCreate) -> Plan:
        data = plan_data.model_dump(exclude_none=True)
        plan = self.plan_repo.create(data)
        logger.info(
            "Plan created",
            plan_id=plan.plan_id,
            price_cents=plan.price_cents,
            entitlements=len(plan.entitlements),
        )
        return plan

    def find_plan(self, plan_id: str) -> Optional[Plan]:
        return self.plan_repo.find_by_id(plan_id)

    def get_plan(self, plan_id: str) -> Plan:
        plan = self.plan_repo.find_by_id(plan_id)
        if not plan:
            raise PlanNotFoundError(f"Plan {plan_id} not found", plan_id=plan_id)
        return plan

    def get_active_plans(self) -> List[Plan]:
        return self.plan_repo.find_active()

    def get_default_plan(self) -> Plan:
        return self.get_plan(self.default_plan_id)

    def update_plan(self, plan_id: str, changes: PlanUpdate) -> Plan:
        """
        Update plan attributes.

        Raises:
            PlanInUseError: when entitlements change while a live subscription
                references the plan (plans are immutable for their subscribers)
        """
        plan = self.get_plan(plan_id)
        data = changes.model_dump(exclude_unset=True, exclude_none=True)
        data.pop("entitlements", None)

        if changes.entitlements is not None and changes.entitlements != plan.entitlements:
            in_use = self.subscription_repo.count_live_by_plan(plan_id)
            if in_use:
                logger.warning(
                    "Rejected entitlement edit on plan in use",
                    plan_id=plan_id,
                    live_subscriptions=in_use,
                )
                raise PlanInUseError(
                    f"Plan {plan_id} has {in_use} live subscriptions; publish a new plan instead",
                    plan_id=plan_id,
                    live_subscriptions=in_use,
                )
            data["entitlements"] = changes.entitlements

        data["updated_at"] = self.clock.now()
        return self.plan_repo.update(plan_id, data)

    def set_entitlement(self, plan_id: str, key: str, entitlement: Entitlement) -> Plan:
        plan = self.get_plan(plan_id)
        table = EntitlementTable({**plan.entitlements.root, key: entitlement})
        return self.update_plan(plan_id, PlanUpdate(entitlements=table))
