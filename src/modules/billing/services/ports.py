from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from src.modules.billing.models.lifecycle import SideEffectIntent
from src.modules.billing.models.plan import Plan
from src.modules.billing.models.subscription import Subscription


class IPlanCatalog(ABC):
    """
    Read side of the plan catalog consumed by entitlement resolution and
    the subscription lifecycle.
    """

    @abstractmethod
    def get_plan(self, plan_id: str) -> Plan:
        """Plan by id; raises PlanNotFoundError."""
        pass

    @abstractmethod
    def get_active_plans(self) -> List[Plan]:
        """Active plans ordered by price ascending."""
        pass

    @abstractmethod
    def get_default_plan(self) -> Plan:
        """Plan applied to tenants without a live subscription."""
        pass


class ITenantDirectory(ABC):
    """Maps a tenant to the subscription that currently governs it."""

    @abstractmethod
    def find_live_subscription(self, tenant_id: str) -> Optional[Subscription]:
        pass

    @abstractmethod
    def effective_plan_id(self, tenant_id: str) -> Optional[str]:
        """
        Plan whose entitlements apply right now, or None when the tenant
        should fall back to the default plan.
        """
        pass


class IFollowUpDispatcher(ABC):
    """
    Receives side-effect intents after a transition has been committed.

    Implementations hand the work to payment, credit and notification
    collaborators; they must not block the caller on third-party I/O.
    """

    @abstractmethod
    def dispatch(self, intents: Sequence[SideEffectIntent]) -> None:
        pass
