from abc import abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from src.core.database.interface import IRepository
from src.modules.billing.enums.metering_window import MeteringWindow
from src.modules.billing.models.feature import Feature
from src.modules.billing.models.plan import Plan
from src.modules.billing.models.retention_offer import RetentionOffer
from src.modules.billing.models.subscription import Subscription
from src.modules.billing.models.subscription_event import SubscriptionEvent
from src.modules.billing.models.usage_alert import UsageAlert
from src.modules.billing.models.usage_counter import CounterKey, UsageCounter
from src.modules.billing.models.usage_event import UsageEvent

CounterMutation = Callable[[UsageCounter], UsageCounter]


class IFeatureRepository(IRepository[Feature]):
    @abstractmethod
    def find_all(self) -> List[Feature]:
        pass

    @abstractmethod
    def find_by_category(self, category: str) -> List[Feature]:
        pass


class IPlanRepository(IRepository[Plan]):
    @abstractmethod
    def find_by_name(self, name: str) -> Optional[Plan]:
        pass

    @abstractmethod
    def find_active(self) -> List[Plan]:
        """Active plans ordered by price ascending."""
        pass


class ISubscriptionRepository(IRepository[Subscription]):
    @abstractmethod
    def create_live(self, data: Dict[str, Any]) -> Subscription:
        """
        Create a subscription, refusing when the tenant already has a
        non-terminal one (raises DuplicateError).
        """
        pass

    @abstractmethod
    def find_live_by_tenant(self, tenant_id: str) -> Optional[Subscription]:
        pass

    @abstractmethod
    def find_by_tenant(self, tenant_id: str) -> List[Subscription]:
        """Whole subscription history of a tenant, newest first."""
        pass

    @abstractmethod
    def find_due(self, now: datetime, limit: int = 100) -> List[Subscription]:
        """
        Subscriptions with a time-driven transition due: trials ended,
        periods ended, grace periods elapsed.
        """
        pass

    @abstractmethod
    def count_live_by_plan(self, plan_id: str) -> int:
        pass


class ISubscriptionEventRepository(IRepository[SubscriptionEvent]):
    @abstractmethod
    def find_by_subscription(self, subscription_id: str) -> List[SubscriptionEvent]:
        pass


class IUsageCounterRepository(IRepository[UsageCounter]):
    @abstractmethod
    def find_by_key(self, key: CounterKey) -> Optional[UsageCounter]:
        pass

    @abstractmethod
    def mutate(self, seed: UsageCounter, mutation: CounterMutation) -> UsageCounter:
        """
        Atomically read-modify-write the counter identified by `seed.key`.

        The stored counter (or `seed` when none exists yet) is passed to
        `mutation`; whatever it returns is persisted with a bumped version.
        Exceptions raised by `mutation` abort the write. Calls for the same
        key are serialized.
        """
        pass

    @abstractmethod
    def find_open_by_tenant(self, tenant_id: str) -> List[UsageCounter]:
        pass

    @abstractmethod
    def find_ended(self, at: datetime, limit: int = 1000) -> List[UsageCounter]:
        """Open counters whose window ended at or before `at`."""
        pass

    @abstractmethod
    def find_history(
        self,
        tenant_id: str,
        feature_id: str,
        metric: str,
        window: MeteringWindow,
        limit: int = 12,
    ) -> List[UsageCounter]:
        """Counters for one key across windows, newest window first."""
        pass


class IUsageEventRepository(IRepository[UsageEvent]):
    @abstractmethod
    def find_by_tenant(
        self, tenant_id: str, feature_id: Optional[str] = None, limit: int = 100
    ) -> List[UsageEvent]:
        pass


class IUsageAlertRepository(IRepository[UsageAlert]):
    @abstractmethod
    def find_pending(self, tenant_id: Optional[str] = None, limit: int = 100) -> List[UsageAlert]:
        """Alerts not delivered yet, oldest first."""
        pass

    @abstractmethod
    def find_by_tenant(self, tenant_id: str, limit: int = 100) -> List[UsageAlert]:
        pass


class IRetentionOfferRepository(IRepository[RetentionOffer]):
    @abstractmethod
    def create_once(self, data: Dict[str, Any]) -> RetentionOffer:
        """
        Create the offer for `(subscription_id, cancellation_seq)` or return
        the one that already exists for that pair.
        """
        pass

    @abstractmethod
    def find_by_subscription(self, subscription_id: str) -> List[RetentionOffer]:
        pass

    @abstractmethod
    def consume(self, offer_id: str, at: datetime) -> Optional[RetentionOffer]:
        """
        Mark an offer accepted if it is neither accepted nor expired.
        Returns None when another caller got there first.
        """
        pass

    @abstractmethod
    def release(self, offer_id: str, accepted_at: datetime) -> Optional[RetentionOffer]:
        """
        Undo `consume` when the redemption it started did not commit.
        Only clears the acceptance stamped at `accepted_at`.
        """
        pass

    @abstractmethod
    def find_stale(self, now: datetime, limit: int = 100) -> List[RetentionOffer]:
        """Offers still open whose validity window has elapsed."""
        pass
