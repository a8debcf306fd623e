from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from src.core.utils import get_logger
from src.core.utils.clock import Clock, SystemClock
from src.modules.billing.enums.usage_event_kind import UsageEventKind
from src.modules.billing.exceptions import NotEntitledError, QuotaExceededError
from src.modules.billing.models.access import TrackResult, UsageSummary
from src.modules.billing.models.plan import DEFAULT_METRIC
from src.modules.billing.models.usage_alert import UsageAlert, UsageAlertCreate
from src.modules.billing.models.usage_counter import UsageCounter
from src.modules.billing.models.usage_event import UsageEvent
from src.modules.billing.repositories.interfaces import IUsageAlertRepository, IUsageEventRepository
from src.modules.billing.services.entitlement_resolver import FeatureEntitlementResolver
from src.modules.billing.services.usage_counter_store import CounterChange, UsageCounterStore

logger = get_logger(__name__)

ALERT_THRESHOLDS = (80, 95, 100)


def split_entitlement_key(key: str):
    feature_id, _, metric = key.partition(".")
    return feature_id, metric or DEFAULT_METRIC


class UsageMeteringService:
    """
    Tracks usage per tenant, feature and metric against plan limits.

    Each applied change is recorded as a UsageEvent. Crossing an alert
    threshold (percent of the limit) raises exactly one UsageAlert per
    threshold and window.
    """

    def __init__(
        self,
        counter_store: UsageCounterStore,
        resolver: FeatureEntitlementResolver,
        event_repo: IUsageEventRepository,
        alert_repo: IUsageAlertRepository,
        alert_thresholds: Iterable[int] = ALERT_THRESHOLDS,
        clock: Optional[Clock] = None,
    ):
        self.counter_store = counter_store
        self.resolver = resolver
        self.event_repo = event_repo
        self.alert_repo = alert_repo
        self.alert_thresholds = sorted(set(alert_thresholds))
        self.clock = clock or SystemClock()

    def record(
        self,
        tenant_id: str,
        feature_id: str,
        metric: Optional[str] = None,
        amount: int = 1,
        event_kind: UsageEventKind = UsageEventKind.INCREMENT,
        context: Optional[Dict[str, Any]] = None,
        enforce_limit: bool = True,
    ) -> TrackResult:
        """
        Apply a usage change, raising when it is not allowed.

        Raises:
            NotEntitledError: the tenant's plan does not include the feature
            QuotaExceededError: an enforced increment would pass the limit
        """
        metric = metric or DEFAULT_METRIC
        resolution = self.resolver.resolve(tenant_id, feature_id, metric)
        if not resolution.included:
            raise NotEntitledError(tenant_id, feature_id, metric, plan_id=resolution.plan_id)

        change = self.counter_store.apply(
            tenant_id,
            feature_id,
            metric,
            delta=amount,
            event_kind=event_kind,
            limit=resolution.limit,
            window=resolution.window,
            enforce_limit=enforce_limit,
            thresholds=self.alert_thresholds,
        )

        self.event_repo.create({
            "tenant_id": tenant_id,
            "feature_id": feature_id,
            "metric": metric,
            "window_start": change.counter.window_start,
            "kind": event_kind,
            "amount": amount,
            "resulting_value": change.counter.value,
            "context": context or {},
        })
        alerts = self._emit_alerts(change)

        logger.debug(
            "Usage tracked",
            tenant_id=tenant_id,
            feature_id=feature_id,
            metric=metric,
            kind=event_kind.value,
            amount=amount,
            value=change.counter.value,
            limit=resolution.limit,
        )
        return TrackResult(
            success=True,
            current_usage=change.counter.value,
            limit=resolution.limit,
            alerts=alerts,
        )

    def track(
        self,
        tenant_id: str,
        feature_id: str,
        metric: Optional[str] = None,
        amount: int = 1,
        event_kind: UsageEventKind = UsageEventKind.INCREMENT,
        context: Optional[Dict[str, Any]] = None,
        enforce_limit: bool = True,
    ) -> TrackResult:
        """
        Apply a usage change; a rejected change comes back as a falsy result.

        Infrastructure errors still propagate.
        """
        try:
            return self.record(
                tenant_id, feature_id, metric, amount, event_kind, context, enforce_limit
            )
        except NotEntitledError as e:
            logger.info("Usage rejected", reason=e.code, tenant_id=tenant_id, feature_id=feature_id)
            return TrackResult(success=False, reason=e.code, limit=0)
        except QuotaExceededError as e:
            logger.warning(
                "Usage rejected",
                reason=e.code,
                tenant_id=tenant_id,
                feature_id=feature_id,
                metric=metric or DEFAULT_METRIC,
                current_usage=e.current,
                limit=e.limit,
                requested=amount,
            )
            return TrackResult(success=False, reason=e.code, current_usage=e.current, limit=e.limit)

    def _emit_alerts(self, change: CounterChange) -> List[UsageAlert]:
        counter = change.counter
        alerts = []
        for threshold in change.crossed_thresholds:
            alert = self.alert_repo.create(
                UsageAlertCreate.for_threshold(
                    tenant_id=counter.tenant_id,
                    feature_id=counter.feature_id,
                    metric=counter.metric,
                    window_start=counter.window_start,
                    threshold=threshold,
                    current_usage=counter.value,
                    limit_value=change.limit,
                ).model_dump()
            )
            logger.info(
                "Usage alert raised",
                tenant_id=counter.tenant_id,
                feature_id=counter.feature_id,
                threshold=threshold,
                alert_type=alert.alert_type.value,
            )
            alerts.append(alert)
        return alerts

    def can_perform(
        self, tenant_id: str, feature_id: str, metric: Optional[str] = None, amount: int = 1
    ) -> bool:
        """Read-only: would `amount` more usage fit the tenant's limit right now?"""
        resolution = self.resolver.resolve(tenant_id, feature_id, metric)
        if not resolution.included:
            return False
        if resolution.is_unlimited:
            return True
        current = self.get_current_usage(tenant_id, feature_id, metric)
        return current + amount <= resolution.limit

    def get_current_usage(self, tenant_id: str, feature_id: str, metric: Optional[str] = None) -> int:
        resolution = self.resolver.resolve(tenant_id, feature_id, metric)
        counter = self.counter_store.get(
            tenant_id, feature_id, metric or DEFAULT_METRIC, resolution.window
        )
        return counter.value

    def get_usage_summary(self, tenant_id: str) -> Dict[str, UsageSummary]:
        """Usage for every metered entitlement of the tenant's plan, by entitlement key."""
        plan = self.resolver.get_plan(tenant_id)
        summary = {}
        for key, entitlement in plan.entitlements.items():
            feature_id, metric = split_entitlement_key(key)
            window = entitlement.window or self.resolver.default_window
            counter = self.counter_store.get(tenant_id, feature_id, metric, window)
            summary[key] = UsageSummary(
                feature_id=feature_id,
                metric=metric,
                current_usage=counter.value,
                limit=entitlement.limit,
                window=window,
                window_start=counter.window_start,
                window_end=counter.window_end,
            )
        return summary

    def get_usage_history(
        self,
        tenant_id: str,
        feature_id: str,
        metric: Optional[str] = None,
        windows_back: int = 6,
    ) -> List[UsageCounter]:
        resolution = self.resolver.resolve(tenant_id, feature_id, metric)
        return self.counter_store.history(
            tenant_id, feature_id, metric or DEFAULT_METRIC, resolution.window, windows_back
        )

    def get_usage_events(
        self, tenant_id: str, feature_id: Optional[str] = None, limit: int = 100
    ) -> List[UsageEvent]:
        return self.event_repo.find_by_tenant(tenant_id, feature_id, limit)

    def get_pending_alerts(self, tenant_id: Optional[str] = None, limit: int = 100) -> List[UsageAlert]:
        return self.alert_repo.find_pending(tenant_id, limit)

    def mark_alert_delivered(self, alert_id: str) -> Optional[UsageAlert]:
        return self._flag_alert(alert_id, {"is_delivered": True, "delivered_at": self.clock.now()})

    def acknowledge_alert(self, alert_id: str) -> Optional[UsageAlert]:
        return self._flag_alert(alert_id, {"is_acknowledged": True, "acknowledged_at": self.clock.now()})

    def _flag_alert(self, alert_id: str, data: Dict[str, Any]) -> Optional[UsageAlert]:
        alert = self.alert_repo.update(alert_id, data)
        if alert is None:
            logger.warning("Usage alert not found", alert_id=alert_id)
        return alert

    def rollover_windows(self, at: Optional[datetime] = None) -> int:
        return self.counter_store.rollover(at, limit_for=self._current_limit)

    def _current_limit(self, counter: UsageCounter) -> int:
        return self.resolver.resolve(counter.tenant_id, counter.feature_id, counter.metric).limit
