from typing import Any, Dict, Optional

from src.core.utils import get_logger
from src.modules.billing.enums.usage_event_kind import UsageEventKind
from src.modules.billing.exceptions import NotEntitledError, QuotaExceededError
from src.modules.billing.models.access import (
    LIMIT_REACHED,
    NOT_INCLUDED,
    OK,
    AccessDecision,
    TrackResult,
    UpgradeSuggestion,
)
from src.modules.billing.models.plan import DEFAULT_METRIC
from src.modules.billing.services.entitlement_resolver import FeatureEntitlementResolver
from src.modules.billing.services.features_catalog_service import FeaturesCatalogService
from src.modules.billing.services.ports import IPlanCatalog
from src.modules.billing.services.usage_metering_service import UsageMeteringService

logger = get_logger(__name__)


class FeatureAccessGate:
    """
    Entry point for "may this tenant do X?".

    `check_access` only reads; usage is recorded separately and explicitly
    through `record_usage`.
    """

    def __init__(
        self,
        resolver: FeatureEntitlementResolver,
        metering: UsageMeteringService,
        plan_catalog: IPlanCatalog,
        features_catalog: Optional[FeaturesCatalogService] = None,
    ):
        self.resolver = resolver
        self.metering = metering
        self.plan_catalog = plan_catalog
        self.features_catalog = features_catalog

    def check_access(
        self,
        tenant_id: str,
        feature_id: str,
        quantity: int = 1,
        metric: Optional[str] = None,
    ) -> AccessDecision:
        resolution = self.resolver.resolve(tenant_id, feature_id, metric)
        base = {
            "feature_id": feature_id,
            "metric": metric or DEFAULT_METRIC,
            "tenant_id": tenant_id,
            "plan_id": resolution.plan_id,
        }

        if not resolution.included:
            return AccessDecision(
                allowed=False, reason=NOT_INCLUDED, limit=0, remaining=0, **base
            )

        current = self.metering.get_current_usage(tenant_id, feature_id, metric)

        if resolution.is_unlimited:
            return AccessDecision(
                allowed=True, reason=OK, current_usage=current, limit=resolution.limit, **base
            )

        remaining = max(0, resolution.limit - current)
        if current + quantity <= resolution.limit:
            return AccessDecision(
                allowed=True,
                reason=OK,
                current_usage=current,
                limit=resolution.limit,
                remaining=remaining,
                **base,
            )

        return AccessDecision(
            allowed=False,
            reason=LIMIT_REACHED,
            current_usage=current,
            limit=resolution.limit,
            remaining=remaining,
            **base,
        )

    def require_access(
        self,
        tenant_id: str,
        feature_id: str,
        quantity: int = 1,
        metric: Optional[str] = None,
    ) -> AccessDecision:
        """Like `check_access`, but raises NotEntitledError / QuotaExceededError on deny."""
        decision = self.check_access(tenant_id, feature_id, quantity, metric)
        if decision.allowed:
            return decision
        if decision.reason == NOT_INCLUDED:
            raise NotEntitledError(tenant_id, feature_id, decision.metric, plan_id=decision.plan_id)
        raise QuotaExceededError(
            f"Quota exceeded for {feature_id}",
            current=decision.current_usage,
            limit=decision.limit,
            required=quantity,
            tenant_id=tenant_id,
            feature_id=feature_id,
            metric=decision.metric,
        )

    def record_usage(
        self,
        tenant_id: str,
        feature_id: str,
        quantity: int = 1,
        metric: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> TrackResult:
        """
        Record usage, enforcing the limit atomically.

        Raises:
            NotEntitledError: feature not in the tenant's plan
            QuotaExceededError: the increment would pass the limit
        """
        return self.metering.record(
            tenant_id,
            feature_id,
            metric,
            amount=quantity,
            event_kind=UsageEventKind.INCREMENT,
            context=context,
            enforce_limit=True,
        )

    def release_usage(
        self,
        tenant_id: str,
        feature_id: str,
        quantity: int = 1,
        metric: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> TrackResult:
        """Give usage back, e.g. when a counted resource is deleted. Clamps at zero."""
        return self.metering.record(
            tenant_id,
            feature_id,
            metric,
            amount=quantity,
            event_kind=UsageEventKind.DECREMENT,
            context=context,
            enforce_limit=False,
        )

    def get_upgrade_path(
        self,
        tenant_id: str,
        feature_id: str,
        quantity: int = 1,
        metric: Optional[str] = None,
    ) -> Optional[UpgradeSuggestion]:
        """Cheapest active plan priced above the current one that would fit `current + quantity`."""
        current_plan = self.resolver.get_plan(tenant_id)
        current_usage = self.metering.get_current_usage(tenant_id, feature_id, metric)
        needed = current_usage + quantity

        for plan in self.plan_catalog.get_active_plans():
            if plan.price_cents <= current_plan.price_cents:
                continue
            entitlement = plan.entitlements.lookup(feature_id, metric)
            if entitlement is None or not entitlement.allows(current_usage, quantity):
                continue
            return UpgradeSuggestion(
                plan_id=plan.plan_id,
                display_name=plan.display_name,
                price_cents=plan.price_cents,
                price_delta_cents=plan.price_cents - current_plan.price_cents,
                new_limit=entitlement.limit,
            )

        logger.info(
            "No upgrade path available",
            tenant_id=tenant_id,
            feature_id=feature_id,
            current_plan=current_plan.plan_id,
            needed=needed,
        )
        return None

    def get_tenant_features(self, tenant_id: str) -> Dict[str, AccessDecision]:
        """
        Access overview per feature: every feature of the catalog (when one
        is configured) plus every feature the tenant's plan mentions.
        """
        plan = self.resolver.get_plan(tenant_id)
        feature_ids = set(plan.entitlements.feature_ids())
        if self.features_catalog:
            feature_ids.update(f.feature_id for f in self.features_catalog.get_all_features())

        return {
            feature_id: self.check_access(tenant_id, feature_id, quantity=0)
            for feature_id in sorted(feature_ids)
        }
