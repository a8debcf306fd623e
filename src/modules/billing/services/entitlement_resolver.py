import threading
from typing import Optional

from cachetools import TTLCache

from src.core.utils import get_logger
from src.core.utils.clock import Clock, SystemClock
from src.modules.billing.enums.metering_window import MeteringWindow
from src.modules.billing.models.access import EntitlementResolution
from src.modules.billing.models.plan import Plan
from src.modules.billing.services.features_catalog_service import FeaturesCatalogService
from src.modules.billing.services.ports import IPlanCatalog, ITenantDirectory

logger = get_logger(__name__)


class FeatureEntitlementResolver:
    """
    Resolves what a tenant's current plan grants for a feature.

    The governing plan per tenant is cached for `cache_ttl_seconds`. The
    subscription lifecycle calls `invalidate` after every committed
    transition, so in-process readers see plan changes immediately; other
    processes see them once their entry expires.
    """

    def __init__(
        self,
        plan_catalog: IPlanCatalog,
        tenant_directory: ITenantDirectory,
        default_plan_id: str = "free",
        cache_ttl_seconds: int = 5,
        cache_max_size: int = 10000,
        default_window: MeteringWindow = MeteringWindow.MONTHLY,
        clock: Optional[Clock] = None,
        features_catalog: Optional[FeaturesCatalogService] = None,
    ):
        self.plan_catalog = plan_catalog
        self.tenant_directory = tenant_directory
        self.default_plan_id = default_plan_id
        self.default_window = MeteringWindow(default_window)
        self.clock = clock or SystemClock()
        self.features_catalog = features_catalog
        self._cache = TTLCache(
            maxsize=cache_max_size,
            ttl=cache_ttl_seconds,
            timer=lambda: self.clock.now().timestamp(),
        )
        self._cache_lock = threading.Lock()

    def get_plan(self, tenant_id: str) -> Plan:
        """Plan currently governing the tenant (default plan when none)."""
        with self._cache_lock:
            cached = self._cache.get(tenant_id)
        if cached is not None:
            return cached

        plan_id = self.tenant_directory.effective_plan_id(tenant_id) or self.default_plan_id
        plan = self.plan_catalog.get_plan(plan_id)

        with self._cache_lock:
            self._cache[tenant_id] = plan
        return plan

    def resolve(
        self, tenant_id: str, feature_id: str, metric: Optional[str] = None
    ) -> EntitlementResolution:
        plan = self.get_plan(tenant_id)
        entitlement = plan.entitlements.lookup(feature_id, metric)

        if entitlement is None:
            if self.features_catalog and self.features_catalog.find_feature(feature_id) is None:
                logger.warning("Unknown feature requested", tenant_id=tenant_id, feature_id=feature_id)
            return EntitlementResolution(
                included=False, limit=0, window=self.default_window, plan_id=plan.plan_id
            )

        return EntitlementResolution(
            included=True,
            limit=entitlement.limit,
            window=entitlement.window or self.default_window,
            plan_id=plan.plan_id,
        )

    def invalidate(self, tenant_id: str) -> None:
        with self._cache_lock:
            self._cache.pop(tenant_id, None)

    def clear(self) -> None:
        with self._cache_lock:
            self._cache.clear()
