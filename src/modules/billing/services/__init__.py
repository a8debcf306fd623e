from src.modules.billing.services.entitlement_resolver import FeatureEntitlementResolver
from src.modules.billing.services.feature_access_gate import FeatureAccessGate
from src.modules.billing.services.features_catalog_service import FeaturesCatalogService
from src.modules.billing.services.follow_up_dispatcher import FollowUpDispatcher
from src.modules.billing.services.plan_service import PlanCatalogService
from src.modules.billing.services.proration_calculator import ProrationCalculator
from src.modules.billing.services.retention_offer_service import (
    RetentionOfferService,
    RetentionPolicy,
    RetentionTier,
)
from src.modules.billing.services.subscription_lifecycle import SubscriptionLifecycle
from src.modules.billing.services.tenant_directory import SubscriptionTenantDirectory
from src.modules.billing.services.usage_counter_store import UsageCounterStore
from src.modules.billing.services.usage_metering_service import UsageMeteringService

__all__ = [
    "FeatureEntitlementResolver",
    "FeatureAccessGate",
    "FeaturesCatalogService",
    "FollowUpDispatcher",
    "PlanCatalogService",
    "ProrationCalculator",
    "RetentionOfferService",
    "RetentionPolicy",
    "RetentionTier",
    "SubscriptionLifecycle",
    "SubscriptionTenantDirectory",
    "UsageCounterStore",
    "UsageMeteringService",
]
