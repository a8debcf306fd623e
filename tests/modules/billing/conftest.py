from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from src.modules.billing.enums.billing_period import BillingPeriod
from src.modules.billing.models.plan import PlanCreate
from src.modules.billing.repositories.impl.memory.feature_repository import MemoryFeatureRepository
from src.modules.billing.repositories.impl.memory.plan_repository import MemoryPlanRepository
from src.modules.billing.repositories.impl.memory.retention_offer_repository import MemoryRetentionOfferRepository
from src.modules.billing.repositories.impl.memory.subscription_event_repository import MemorySubscriptionEventRepository
from src.modules.billing.repositories.impl.memory.subscription_repository import MemorySubscriptionRepository
from src.modules.billing.repositories.impl.memory.usage_alert_repository import MemoryUsageAlertRepository
from src.modules.billing.repositories.impl.memory.usage_counter_repository import MemoryUsageCounterRepository
from src.modules.billing.repositories.impl.memory.usage_event_repository import MemoryUsageEventRepository
from src.modules.billing.services.entitlement_resolver import FeatureEntitlementResolver
from src.modules.billing.services.feature_access_gate import FeatureAccessGate
from src.modules.billing.services.features_catalog_service import FeaturesCatalogService
from src.modules.billing.services.plan_service import PlanCatalogService
from src.modules.billing.services.ports import IFollowUpDispatcher
from src.modules.billing.services.proration_calculator import ProrationCalculator
from src.modules.billing.services.retention_offer_service import RetentionOfferService
from src.modules.billing.services.subscription_lifecycle import SubscriptionLifecycle
from src.modules.billing.services.tenant_directory import SubscriptionTenantDirectory
from src.modules.billing.services.usage_counter_store import UsageCounterStore
from src.modules.billing.services.usage_metering_service import UsageMeteringService

TENANT = "tenant_acme"

PLAN_FIXTURES = [
    PlanCreate(
        plan_id="free",
        name="free",
        display_name="Free",
        price_cents=0,
        entitlements={"projects": 3, "api_calls": 100},
    ),
    PlanCreate(
        plan_id="starter",
        name="starter",
        display_name="Starter",
        price_cents=1000,
        entitlements={"projects": 10, "api_calls": 1000},
    ),
    PlanCreate(
        plan_id="pro",
        name="pro",
        display_name="Pro",
        price_cents=2000,
        trial_days=14,
        entitlements={
            "projects": 50,
            "api_calls": 10000,
            "api_calls.tokens": {"limit": 500, "window": "daily"},
            "sso": True,
        },
    ),
    PlanCreate(
        plan_id="business",
        name="business",
        display_name="Business",
        price_cents=5000,
        billing_period=BillingPeriod.MONTHLY,
        entitlements={"projects": True, "api_calls": -1, "sso": True, "audit_log": True},
    ),
]


@pytest.fixture
def repos(clock):
    return SimpleNamespace(
        features=MemoryFeatureRepository(clock=clock),
        plans=MemoryPlanRepository(clock=clock),
        subscriptions=MemorySubscriptionRepository(clock=clock),
        events=MemorySubscriptionEventRepository(clock=clock),
        counters=MemoryUsageCounterRepository(clock=clock),
        usage_events=MemoryUsageEventRepository(clock=clock),
        alerts=MemoryUsageAlertRepository(clock=clock),
        offers=MemoryRetentionOfferRepository(clock=clock),
    )


@pytest.fixture
def plan_catalog(repos, clock):
    return PlanCatalogService(repos.plans, repos.subscriptions, clock=clock)


@pytest.fixture
def plans(plan_catalog):
    return {p.plan_id: plan_catalog.create_plan(p) for p in PLAN_FIXTURES}


@pytest.fixture
def features_catalog(repos):
    return FeaturesCatalogService(repos.features)


@pytest.fixture
def tenant_directory(repos, clock):
    return SubscriptionTenantDirectory(repos.subscriptions, clock=clock)


@pytest.fixture
def resolver(plan_catalog, tenant_directory, clock, plans):
    return FeatureEntitlementResolver(
        plan_catalog, tenant_directory, cache_ttl_seconds=60, clock=clock
    )


@pytest.fixture
def counter_store(repos, clock):
    return UsageCounterStore(repos.counters, clock=clock)


@pytest.fixture
def metering(counter_store, resolver, repos, clock):
    return UsageMeteringService(
        counter_store, resolver, repos.usage_events, repos.alerts, clock=clock
    )


@pytest.fixture
def gate(resolver, metering, plan_catalog):
    return FeatureAccessGate(resolver, metering, plan_catalog)


@pytest.fixture
def dispatcher():
    return MagicMock(spec=IFollowUpDispatcher)


@pytest.fixture
def retention(repos, plan_catalog, clock):
    return RetentionOfferService(repos.offers, plan_catalog, clock=clock)


@pytest.fixture
def lifecycle(repos, plan_catalog, resolver, retention, dispatcher, clock):
    return SubscriptionLifecycle(
        subscription_repo=repos.subscriptions,
        event_repo=repos.events,
        plan_catalog=plan_catalog,
        resolver=resolver,
        proration_calculator=ProrationCalculator(clock=clock),
        retention_service=retention,
        dispatcher=dispatcher,
        clock=clock,
    )
