from datetime import timedelta

import pytest

from src.modules.billing.enums.metering_window import MeteringWindow
from src.modules.billing.enums.subscription_status import SubscriptionStatus
from src.modules.billing.exceptions import PlanNotFoundError
from src.modules.billing.models.plan import UNLIMITED
from src.modules.billing.services.entitlement_resolver import FeatureEntitlementResolver

TENANT = "tenant_acme"


def subscribe(repos, clock, plan_id, status=SubscriptionStatus.ACTIVE, tenant_id=TENANT):
    now = clock.now()
    return repos.subscriptions.create_live({
        "tenant_id": tenant_id,
        "plan_id": plan_id,
        "status": status,
        "current_period_start": now,
        "current_period_end": now + timedelta(days=30),
    })


class TestResolve:
    def test_tenant_without_subscription_gets_default_plan(self, resolver):
        resolution = resolver.resolve(TENANT, "projects")

        assert resolution.included
        assert resolution.limit == 3
        assert resolution.plan_id == "free"
        assert resolution.window == MeteringWindow.MONTHLY

    def test_feature_not_in_plan(self, resolver):
        resolution = resolver.resolve(TENANT, "sso")

        assert not resolution.included
        assert resolution.limit == 0

    def test_boolean_shorthand_is_unlimited(self, resolver, repos, clock):
        subscribe(repos, clock, "business")

        resolution = resolver.resolve(TENANT, "sso")

        assert resolution.included
        assert resolution.limit == UNLIMITED
        assert resolution.is_unlimited

    def test_metric_specific_entitlement(self, resolver, repos, clock):
        subscribe(repos, clock, "pro")

        tokens = resolver.resolve(TENANT, "api_calls", "tokens")
        requests = resolver.resolve(TENANT, "api_calls", "requests")

        assert (tokens.limit, tokens.window) == (500, MeteringWindow.DAILY)
        # Falls back to the feature-level entitlement
        assert (requests.limit, requests.window) == (10000, MeteringWindow.MONTHLY)

    def test_paused_subscription_falls_back_to_default(self, resolver, repos, clock):
        subscribe(repos, clock, "business", status=SubscriptionStatus.PAUSED)

        assert resolver.get_plan(TENANT).plan_id == "free"

    def test_missing_default_plan(self, plan_catalog, tenant_directory, clock, plans):
        resolver = FeatureEntitlementResolver(
            plan_catalog, tenant_directory, default_plan_id="legacy", clock=clock
        )

        with pytest.raises(PlanNotFoundError):
            resolver.get_plan(TENANT)

    def test_configured_default_window(self, plan_catalog, tenant_directory, clock, plans):
        resolver = FeatureEntitlementResolver(
            plan_catalog, tenant_directory, default_window=MeteringWindow.WEEKLY, clock=clock
        )

        assert resolver.resolve(TENANT, "projects").window == MeteringWindow.WEEKLY


class TestCache:
    def test_cached_plan_served_until_ttl(self, resolver, repos, clock):
        assert resolver.get_plan(TENANT).plan_id == "free"
        subscribe(repos, clock, "business")

        assert resolver.get_plan(TENANT).plan_id == "free"

        clock.advance(seconds=61)
        assert resolver.get_plan(TENANT).plan_id == "business"

    def test_invalidate(self, resolver, repos, clock):
        resolver.get_plan(TENANT)
        subscribe(repos, clock, "business")

        resolver.invalidate(TENANT)

        assert resolver.get_plan(TENANT).plan_id == "business"

    def test_clear(self, resolver, repos, clock):
        resolver.get_plan(TENANT)
        resolver.get_plan("tenant_other")
        subscribe(repos, clock, "starter")
        subscribe(repos, clock, "pro", tenant_id="tenant_other")

        resolver.clear()

        assert resolver.get_plan(TENANT).plan_id == "starter"
        assert resolver.get_plan("tenant_other").plan_id == "pro"
