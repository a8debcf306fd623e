import pytest
from unittest.mock import MagicMock
from dependency_injector import containers, providers

from src.core.di.container import Container
from src.modules.billing.models.plan import PlanCreate
from src.modules.billing.repositories.impl.memory.subscription_repository import MemorySubscriptionRepository
from src.modules.billing.repositories.impl.postgres.subscription_repository import PostgresSubscriptionRepository

class TestContainer:
    @pytest.fixture
    def container(self, clock):
        # Save original wiring config
        original_config = Container.wiring_config
        # Disable wiring for test instance to prevent global side effects
        Container.wiring_config = containers.WiringConfiguration(modules=[])

        try:
            container = Container()
            container.core.db_backend.override(providers.Object("memory"))
            container.core.clock.override(providers.Object(clock))
            # Never open a real pool
            container.core.postgres_db.override(MagicMock())
            yield container
        finally:
            container.billing.follow_up_dispatcher().shutdown(wait=False)
            Container.wiring_config = original_config

    def test_service_resolution(self, container):
        assert container.billing.subscription_lifecycle() is not None
        assert container.billing.feature_access_gate() is not None
        assert container.billing.retention_offer_service() is not None

    def test_repository_selector(self, container):
        assert isinstance(container.billing.subscription_repository(), MemorySubscriptionRepository)

        container.core.db_backend.override(providers.Object("postgres"))
        assert isinstance(container.billing.subscription_repository(), PostgresSubscriptionRepository)

    def test_memory_repositories_are_shared(self, container):
        assert container.billing.plan_repository() is container.billing.plan_repository()

    def test_lifecycle_invalidates_gate_cache(self, container):
        plans = container.billing.plan_service()
        plans.create_plan(PlanCreate(plan_id="free", name="free", display_name="Free", entitlements={"projects": 1}))
        plans.create_plan(PlanCreate(
            plan_id="pro", name="pro", display_name="Pro", price_cents=2000, entitlements={"projects": 10}
        ))
        gate = container.billing.feature_access_gate()
        lifecycle = container.billing.subscription_lifecycle()

        assert gate.check_access("tenant_acme", "projects").limit == 1

        lifecycle.start("tenant_acme", "pro")

        assert gate.resolver is lifecycle.resolver
        assert gate.check_access("tenant_acme", "projects").limit == 10
