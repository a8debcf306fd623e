from dependency_injector import containers, providers

from src.core.config.settings import settings
from src.modules.billing.enums.metering_window import MeteringWindow
from src.modules.billing.enums.proration_mode import ProrationMode
from src.modules.billing.models.proration import ProrationPolicy

from src.modules.billing.repositories.impl.memory.feature_repository import MemoryFeatureRepository
from src.modules.billing.repositories.impl.memory.plan_repository import MemoryPlanRepository
from src.modules.billing.repositories.impl.memory.retention_offer_repository import MemoryRetentionOfferRepository
from src.modules.billing.repositories.impl.memory.subscription_event_repository import MemorySubscriptionEventRepository
from src.modules.billing.repositories.impl.memory.subscription_repository import MemorySubscriptionRepository
from src.modules.billing.repositories.impl.memory.usage_alert_repository import MemoryUsageAlertRepository
from src.modules.billing.repositories.impl.memory.usage_counter_repository import MemoryUsageCounterRepository
from src.modules.billing.repositories.impl.memory.usage_event_repository import MemoryUsageEventRepository

from src.modules.billing.repositories.impl.postgres.feature_repository import PostgresFeatureRepository
from src.modules.billing.repositories.impl.postgres.plan_repository import PostgresPlanRepository
from src.modules.billing.repositories.impl.postgres.retention_offer_repository import PostgresRetentionOfferRepository
from src.modules.billing.repositories.impl.postgres.subscription_event_repository import PostgresSubscriptionEventRepository
from src.modules.billing.repositories.impl.postgres.subscription_repository import PostgresSubscriptionRepository
from src.modules.billing.repositories.impl.postgres.usage_alert_repository import PostgresUsageAlertRepository
from src.modules.billing.repositories.impl.postgres.usage_counter_repository import PostgresUsageCounterRepository
from src.modules.billing.repositories.impl.postgres.usage_event_repository import PostgresUsageEventRepository

from src.modules.billing.services.entitlement_resolver import FeatureEntitlementResolver
from src.modules.billing.services.feature_access_gate import FeatureAccessGate
from src.modules.billing.services.features_catalog_service import FeaturesCatalogService
from src.modules.billing.services.follow_up_dispatcher import FollowUpDispatcher
from src.modules.billing.services.plan_service import PlanCatalogService
from src.modules.billing.services.proration_calculator import ProrationCalculator
from src.modules.billing.services.retention_offer_service import RetentionOfferService
from src.modules.billing.services.subscription_lifecycle import SubscriptionLifecycle
from src.modules.billing.services.tenant_directory import SubscriptionTenantDirectory
from src.modules.billing.services.usage_counter_store import UsageCounterStore
from src.modules.billing.services.usage_metering_service import UsageMeteringService


class BillingContainer(containers.DeclarativeContainer):
    """
    Billing Module Container.

    In-memory repositories are singletons so every service shares one store;
    Postgres repositories are cheap wrappers around the shared pool.
    """

    core = providers.DependenciesContainer()

    # Repositories
    feature_repository = providers.Selector(
        core.db_backend,
        memory=providers.Singleton(MemoryFeatureRepository, clock=core.clock),
        postgres=providers.Factory(PostgresFeatureRepository, db=core.postgres_db),
    )

    plan_repository = providers.Selector(
        core.db_backend,
        memory=providers.Singleton(MemoryPlanRepository, clock=core.clock),
        postgres=providers.Factory(PostgresPlanRepository, db=core.postgres_db),
    )

    subscription_repository = providers.Selector(
        core.db_backend,
        memory=providers.Singleton(MemorySubscriptionRepository, clock=core.clock),
        postgres=providers.Factory(PostgresSubscriptionRepository, db=core.postgres_db),
    )

    subscription_event_repository = providers.Selector(
        core.db_backend,
        memory=providers.Singleton(MemorySubscriptionEventRepository, clock=core.clock),
        postgres=providers.Factory(PostgresSubscriptionEventRepository, db=core.postgres_db),
    )

    usage_counter_repository = providers.Selector(
        core.db_backend,
        memory=providers.Singleton(MemoryUsageCounterRepository, clock=core.clock),
        postgres=providers.Factory(PostgresUsageCounterRepository, db=core.postgres_db),
    )

    usage_event_repository = providers.Selector(
        core.db_backend,
        memory=providers.Singleton(MemoryUsageEventRepository, clock=core.clock),
        postgres=providers.Factory(PostgresUsageEventRepository, db=core.postgres_db),
    )

    usage_alert_repository = providers.Selector(
        core.db_backend,
        memory=providers.Singleton(MemoryUsageAlertRepository, clock=core.clock),
        postgres=providers.Factory(PostgresUsageAlertRepository, db=core.postgres_db),
    )

    retention_offer_repository = providers.Selector(
        core.db_backend,
        memory=providers.Singleton(MemoryRetentionOfferRepository, clock=core.clock),
        postgres=providers.Factory(PostgresRetentionOfferRepository, db=core.postgres_db),
    )

    # Services
    features_catalog_service = providers.Factory(
        FeaturesCatalogService,
        feature_repository=feature_repository,
    )

    plan_service = providers.Factory(
        PlanCatalogService,
        plan_repo=plan_repository,
        subscription_repo=subscription_repository,
        default_plan_id=settings.entitlements.default_plan_id,
        clock=core.clock,
    )

    tenant_directory = providers.Factory(
        SubscriptionTenantDirectory,
        subscription_repo=subscription_repository,
        clock=core.clock,
    )

    # Singleton: lifecycle invalidations must reach the same cache the gate reads
    entitlement_resolver = providers.Singleton(
        FeatureEntitlementResolver,
        plan_catalog=plan_service,
        tenant_directory=tenant_directory,
        default_plan_id=settings.entitlements.default_plan_id,
        cache_ttl_seconds=settings.entitlements.cache_ttl_seconds,
        cache_max_size=settings.entitlements.cache_max_size,
        default_window=MeteringWindow(settings.metering.default_window),
        clock=core.clock,
        features_catalog=features_catalog_service,
    )

    usage_counter_store = providers.Factory(
        UsageCounterStore,
        counter_repo=usage_counter_repository,
        clock=core.clock,
        carry_over=settings.metering.carry_over_usage,
    )

    usage_metering_service = providers.Factory(
        UsageMeteringService,
        counter_store=usage_counter_store,
        resolver=entitlement_resolver,
        event_repo=usage_event_repository,
        alert_repo=usage_alert_repository,
        alert_thresholds=settings.metering.alert_thresholds,
        clock=core.clock,
    )

    feature_access_gate = providers.Factory(
        FeatureAccessGate,
        resolver=entitlement_resolver,
        metering=usage_metering_service,
        plan_catalog=plan_service,
        features_catalog=features_catalog_service,
    )

    proration_calculator = providers.Factory(
        ProrationCalculator,
        policy=providers.Factory(
            ProrationPolicy,
            upgrade_mode=ProrationMode(settings.proration.upgrade_mode),
            downgrade_mode=ProrationMode(settings.proration.downgrade_mode),
        ),
        clock=core.clock,
    )

    retention_offer_service = providers.Factory(
        RetentionOfferService,
        offer_repo=retention_offer_repository,
        plan_catalog=plan_service,
        offer_valid_hours=settings.retention.offer_valid_hours,
        clock=core.clock,
    )

    follow_up_dispatcher = providers.Singleton(FollowUpDispatcher)

    subscription_lifecycle = providers.Factory(
        SubscriptionLifecycle,
        subscription_repo=subscription_repository,
        event_repo=subscription_event_repository,
        plan_catalog=plan_service,
        resolver=entitlement_resolver,
        proration_calculator=proration_calculator,
        retention_service=retention_offer_service,
        dispatcher=follow_up_dispatcher,
        clock=core.clock,
        max_retries=settings.lifecycle.max_retries,
        skip_grace_on_immediate=settings.lifecycle.skip_grace_on_immediate,
    )
