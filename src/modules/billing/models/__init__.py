from .access import AccessDecision, EntitlementResolution, TrackResult, UpgradeSuggestion, UsageSummary
from .feature import Feature, FeatureCreate, FeatureUpdate
from .lifecycle import SideEffectIntent, TransitionResult
from .plan import DEFAULT_METRIC, UNLIMITED, Entitlement, EntitlementTable, Plan, PlanCreate, PlanUpdate
from .proration import ProrationPolicy, ProrationResult
from .retention_offer import (
    FixedDiscount,
    FreeMonths,
    PercentageDiscount,
    PlanDowngrade,
    RetentionOffer,
    RetentionOfferCreate,
)
from .subscription import Subscription, SubscriptionCreate, SubscriptionUpdate
from .subscription_event import SubscriptionEvent, SubscriptionEventCreate
from .usage_alert import UsageAlert, UsageAlertCreate
from .usage_counter import CounterKey, UsageCounter
from .usage_event import UsageEvent, UsageEventCreate
