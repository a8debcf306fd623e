from .alert_type import AlertType
from .billing_period import BillingPeriod
from .feature_type import FeatureType
from .intent_kind import IntentKind
from .metering_window import MeteringWindow
from .plan_change_direction import PlanChangeDirection
from .proration_mode import ProrationMode
from .retention_offer_type import OfferUrgency, RetentionOfferType
from .subscription_status import SubscriptionStatus
from .usage_event_kind import UsageEventKind
