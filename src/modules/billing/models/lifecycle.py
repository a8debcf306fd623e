from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from src.modules.billing.enums.intent_kind import IntentKind
from src.modules.billing.enums.subscription_status import SubscriptionStatus
from src.modules.billing.models.proration import ProrationResult
from src.modules.billing.models.retention_offer import RetentionOffer
from src.modules.billing.models.subscription import Subscription


@dataclass(frozen=True)
class SideEffectIntent:
    """
    Follow-up work requested by a committed transition (charge, credit,
    notification). Delivered after commit; never part of the transition.
    """
    kind: IntentKind
    tenant_id: str
    subscription_id: str
    amount_cents: int = 0
    template: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TransitionResult:
    subscription: Subscription
    previous_status: Optional[SubscriptionStatus]
    intents: List[SideEffectIntent] = field(default_factory=list)
    proration: Optional[ProrationResult] = None
    offer: Optional[RetentionOffer] = None

    @property
    def status(self) -> SubscriptionStatus:
        return self.subscription.status
