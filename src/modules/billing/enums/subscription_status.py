from enum import Enum


class SubscriptionStatus(str, Enum):
    """
    Enum for subscription statuses.

    - TRIALING: In trial period
    - ACTIVE: Active and paid
    - PAUSED: Temporarily paused, entitlements fall back to the free plan
    - CANCELLED_GRACE: Cancelled, plan kept until the grace period ends
    - EXPIRED: Terminal, no further transitions
    """

    TRIALING = "trialing"
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED_GRACE = "cancelled_grace"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self is SubscriptionStatus.EXPIRED

    def __repr__(self) -> str:
        return f"SubscriptionStatus.{self.name}"
