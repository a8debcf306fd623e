from .interfaces import (
    IFeatureRepository,
    IPlanRepository,
    IRetentionOfferRepository,
    ISubscriptionEventRepository,
    ISubscriptionRepository,
    IUsageAlertRepository,
    IUsageCounterRepository,
    IUsageEventRepository,
)

__all__ = [
    "IFeatureRepository",
    "IPlanRepository",
    "IRetentionOfferRepository",
    "ISubscriptionEventRepository",
    "ISubscriptionRepository",
    "IUsageAlertRepository",
    "IUsageCounterRepository",
    "IUsageEventRepository",
]
