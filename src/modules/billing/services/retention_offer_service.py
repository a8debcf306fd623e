from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Union

from src.core.utils import get_logger
from src.core.utils.clock import Clock, SystemClock
from src.modules.billing.exceptions import (
    OfferAlreadyConsumedError,
    OfferExpiredError,
    OfferNotFoundError,
)
from src.modules.billing.models.plan import Plan
from src.modules.billing.models.retention_offer import (
    FixedDiscount,
    FreeMonths,
    PercentageDiscount,
    PlanDowngrade,
    RetentionOffer,
)
from src.modules.billing.models.subscription import Subscription
from src.modules.billing.repositories.interfaces import IRetentionOfferRepository
from src.modules.billing.services.ports import IPlanCatalog

logger = get_logger(__name__)

Effect = Union[PercentageDiscount, FixedDiscount, FreeMonths, PlanDowngrade]


@dataclass(frozen=True)
class RetentionTier:
    min_price_cents: int
    effect: Effect


class RetentionPolicy:
    """
    Price-tiered retention offers. The first tier whose minimum the plan
    price reaches wins; free plans never get an offer.
    """

    DEFAULT_TIERS = (
        RetentionTier(3000, PercentageDiscount(percent=25)),
        RetentionTier(1500, FreeMonths(months=1)),
        RetentionTier(1, FixedDiscount(amount_cents=500)),
    )

    def __init__(self, tiers: Optional[Sequence[RetentionTier]] = None):
        tiers = self.DEFAULT_TIERS if tiers is None else tiers
        self.tiers = sorted(tiers, key=lambda t: t.min_price_cents, reverse=True)

    def offer_for(self, plan: Plan) -> Optional[Effect]:
        if plan.is_free:
            return None
        for tier in self.tiers:
            if plan.price_cents >= tier.min_price_cents:
                return tier.effect
        return None


class RetentionOfferService:
    """
    Creates and redeems the offer shown when a subscription is cancelled.

    One offer per (subscription, cancellation sequence): asking again for the
    same cancellation returns the same offer.
    """

    def __init__(
        self,
        offer_repo: IRetentionOfferRepository,
        plan_catalog: IPlanCatalog,
        policy: Optional[RetentionPolicy] = None,
        offer_valid_hours: int = 72,
        clock: Optional[Clock] = None,
    ):
        self.offer_repo = offer_repo
        self.plan_catalog = plan_catalog
        self.policy = policy or RetentionPolicy()
        self.offer_valid_hours = offer_valid_hours
        self.clock = clock or SystemClock()

    def offer_deadline(self, subscription: Subscription, at: datetime) -> Optional[datetime]:
        """When an offer made at `at` would lapse; None when the plan gets no offer."""
        plan = self.plan_catalog.get_plan(subscription.plan_id)
        if self.policy.offer_for(plan) is None:
            return None
        return at + timedelta(hours=self.offer_valid_hours)

    def maybe_create_offer(
        self, subscription: Subscription, valid_until: Optional[datetime] = None
    ) -> Optional[RetentionOffer]:
        plan = self.plan_catalog.get_plan(subscription.plan_id)
        effect = self.policy.offer_for(plan)
        if effect is None:
            logger.info(
                "No retention offer for plan",
                subscription_id=subscription.subscription_id,
                plan_id=plan.plan_id,
            )
            return None

        now = self.clock.now()
        offer = self.offer_repo.create_once({
            "subscription_id": subscription.subscription_id,
            "tenant_id": subscription.tenant_id,
            "cancellation_seq": max(1, subscription.cancellation_count),
            "effect": effect,
            "description": effect.describe(),
            "valid_until": valid_until or now + timedelta(hours=self.offer_valid_hours),
        })

        logger.info(
            "Retention offer available",
            subscription_id=subscription.subscription_id,
            offer_id=offer.offer_id,
            offer_type=offer.effect.type,
            valid_until=offer.valid_until.isoformat(),
        )
        return offer

    def get_offer(self, offer_id: str) -> RetentionOffer:
        offer = self.offer_repo.find_by_id(offer_id)
        if not offer:
            raise OfferNotFoundError(f"Retention offer {offer_id} not found", offer_id=offer_id)
        return offer

    def get_offers(self, subscription_id: str) -> List[RetentionOffer]:
        return self.offer_repo.find_by_subscription(subscription_id)

    def accept(self, offer_id: str) -> RetentionOffer:
        """
        Consume an offer.

        Raises:
            OfferNotFoundError: unknown offer
            OfferAlreadyConsumedError: the offer was accepted before
            OfferExpiredError: the validity window elapsed (the offer is marked expired)
        """
        offer = self.get_offer(offer_id)
        now = self.clock.now()

        if offer.is_accepted:
            raise OfferAlreadyConsumedError(
                f"Retention offer {offer_id} was already accepted",
                offer_id=offer_id,
                accepted_at=offer.accepted_at.isoformat() if offer.accepted_at else None,
            )
        if offer.is_expired or now >= offer.valid_until:
            self._expire(offer)
            raise OfferExpiredError(
                f"Retention offer {offer_id} expired",
                offer_id=offer_id,
                valid_until=offer.valid_until.isoformat(),
            )

        accepted = self.offer_repo.consume(offer_id, now)
        if accepted is None:
            # Lost a race with another accept or the expiry sweep.
            current = self.get_offer(offer_id)
            if current.is_accepted:
                raise OfferAlreadyConsumedError(
                    f"Retention offer {offer_id} was already accepted", offer_id=offer_id
                )
            raise OfferExpiredError(f"Retention offer {offer_id} expired", offer_id=offer_id)

        logger.info(
            "Retention offer accepted",
            offer_id=offer_id,
            subscription_id=accepted.subscription_id,
            offer_type=accepted.effect.type,
        )
        return accepted

    def release(self, offer: RetentionOffer) -> bool:
        """
        Hand a consumed offer back when the redemption did not go through.
        Returns False when the acceptance was already released.
        """
        released = self.offer_repo.release(offer.offer_id, offer.accepted_at)
        if released is None:
            logger.warning(
                "Retention offer acceptance already released",
                offer_id=offer.offer_id,
                subscription_id=offer.subscription_id,
            )
            return False

        logger.info(
            "Retention offer released",
            offer_id=offer.offer_id,
            subscription_id=offer.subscription_id,
        )
        return True

    def _expire(self, offer: RetentionOffer) -> None:
        if offer.is_expired:
            return
        self.offer_repo.update(offer.offer_id, {"is_expired": True, "expired_at": self.clock.now()})

    def expire_stale_offers(self, limit: int = 100) -> int:
        stale = self.offer_repo.find_stale(self.clock.now(), limit)
        for offer in stale:
            self._expire(offer)
        if stale:
            logger.info("Expired stale retention offers", count=len(stale))
        return len(stale)

    def describe(self, offer: RetentionOffer, current_plan: Plan) -> Dict[str, Any]:
        """Presentation details: savings, urgency and remaining time."""
        now = self.clock.now()
        if isinstance(offer.effect, PlanDowngrade):
            target = self.plan_catalog.get_plan(offer.effect.plan_id)
            savings = max(0, current_plan.price_cents - target.price_cents)
        else:
            savings = offer.savings_cents(current_plan.price_cents)

        return {
            "offer_id": offer.offer_id,
            "type": offer.effect.type,
            "description": offer.description,
            "savings_cents": savings,
            "urgency": offer.urgency(now).value,
            "hours_remaining": round(offer.time_remaining(now).total_seconds() / 3600, 1),
            "is_valid": offer.is_valid(now),
        }
