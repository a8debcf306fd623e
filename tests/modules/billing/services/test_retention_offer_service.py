from datetime import datetime, timedelta, timezone

import pytest

from src.modules.billing.enums.retention_offer_type import OfferUrgency
from src.modules.billing.enums.subscription_status import SubscriptionStatus
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
)
from src.modules.billing.services.retention_offer_service import (
    RetentionOfferService,
    RetentionPolicy,
    RetentionTier,
)

TENANT = "tenant_acme"


def priced(price_cents):
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    return Plan(
        plan_id=f"plan_{price_cents}",
        name=f"plan_{price_cents}",
        display_name="Plan",
        price_cents=price_cents,
        created_at=now,
        updated_at=now,
    )


@pytest.fixture
def cancelled(repos, clock, plans):
    def _cancelled(plan_id="business", cancellation_count=1):
        now = clock.now()
        return repos.subscriptions.create_live({
            "tenant_id": TENANT,
            "plan_id": plan_id,
            "status": SubscriptionStatus.CANCELLED_GRACE,
            "current_period_start": now - timedelta(days=10),
            "current_period_end": now + timedelta(days=20),
            "canceled_at": now,
            "grace_period_end": now + timedelta(days=20),
            "cancellation_count": cancellation_count,
        })
    return _cancelled


class TestRetentionPolicy:
    @pytest.mark.parametrize(
        "price_cents,expected",
        [
            (3000, PercentageDiscount(percent=25)),
            (2999, FreeMonths(months=1)),
            (1500, FreeMonths(months=1)),
            (1499, FixedDiscount(amount_cents=500)),
            (1, FixedDiscount(amount_cents=500)),
            (0, None),
        ],
    )
    def test_default_tiers(self, price_cents, expected):
        assert RetentionPolicy().offer_for(priced(price_cents)) == expected

    def test_custom_tiers_sorted_by_price(self):
        policy = RetentionPolicy([
            RetentionTier(100, FixedDiscount(amount_cents=100)),
            RetentionTier(10000, PlanDowngrade(plan_id="starter")),
        ])

        assert policy.offer_for(priced(20000)) == PlanDowngrade(plan_id="starter")
        assert policy.offer_for(priced(50)) is None


class TestCreateOffer:
    def test_offer_for_paid_plan(self, retention, cancelled, clock):
        offer = retention.maybe_create_offer(cancelled())

        assert offer.effect == PercentageDiscount(percent=25)
        assert offer.description == "25% off your next billing cycle"
        assert offer.valid_until == clock.now() + timedelta(hours=72)
        assert offer.cancellation_seq == 1

    def test_no_offer_for_free_plan(self, retention, cancelled):
        assert retention.maybe_create_offer(cancelled("free")) is None

    def test_one_offer_per_cancellation(self, retention, cancelled, repos):
        subscription = cancelled()

        first = retention.maybe_create_offer(subscription)
        second = retention.maybe_create_offer(subscription)

        assert first.offer_id == second.offer_id
        assert len(retention.get_offers(subscription.subscription_id)) == 1

    def test_new_cancellation_gets_new_offer(self, retention, cancelled, repos):
        subscription = cancelled()
        first = retention.maybe_create_offer(subscription)
        again = repos.subscriptions.update(subscription.subscription_id, {"cancellation_count": 2})

        second = retention.maybe_create_offer(again)

        assert second.offer_id != first.offer_id
        assert second.cancellation_seq == 2


class TestAccept:
    def test_accept(self, retention, cancelled, clock):
        offer = retention.maybe_create_offer(cancelled())

        accepted = retention.accept(offer.offer_id)

        assert accepted.is_accepted
        assert accepted.accepted_at == clock.now()
        assert not accepted.is_valid(clock.now())

    def test_accept_twice(self, retention, cancelled):
        offer = retention.maybe_create_offer(cancelled())
        retention.accept(offer.offer_id)

        with pytest.raises(OfferAlreadyConsumedError):
            retention.accept(offer.offer_id)

    def test_accept_after_validity_marks_expired(self, retention, cancelled, clock):
        offer = retention.maybe_create_offer(cancelled())
        clock.advance(hours=72)

        with pytest.raises(OfferExpiredError):
            retention.accept(offer.offer_id)

        assert retention.get_offer(offer.offer_id).is_expired

    def test_unknown_offer(self, retention):
        with pytest.raises(OfferNotFoundError):
            retention.accept("01ARZ3NDEKTSV4RRFFQ69G5FAV")


class TestRelease:
    def test_released_offer_can_be_accepted_again(self, retention, cancelled):
        offer = retention.maybe_create_offer(cancelled())
        accepted = retention.accept(offer.offer_id)

        assert retention.release(accepted) is True

        reopened = retention.get_offer(offer.offer_id)
        assert not reopened.is_accepted
        assert reopened.accepted_at is None
        assert retention.accept(offer.offer_id).is_accepted

    def test_release_twice_is_a_no_op(self, retention, cancelled):
        offer = retention.maybe_create_offer(cancelled())
        accepted = retention.accept(offer.offer_id)
        retention.release(accepted)

        assert retention.release(accepted) is False

    def test_release_ignores_a_later_acceptance(self, retention, cancelled, clock):
        offer = retention.maybe_create_offer(cancelled())
        stale = retention.accept(offer.offer_id)
        retention.release(stale)
        clock.advance(minutes=5)
        retention.accept(offer.offer_id)

        assert retention.release(stale) is False
        assert retention.get_offer(offer.offer_id).is_accepted


class TestOfferDeadline:
    def test_deadline_for_paid_plan(self, retention, cancelled, clock):
        assert retention.offer_deadline(cancelled(), clock.now()) == clock.now() + timedelta(hours=72)

    def test_no_deadline_for_free_plan(self, retention, cancelled, clock):
        assert retention.offer_deadline(cancelled("free"), clock.now()) is None

    def test_explicit_validity(self, retention, cancelled, clock):
        until = clock.now() + timedelta(hours=5)

        offer = retention.maybe_create_offer(cancelled(), valid_until=until)

        assert offer.valid_until == until


class TestExpiry:
    def test_expire_stale_offers(self, retention, cancelled, clock):
        fresh = retention.maybe_create_offer(cancelled())
        clock.advance(hours=73)

        assert retention.expire_stale_offers() == 1
        assert retention.expire_stale_offers() == 0
        assert retention.get_offer(fresh.offer_id).expired_at == clock.now()

    def test_accepted_offers_are_not_stale(self, retention, cancelled, clock):
        offer = retention.maybe_create_offer(cancelled())
        retention.accept(offer.offer_id)
        clock.advance(hours=100)

        assert retention.expire_stale_offers() == 0


class TestDescribe:
    def test_savings_and_urgency(self, retention, cancelled, plans, clock):
        offer = retention.maybe_create_offer(cancelled())

        details = retention.describe(offer, plans["business"])
        assert details["savings_cents"] == 1250
        assert details["urgency"] == OfferUrgency.MEDIUM.value
        assert details["hours_remaining"] == 72.0
        assert details["is_valid"]

        clock.advance(hours=49)
        assert retention.describe(offer, plans["business"])["urgency"] == "high"

    def test_long_validity_is_low_urgency(self, repos, plan_catalog, cancelled, plans, clock):
        service = RetentionOfferService(repos.offers, plan_catalog, offer_valid_hours=96, clock=clock)

        offer = service.maybe_create_offer(cancelled())

        assert service.describe(offer, plans["business"])["urgency"] == "low"

    def test_downgrade_savings_use_target_price(self, repos, plan_catalog, cancelled, plans, clock):
        policy = RetentionPolicy([RetentionTier(1, PlanDowngrade(plan_id="starter"))])
        service = RetentionOfferService(repos.offers, plan_catalog, policy=policy, clock=clock)

        offer = service.maybe_create_offer(cancelled())

        assert offer.description == "Switch to the starter plan instead of cancelling"
        assert service.describe(offer, plans["business"])["savings_cents"] == 4000
