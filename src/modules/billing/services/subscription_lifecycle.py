"""
Subscription lifecycle.

Guards and applies state transitions for tenant subscriptions:

    trialing ──end_trial──▶ active ──pause──▶ paused ──resume──▶ active
        │                    │  ▲                │
        └──────cancel────────┴──┼───────cancel───┘
                             ▼  │ reactivate / accept_retention_offer
                       cancelled_grace ──expire──▶ expired (terminal)

Every command re-reads the subscription, validates the guard, and writes
with compare-and-swap on `version`. A lost race is retried from scratch.
After a commit the entitlement cache is invalidated, an audit event is
recorded and side-effect intents are handed to the follow-up dispatcher.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from src.core.utils import get_logger
from src.core.utils.clock import Clock, SystemClock
from src.core.utils.exceptions import DuplicateError
from src.core.utils.retry import retry_on_conflict
from src.modules.billing.enums.intent_kind import IntentKind
from src.modules.billing.enums.proration_mode import ProrationMode
from src.modules.billing.enums.subscription_status import SubscriptionStatus
from src.modules.billing.exceptions import (
    BillingError,
    ConcurrentModificationError,
    InvalidStateTransitionError,
    OfferExpiredError,
    OfferNotFoundError,
    PlanNotFoundError,
    SubscriptionNotFoundError,
)
from src.modules.billing.models.lifecycle import SideEffectIntent, TransitionResult
from src.modules.billing.models.proration import ProrationResult
from src.modules.billing.models.retention_offer import PlanDowngrade, RetentionOffer
from src.modules.billing.models.subscription import Subscription
from src.modules.billing.repositories.interfaces import (
    ISubscriptionEventRepository,
    ISubscriptionRepository,
)
from src.modules.billing.services.entitlement_resolver import FeatureEntitlementResolver
from src.modules.billing.services.plan_service import PlanCatalogService
from src.modules.billing.services.ports import IFollowUpDispatcher
from src.modules.billing.services.proration_calculator import ProrationCalculator
from src.modules.billing.services.retention_offer_service import RetentionOfferService

logger = get_logger(__name__)

S = SubscriptionStatus


@dataclass
class _Change:
    """What a command wants to write, computed from a fresh read."""
    updates: Dict[str, Any]
    event_type: str
    intents: List[SideEffectIntent] = field(default_factory=list)
    proration: Optional[ProrationResult] = None
    reason: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class SubscriptionLifecycle:
    """
    Component responsible for subscription states and their transitions.
    """

    VALID_TRANSITIONS = {
        S.TRIALING: [S.ACTIVE, S.CANCELLED_GRACE, S.EXPIRED],
        S.ACTIVE: [S.ACTIVE, S.PAUSED, S.CANCELLED_GRACE, S.EXPIRED],
        S.PAUSED: [S.ACTIVE, S.CANCELLED_GRACE, S.EXPIRED],
        S.CANCELLED_GRACE: [S.ACTIVE, S.EXPIRED],
        # Terminal
        S.EXPIRED: [],
    }

    # Statuses each command may start from
    COMMAND_SOURCES = {
        "end_trial": (S.TRIALING,),
        "pause": (S.ACTIVE,),
        "resume": (S.PAUSED,),
        "cancel": (S.ACTIVE, S.TRIALING, S.PAUSED),
        "reactivate": (S.CANCELLED_GRACE,),
        "change_plan": (S.ACTIVE,),
        "accept_retention_offer": (S.CANCELLED_GRACE,),
        "renew": (S.ACTIVE,),
        "expire": (S.CANCELLED_GRACE,),
    }

    def __init__(
        self,
        subscription_repo: ISubscriptionRepository,
        event_repo: ISubscriptionEventRepository,
        plan_catalog: PlanCatalogService,
        resolver: FeatureEntitlementResolver,
        proration_calculator: ProrationCalculator,
        retention_service: RetentionOfferService,
        dispatcher: IFollowUpDispatcher,
        clock: Optional[Clock] = None,
        max_retries: int = 3,
        skip_grace_on_immediate: bool = False,
    ):
        self.subscription_repo = subscription_repo
        self.event_repo = event_repo
        self.plan_catalog = plan_catalog
        self.resolver = resolver
        self.proration_calculator = proration_calculator
        self.retention_service = retention_service
        self.dispatcher = dispatcher
        self.clock = clock or SystemClock()
        self.max_retries = max_retries
        self.skip_grace_on_immediate = skip_grace_on_immediate

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_subscription(self, subscription_id: str) -> Subscription:
        subscription = self.subscription_repo.find_by_id(subscription_id)
        if not subscription:
            raise SubscriptionNotFoundError(
                f"Subscription {subscription_id} not found", subscription_id=subscription_id
            )
        return subscription

    def find_tenant_subscription(self, tenant_id: str) -> Optional[Subscription]:
        return self.subscription_repo.find_live_by_tenant(tenant_id)

    def get_history(self, subscription_id: str):
        return self.event_repo.find_by_subscription(subscription_id)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start(
        self, tenant_id: str, plan_id: Optional[str] = None, triggered_by: str = "system"
    ) -> TransitionResult:
        """
        Create the tenant's subscription: trialing when the plan has trial
        days, active otherwise. Without `plan_id` the default (free) plan is used.
        """
        plan = self.plan_catalog.get_plan(plan_id) if plan_id else self.plan_catalog.get_default_plan()
        if not plan.active:
            raise PlanNotFoundError(f"Plan {plan.plan_id} is not active", plan_id=plan.plan_id)

        now = self.clock.now()
        data = {
            "tenant_id": tenant_id,
            "plan_id": plan.plan_id,
            "current_period_start": now,
        }
        intents = []

        if plan.trial_days:
            trial_end = now + timedelta(days=plan.trial_days)
            data.update(status=S.TRIALING, trial_end=trial_end, current_period_end=trial_end)
            template = "trial_started"
        else:
            data.update(status=S.ACTIVE, current_period_end=plan.billing_period.advance(now))
            template = "subscription_started"

        try:
            subscription = self.subscription_repo.create_live(data)
        except DuplicateError:
            existing = self.subscription_repo.find_live_by_tenant(tenant_id)
            raise InvalidStateTransitionError(
                existing.status if existing else None,
                "start",
                message=f"Tenant {tenant_id} already has a live subscription",
                tenant_id=tenant_id,
            )

        if subscription.status == S.ACTIVE and plan.price_cents:
            intents.append(self._intent(IntentKind.CHARGE, subscription, amount_cents=plan.price_cents))
        intents.append(self._intent(IntentKind.NOTIFY, subscription, template=template))

        change = _Change(
            updates={},
            event_type="created",
            intents=intents,
            metadata={"trial_days": plan.trial_days},
        )
        self._after_commit(None, subscription, change, triggered_by)

        logger.info(
            "Subscription started",
            subscription_id=subscription.subscription_id,
            tenant_id=tenant_id,
            plan_id=plan.plan_id,
            status=subscription.status.value,
        )
        return TransitionResult(subscription=subscription, previous_status=None, intents=intents)

    def end_trial(self, subscription_id: str, triggered_by: str = "system") -> TransitionResult:
        def plan_change(sub: Subscription, now: datetime) -> _Change:
            if sub.trial_end and sub.trial_end > now:
                raise InvalidStateTransitionError(
                    sub.status, "end_trial", message="Trial has not ended yet",
                    trial_end=sub.trial_end.isoformat(),
                )
            plan = self.plan_catalog.get_plan(sub.plan_id)
            period_start = sub.trial_end or now
            charge = sub.discounted_price_cents(plan.price_cents)
            intents = [self._intent(IntentKind.NOTIFY, sub, template="trial_converted")]
            if charge:
                intents.insert(0, self._intent(IntentKind.CHARGE, sub, amount_cents=charge))
            return _Change(
                updates={
                    "status": S.ACTIVE,
                    "current_period_start": period_start,
                    "current_period_end": plan.billing_period.advance(period_start),
                    "discount_percent": 0,
                    "discount_cents": 0,
                },
                event_type="trial_converted",
                intents=intents,
            )

        return self._execute(subscription_id, "end_trial", plan_change, triggered_by)

    def pause(self, subscription_id: str, reason: Optional[str] = None, triggered_by: str = "tenant") -> TransitionResult:
        def plan_change(sub: Subscription, now: datetime) -> _Change:
            return _Change(
                updates={"status": S.PAUSED, "paused_at": now},
                event_type="paused",
                reason=reason,
                intents=[self._intent(IntentKind.NOTIFY, sub, template="subscription_paused")],
            )

        return self._execute(subscription_id, "pause", plan_change, triggered_by)

    def resume(self, subscription_id: str, triggered_by: str = "tenant") -> TransitionResult:
        def plan_change(sub: Subscription, now: datetime) -> _Change:
            return _Change(
                updates={"status": S.ACTIVE, "paused_at": None},
                event_type="resumed",
                intents=[self._intent(IntentKind.NOTIFY, sub, template="subscription_resumed")],
            )

        return self._execute(subscription_id, "resume", plan_change, triggered_by)

    def cancel(
        self,
        subscription_id: str,
        reason: Optional[str] = None,
        feedback: Optional[str] = None,
        immediate: bool = False,
        triggered_by: str = "tenant",
    ) -> TransitionResult:
        """
        Cancel a subscription. It keeps its plan until the grace period ends
        (the current period end, or now when `immediate`). A retention offer
        is attached to the result when the plan qualifies; the cancellation
        stands whether or not the offer is later accepted.

        While that offer is open the subscription does not expire, so an
        immediate cancellation can still be won back through the offer even
        though access already ended.
        """
        def plan_change(sub: Subscription, now: datetime) -> _Change:
            updates = {
                "canceled_at": now,
                "cancellation_reason": reason,
                "cancellation_feedback": feedback,
                "cancellation_count": sub.cancellation_count + 1,
                "pending_plan_id": None,
            }
            if immediate and self.skip_grace_on_immediate:
                updates.update(status=S.EXPIRED, grace_period_end=now, offer_valid_until=None)
                template = "subscription_expired"
            else:
                updates.update(
                    status=S.CANCELLED_GRACE,
                    grace_period_end=now if immediate else sub.current_period_end,
                    offer_valid_until=self._offer_deadline(sub, now),
                )
                template = "cancellation_confirmed"
            return _Change(
                updates=updates,
                event_type="cancelled",
                reason=reason,
                intents=[self._intent(IntentKind.NOTIFY, sub, template=template)],
                metadata={"immediate": immediate, "feedback": feedback},
            )

        result = self._execute(subscription_id, "cancel", plan_change, triggered_by)

        subscription = result.subscription
        if subscription.status == S.CANCELLED_GRACE:
            result.offer = self._offer_retention(subscription)
            if result.offer:
                intent = self._intent(
                    IntentKind.NOTIFY,
                    subscription,
                    template="retention_offer",
                    payload={"offer_id": result.offer.offer_id, "description": result.offer.description},
                )
                result.intents.append(intent)
                self._dispatch([intent])
        return result

    def reactivate(self, subscription_id: str, triggered_by: str = "tenant") -> TransitionResult:
        def plan_change(sub: Subscription, now: datetime) -> _Change:
            self._require_in_grace(sub, now, "reactivate")
            return _Change(
                updates=self._reactivation_updates(),
                event_type="reactivated",
                intents=[self._intent(IntentKind.NOTIFY, sub, template="subscription_reactivated")],
            )

        return self._execute(subscription_id, "reactivate", plan_change, triggered_by)

    def change_plan(
        self,
        subscription_id: str,
        new_plan_id: str,
        mode: Optional[ProrationMode] = None,
        triggered_by: str = "tenant",
    ) -> TransitionResult:
        """
        Move an active subscription to another plan. Upgrades apply now
        (credit for unused time, charge for the new plan); downgrades are
        scheduled for the period end unless the policy or `mode` says otherwise.
        """
        new_plan = self.plan_catalog.get_plan(new_plan_id)
        if not new_plan.active:
            raise PlanNotFoundError(f"Plan {new_plan_id} is not active", plan_id=new_plan_id)

        def plan_change(sub: Subscription, now: datetime) -> _Change:
            if sub.plan_id == new_plan.plan_id:
                raise InvalidStateTransitionError(
                    sub.status, "change_plan", message=f"Subscription is already on plan {new_plan_id}"
                )
            current_plan = self.plan_catalog.get_plan(sub.plan_id)
            proration = self.proration_calculator.calculate(sub, current_plan, new_plan, at=now, mode=mode)

            if proration.mode == ProrationMode.NEXT_RENEWAL:
                return _Change(
                    updates={"pending_plan_id": new_plan.plan_id},
                    event_type="plan_change_scheduled",
                    proration=proration,
                    intents=[
                        self._intent(
                            IntentKind.NOTIFY,
                            sub,
                            template="plan_change_scheduled",
                            payload={"plan_id": new_plan.plan_id, "effective_date": proration.effective_date.isoformat()},
                        )
                    ],
                    metadata={"from_plan_id": current_plan.plan_id, **proration.to_dict()},
                )

            intents = []
            if proration.credit_for_unused_time_cents:
                intents.append(self._intent(IntentKind.CREDIT, sub, amount_cents=proration.credit_for_unused_time_cents))
            if proration.charge_for_new_plan_cents:
                intents.append(self._intent(IntentKind.CHARGE, sub, amount_cents=proration.charge_for_new_plan_cents))
            intents.append(
                self._intent(IntentKind.NOTIFY, sub, template="plan_changed", payload={"plan_id": new_plan.plan_id})
            )
            return _Change(
                updates={
                    "plan_id": new_plan.plan_id,
                    "pending_plan_id": None,
                    "current_period_start": proration.new_period_start,
                    "current_period_end": proration.new_period_end,
                },
                event_type=proration.direction.value,
                proration=proration,
                intents=intents,
                metadata={"from_plan_id": current_plan.plan_id, **proration.to_dict()},
            )

        return self._execute(subscription_id, "change_plan", plan_change, triggered_by)

    def accept_retention_offer(
        self, subscription_id: str, offer_id: str, triggered_by: str = "tenant"
    ) -> TransitionResult:
        """
        Redeem the retention offer of the current cancellation: the offer is
        consumed, its effect applied and the subscription becomes active again.

        Both happen or neither does: when the transition cannot be committed
        the offer is released again and stays redeemable.
        """
        subscription = self.get_subscription(subscription_id)
        self._guard(subscription, "accept_retention_offer")
        self._require_redeemable(subscription, self.clock.now())

        offer = self.retention_service.get_offer(offer_id)
        if offer.subscription_id != subscription_id:
            raise OfferNotFoundError(
                f"Retention offer {offer_id} does not belong to subscription {subscription_id}",
                offer_id=offer_id,
                subscription_id=subscription_id,
            )
        if offer.cancellation_seq != subscription.cancellation_count:
            raise OfferExpiredError(
                f"Retention offer {offer_id} belongs to an earlier cancellation", offer_id=offer_id
            )
        if isinstance(offer.effect, PlanDowngrade):
            self.plan_catalog.get_plan(offer.effect.plan_id)

        accepted = self.retention_service.accept(offer_id)

        def plan_change(sub: Subscription, now: datetime) -> _Change:
            self._require_redeemable(sub, now)
            return _Change(
                updates={**self._reactivation_updates(), **accepted.effect.apply(sub)},
                event_type="retention_offer_accepted",
                intents=[
                    self._intent(
                        IntentKind.NOTIFY,
                        sub,
                        template="retention_offer_accepted",
                        payload={"offer_id": accepted.offer_id, "description": accepted.description},
                    )
                ],
                metadata={"offer_id": accepted.offer_id, "offer_type": accepted.effect.type},
            )

        try:
            result = self._execute(subscription_id, "accept_retention_offer", plan_change, triggered_by)
        except Exception as e:
            logger.warning(
                "Reactivation failed, releasing retention offer",
                subscription_id=subscription_id,
                offer_id=offer_id,
                error=str(e),
            )
            self.retention_service.release(accepted)
            raise

        result.offer = accepted
        return result

    def renew(self, subscription_id: str, triggered_by: str = "system") -> TransitionResult:
        """
        Start the next billing period once the current one has ended,
        applying a scheduled plan change and any one-cycle retention discount.
        """
        def plan_change(sub: Subscription, now: datetime) -> _Change:
            if sub.current_period_end > now:
                raise InvalidStateTransitionError(
                    sub.status, "renew", message="Current period has not ended yet",
                    current_period_end=sub.current_period_end.isoformat(),
                )
            plan = self.plan_catalog.get_plan(sub.pending_plan_id or sub.plan_id)
            period_start = sub.current_period_end
            charge = sub.discounted_price_cents(plan.price_cents)

            intents = []
            if charge:
                intents.append(self._intent(IntentKind.CHARGE, sub, amount_cents=charge))
            intents.append(self._intent(IntentKind.NOTIFY, sub, template="subscription_renewed"))

            return _Change(
                updates={
                    "plan_id": plan.plan_id,
                    "pending_plan_id": None,
                    "current_period_start": period_start,
                    "current_period_end": plan.billing_period.advance(period_start),
                    "discount_percent": 0,
                    "discount_cents": 0,
                },
                event_type="renewed",
                intents=intents,
                metadata={"charged_cents": charge, "from_plan_id": sub.plan_id},
            )

        return self._execute(subscription_id, "renew", plan_change, triggered_by)

    def expire(self, subscription_id: str, triggered_by: str = "system") -> TransitionResult:
        def plan_change(sub: Subscription, now: datetime) -> _Change:
            if not sub.expiry_due(now):
                raise InvalidStateTransitionError(
                    sub.status, "expire",
                    message="Grace period or retention offer window has not ended yet",
                    grace_period_end=sub.grace_period_end.isoformat() if sub.grace_period_end else None,
                    offer_valid_until=sub.offer_valid_until.isoformat() if sub.offer_valid_until else None,
                )
            return _Change(
                updates={"status": S.EXPIRED},
                event_type="expired",
                intents=[self._intent(IntentKind.NOTIFY, sub, template="subscription_expired")],
            )

        return self._execute(subscription_id, "expire", plan_change, triggered_by)

    def process_due_transitions(self, limit: int = 100) -> Dict[str, int]:
        """
        Apply time-driven transitions that are due: trial endings, renewals
        and grace expiries. Returns counts per command.
        """
        counts = {"end_trial": 0, "renew": 0, "expire": 0, "failed": 0}
        commands = {
            S.TRIALING: ("end_trial", self.end_trial),
            S.ACTIVE: ("renew", self.renew),
            S.CANCELLED_GRACE: ("expire", self.expire),
        }

        for subscription in self.subscription_repo.find_due(self.clock.now(), limit):
            name, command = commands[subscription.status]
            try:
                command(subscription.subscription_id)
                counts[name] += 1
            except InvalidStateTransitionError as e:
                # Someone else moved it first.
                logger.info(
                    "Due transition no longer applicable",
                    subscription_id=subscription.subscription_id,
                    command=name,
                    error=str(e),
                )
            except ConcurrentModificationError:
                counts["failed"] += 1
                logger.warning(
                    "Concurrency conflict processing due transition",
                    subscription_id=subscription.subscription_id,
                    command=name,
                )
            except Exception as e:
                counts["failed"] += 1
                logger.error(
                    "Error processing due transition",
                    subscription_id=subscription.subscription_id,
                    command=name,
                    error=str(e),
                )

        return counts

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _guard(self, subscription: Subscription, command: str) -> None:
        if subscription.status not in self.COMMAND_SOURCES[command]:
            raise InvalidStateTransitionError(
                subscription.status, command, subscription_id=subscription.subscription_id
            )

    def _is_valid_transition(self, from_status: SubscriptionStatus, to_status: SubscriptionStatus) -> bool:
        return to_status in self.VALID_TRANSITIONS.get(from_status, [])

    def _require_in_grace(self, subscription: Subscription, now: datetime, command: str) -> None:
        if subscription.grace_elapsed(now):
            raise InvalidStateTransitionError(
                subscription.status,
                command,
                message="Grace period has ended",
                grace_period_end=subscription.grace_period_end.isoformat(),
            )

    def _require_redeemable(self, subscription: Subscription, now: datetime) -> None:
        """Offers stay redeemable past the grace end until they lapse."""
        if subscription.grace_elapsed(now) and not subscription.offer_open(now):
            raise InvalidStateTransitionError(
                subscription.status,
                "accept_retention_offer",
                message="Grace period and retention offer window have ended",
                grace_period_end=subscription.grace_period_end.isoformat(),
            )

    @staticmethod
    def _reactivation_updates() -> Dict[str, Any]:
        return {
            "status": S.ACTIVE,
            "canceled_at": None,
            "grace_period_end": None,
            "offer_valid_until": None,
            "paused_at": None,
        }

    def _execute(
        self,
        subscription_id: str,
        command: str,
        plan_change: Callable[[Subscription, datetime], _Change],
        triggered_by: str,
    ) -> TransitionResult:
        def attempt():
            current = self.get_subscription(subscription_id)
            self._guard(current, command)
            now = self.clock.now()
            change = plan_change(current, now)

            new_status = change.updates.get("status", current.status)
            if new_status != current.status and not self._is_valid_transition(current.status, new_status):
                raise InvalidStateTransitionError(current.status, command, to_status=new_status.value)

            updated = self.subscription_repo.update(
                subscription_id,
                {**change.updates, "updated_at": now},
                current_version=current.version,
            )
            if updated is None:
                raise ConcurrentModificationError(
                    f"Subscription {subscription_id} changed during {command}",
                    current_version=current.version,
                    subscription_id=subscription_id,
                )
            return current, updated, change

        previous, updated, change = retry_on_conflict(attempt, attempts=self.max_retries)
        self._after_commit(previous, updated, change, triggered_by)

        logger.info(
            "Subscription transitioned",
            subscription_id=subscription_id,
            command=command,
            from_status=previous.status.value,
            to_status=updated.status.value,
            version=updated.version,
        )
        return TransitionResult(
            subscription=updated,
            previous_status=previous.status,
            intents=list(change.intents),
            proration=change.proration,
        )

    def _after_commit(
        self,
        previous: Optional[Subscription],
        updated: Subscription,
        change: _Change,
        triggered_by: str,
    ) -> None:
        self.resolver.invalidate(updated.tenant_id)
        self._log_event(previous, updated, change, triggered_by)
        self._dispatch(change.intents)

    def _log_event(
        self,
        previous: Optional[Subscription],
        updated: Subscription,
        change: _Change,
        triggered_by: str,
    ) -> None:
        """Record the transition in the audit trail."""
        try:
            self.event_repo.create({
                "subscription_id": updated.subscription_id,
                "tenant_id": updated.tenant_id,
                "event_type": change.event_type,
                "from_plan_id": previous.plan_id if previous else None,
                "to_plan_id": updated.plan_id,
                "from_status": previous.status.value if previous else None,
                "to_status": updated.status.value,
                "triggered_by": triggered_by,
                "reason": change.reason,
                "metadata": change.metadata,
            })
        except Exception as e:
            logger.error(
                "Failed to log subscription event",
                subscription_id=updated.subscription_id,
                event_type=change.event_type,
                error=str(e),
            )

    def _dispatch(self, intents: List[SideEffectIntent]) -> None:
        if not intents:
            return
        try:
            self.dispatcher.dispatch(intents)
        except Exception as e:
            logger.error("Follow-up dispatch failed", intents=len(intents), error=str(e))

    def _offer_retention(self, subscription: Subscription) -> Optional[RetentionOffer]:
        try:
            return self.retention_service.maybe_create_offer(
                subscription, valid_until=subscription.offer_valid_until
            )
        except BillingError as e:
            logger.error(
                "Could not create retention offer",
                subscription_id=subscription.subscription_id,
                error=str(e),
            )
            return None

    def _offer_deadline(self, subscription: Subscription, now: datetime) -> Optional[datetime]:
        try:
            return self.retention_service.offer_deadline(subscription, now)
        except BillingError as e:
            logger.error(
                "Could not determine retention offer window",
                subscription_id=subscription.subscription_id,
                error=str(e),
            )
            return None

    @staticmethod
    def _intent(
        kind: IntentKind,
        subscription: Subscription,
        amount_cents: int = 0,
        template: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> SideEffectIntent:
        return SideEffectIntent(
            kind=kind,
            tenant_id=subscription.tenant_id,
            subscription_id=subscription.subscription_id,
            amount_cents=amount_cents,
            template=template,
            payload=payload or {},
        )
