from datetime import datetime, timedelta
from typing import Annotated, Any, Dict, Literal, Optional, Union

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, ConfigDict, Field

from src.modules.billing.enums.retention_offer_type import OfferUrgency
from src.modules.billing.models.subscription import Subscription


class PercentageDiscount(BaseModel):
    type: Literal["percentage_discount"] = "percentage_discount"
    percent: int = Field(..., gt=0, le=100)

    model_config = ConfigDict(frozen=True)

    def apply(self, subscription: Subscription) -> Dict[str, Any]:
        return {"discount_percent": self.percent}

    def savings_cents(self, price_cents: int) -> int:
        return price_cents * self.percent // 100

    def describe(self) -> str:
        return f"{self.percent}% off your next billing cycle"


class FixedDiscount(BaseModel):
    type: Literal["fixed_discount"] = "fixed_discount"
    amount_cents: int = Field(..., gt=0)

    model_config = ConfigDict(frozen=True)

    def apply(self, subscription: Subscription) -> Dict[str, Any]:
        return {"discount_cents": self.amount_cents}

    def savings_cents(self, price_cents: int) -> int:
        return min(self.amount_cents, price_cents)

    def describe(self) -> str:
        return f"${self.amount_cents / 100:.2f} off your next billing cycle"


class FreeMonths(BaseModel):
    type: Literal["free_months"] = "free_months"
    months: int = Field(..., gt=0)

    model_config = ConfigDict(frozen=True)

    def apply(self, subscription: Subscription) -> Dict[str, Any]:
        return {
            "current_period_end": subscription.current_period_end
            + relativedelta(months=self.months)
        }

    def savings_cents(self, price_cents: int) -> int:
        return price_cents * self.months

    def describe(self) -> str:
        unit = "month" if self.months == 1 else "months"
        return f"{self.months} free {unit}"


class PlanDowngrade(BaseModel):
    type: Literal["plan_downgrade"] = "plan_downgrade"
    plan_id: str

    model_config = ConfigDict(frozen=True)

    def apply(self, subscription: Subscription) -> Dict[str, Any]:
        return {"plan_id": self.plan_id, "pending_plan_id": None}

    def savings_cents(self, price_cents: int) -> int:
        # Depends on the target plan's price, which the offer service knows.
        return 0

    def describe(self) -> str:
        return f"Switch to the {self.plan_id} plan instead of cancelling"


OfferEffect = Annotated[
    Union[PercentageDiscount, FixedDiscount, FreeMonths, PlanDowngrade],
    Field(discriminator="type"),
]


class RetentionOfferBase(BaseModel):
    subscription_id: str
    tenant_id: str
    cancellation_seq: int = Field(..., ge=1)
    effect: OfferEffect
    description: str
    valid_until: datetime


class RetentionOfferCreate(RetentionOfferBase):
    pass


class RetentionOffer(RetentionOfferBase):
    offer_id: str
    is_accepted: bool = False
    accepted_at: Optional[datetime] = None
    is_expired: bool = False
    expired_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    def is_valid(self, now: datetime) -> bool:
        return not self.is_accepted and not self.is_expired and now < self.valid_until

    def time_remaining(self, now: datetime) -> timedelta:
        return max(self.valid_until - now, timedelta(0))

    def urgency(self, now: datetime) -> OfferUrgency:
        remaining = self.time_remaining(now)
        if remaining <= timedelta(hours=24):
            return OfferUrgency.HIGH
        if remaining <= timedelta(hours=72):
            return OfferUrgency.MEDIUM
        return OfferUrgency.LOW

    def savings_cents(self, price_cents: int) -> int:
        return self.effect.savings_cents(price_cents)

    def __repr__(self) -> str:
        return (
            f"RetentionOffer(id={self.offer_id}, subscription={self.subscription_id}, "
            f"type={self.effect.type}, accepted={self.is_accepted})"
        )
