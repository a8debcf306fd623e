from datetime import datetime
from typing import Any, Optional, Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.core.utils.custom_ulid import validate_ulid_field
from src.modules.billing.enums.subscription_status import SubscriptionStatus


class SubscriptionBase(BaseModel):
    tenant_id: str
    plan_id: str
    status: SubscriptionStatus
    current_period_start: datetime
    current_period_end: datetime
    trial_end: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    grace_period_end: Optional[datetime] = None
    offer_valid_until: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    cancellation_feedback: Optional[str] = None
    cancellation_count: int = 0
    pending_plan_id: Optional[str] = None
    discount_percent: int = Field(0, ge=0, le=100)
    discount_cents: int = Field(0, ge=0)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SubscriptionCreate(SubscriptionBase):
    pass


class SubscriptionUpdate(BaseModel):
    plan_id: Optional[str] = None
    status: Optional[SubscriptionStatus] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    grace_period_end: Optional[datetime] = None
    offer_valid_until: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    cancellation_feedback: Optional[str] = None
    cancellation_count: Optional[int] = None
    pending_plan_id: Optional[str] = None
    discount_percent: Optional[int] = Field(None, ge=0, le=100)
    discount_cents: Optional[int] = Field(None, ge=0)
    metadata: Optional[Dict[str, Any]] = None


class Subscription(SubscriptionBase):
    subscription_id: str
    version: int = 1
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("subscription_id")
    @classmethod
    def validate_subscription_id(cls, v):
        return validate_ulid_field(v)

    @property
    def is_live(self) -> bool:
        return not self.status.is_terminal

    def grace_elapsed(self, now: datetime) -> bool:
        return self.grace_period_end is not None and now >= self.grace_period_end

    def offer_open(self, now: datetime) -> bool:
        return self.offer_valid_until is not None and now < self.offer_valid_until

    def expiry_due(self, now: datetime) -> bool:
        """Grace is over and no retention offer can still bring it back."""
        return self.grace_elapsed(now) and not self.offer_open(now)

    def discounted_price_cents(self, base_price_cents: int) -> int:
        """Price of the next cycle after any retention discount."""
        price = base_price_cents - (base_price_cents * self.discount_percent) // 100
        return max(0, price - self.discount_cents)

    def __repr__(self) -> str:
        return (
            f"Subscription(id={self.subscription_id}, tenant={self.tenant_id}, "
            f"plan={self.plan_id}, status={self.status.value}, version={self.version})"
        )
