from datetime import datetime
from typing import Any, Dict, Iterator, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, RootModel, model_validator

from src.modules.billing.enums.billing_period import BillingPeriod
from src.modules.billing.enums.metering_window import MeteringWindow

UNLIMITED = -1
DEFAULT_METRIC = "default"


class Entitlement(BaseModel):
    """Limit granted by a plan for one feature (or feature.metric)."""

    limit: int = Field(0, ge=UNLIMITED)
    window: Optional[MeteringWindow] = None  # None: metering default window

    model_config = ConfigDict(frozen=True)

    @property
    def is_unlimited(self) -> bool:
        return self.limit == UNLIMITED

    def allows(self, current: int, amount: int = 1) -> bool:
        if self.is_unlimited:
            return True
        return current + amount <= self.limit


class EntitlementTable(RootModel[Dict[str, Entitlement]]):
    """
    Entitlements of a plan, keyed by ``feature`` or ``feature.metric``.

    Shorthand values are accepted on input: an int is a monthly limit,
    ``True`` is unlimited access and ``False`` leaves the feature out.
    """

    root: Dict[str, Entitlement] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def expand_shorthand(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        expanded = {}
        for key, value in data.items():
            if isinstance(value, bool):
                if value:
                    expanded[key] = {"limit": UNLIMITED}
            elif isinstance(value, int):
                expanded[key] = {"limit": value}
            else:
                expanded[key] = value
        return expanded

    def lookup(self, feature_id: str, metric: Optional[str] = None) -> Optional[Entitlement]:
        """Most specific entitlement: ``feature.metric`` first, then ``feature``."""
        if metric and metric != DEFAULT_METRIC:
            specific = self.root.get(f"{feature_id}.{metric}")
            if specific is not None:
                return specific
        return self.root.get(feature_id)

    def feature_ids(self) -> Set[str]:
        return {key.split(".", 1)[0] for key in self.root}

    def items(self):
        return self.root.items()

    def __iter__(self) -> Iterator[str]:
        return iter(self.root)

    def __len__(self) -> int:
        return len(self.root)


class PlanBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    display_name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    price_cents: int = Field(0, ge=0)
    billing_period: BillingPeriod = BillingPeriod.MONTHLY
    trial_days: int = Field(0, ge=0)
    is_public: bool = True
    active: bool = True
    entitlements: EntitlementTable = Field(default_factory=lambda: EntitlementTable({}))


class PlanCreate(PlanBase):
    plan_id: Optional[str] = Field(None, min_length=1, max_length=100)


class PlanUpdate(BaseModel):
    display_name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    price_cents: Optional[int] = Field(None, ge=0)
    trial_days: Optional[int] = Field(None, ge=0)
    is_public: Optional[bool] = None
    active: Optional[bool] = None
    entitlements: Optional[EntitlementTable] = None


class Plan(PlanBase):
    """
    Plan entity.

    Immutable once loaded; entitlement edits go through the catalog service,
    which refuses them while a live subscription references the plan.
    """
    plan_id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @property
    def is_free(self) -> bool:
        return self.price_cents == 0

    def __repr__(self) -> str:
        return f"Plan(id={self.plan_id}, name={self.name}, price_cents={self.price_cents})"
