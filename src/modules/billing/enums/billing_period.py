from datetime import datetime
from enum import Enum

from dateutil.relativedelta import relativedelta


class BillingPeriod(str, Enum):
    """Length of a plan's billing cycle."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"

    @property
    def delta(self) -> relativedelta:
        return {
            BillingPeriod.WEEKLY: relativedelta(weeks=1),
            BillingPeriod.MONTHLY: relativedelta(months=1),
            BillingPeriod.QUARTERLY: relativedelta(months=3),
            BillingPeriod.YEARLY: relativedelta(years=1),
        }[self]

    def advance(self, start: datetime, cycles: int = 1) -> datetime:
        """End of the period that begins at `start` (calendar aware)."""
        return start + self.delta * cycles

    def __repr__(self) -> str:
        return f"BillingPeriod.{self.name}"
