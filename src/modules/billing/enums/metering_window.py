from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple

from dateutil.relativedelta import MO, relativedelta

LIFETIME_START = datetime(1970, 1, 1, tzinfo=timezone.utc)


class MeteringWindow(str, Enum):
    """
    Calendar window a usage counter accumulates over (UTC boundaries).

    Weekly windows start on Monday. LIFETIME never rolls over.
    """

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    LIFETIME = "lifetime"

    def start_of(self, at: datetime) -> datetime:
        at = at.astimezone(timezone.utc)
        midnight = at.replace(hour=0, minute=0, second=0, microsecond=0)
        if self is MeteringWindow.DAILY:
            return midnight
        if self is MeteringWindow.WEEKLY:
            return midnight + relativedelta(weekday=MO(-1))
        if self is MeteringWindow.MONTHLY:
            return midnight.replace(day=1)
        if self is MeteringWindow.YEARLY:
            return midnight.replace(month=1, day=1)
        return LIFETIME_START

    def end_of(self, window_start: datetime) -> Optional[datetime]:
        step = {
            MeteringWindow.DAILY: relativedelta(days=1),
            MeteringWindow.WEEKLY: relativedelta(weeks=1),
            MeteringWindow.MONTHLY: relativedelta(months=1),
            MeteringWindow.YEARLY: relativedelta(years=1),
        }.get(self)
        if step is None:
            return None
        return window_start + step

    def bounds(self, at: datetime) -> Tuple[datetime, Optional[datetime]]:
        """(start, end) of the window containing `at`; end is None for LIFETIME."""
        start = self.start_of(at)
        return start, self.end_of(start)

    def previous_start(self, window_start: datetime) -> Optional[datetime]:
        if self is MeteringWindow.LIFETIME:
            return None
        return self.start_of(window_start - relativedelta(microseconds=1))

    def __repr__(self) -> str:
        return f"MeteringWindow.{self.name}"
