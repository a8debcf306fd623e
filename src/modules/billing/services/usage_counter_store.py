from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from src.core.utils import get_logger
from src.core.utils.clock import Clock, SystemClock
from src.modules.billing.enums.metering_window import MeteringWindow
from src.modules.billing.enums.usage_event_kind import UsageEventKind
from src.modules.billing.exceptions import QuotaExceededError
from src.modules.billing.models.plan import UNLIMITED
from src.modules.billing.models.usage_counter import CounterKey, UsageCounter
from src.modules.billing.repositories.interfaces import IUsageCounterRepository

logger = get_logger(__name__)


@dataclass
class CounterChange:
    counter: UsageCounter
    previous_value: int
    crossed_thresholds: List[int] = field(default_factory=list)
    # Limit the change was checked against; the counter keeps the one from window start
    limit: int = 0


def newly_crossed(
    value: int, limit: int, thresholds: Iterable[int], already_crossed: Iterable[int]
) -> List[int]:
    """Thresholds (percent of limit) reached by `value` that were not alerted yet."""
    if limit == UNLIMITED or limit <= 0:
        return []
    seen = set(already_crossed)
    return [t for t in sorted(thresholds) if t not in seen and value * 100 >= t * limit]


class UsageCounterStore:
    """
    Per-window usage counters with atomic, limit-aware updates.

    Every write goes through `IUsageCounterRepository.mutate`, which
    serializes writers per counter key. Limit checks and threshold bookkeeping
    run inside that critical section.
    """

    def __init__(
        self,
        counter_repo: IUsageCounterRepository,
        clock: Optional[Clock] = None,
        carry_over: bool = False,
    ):
        self.counter_repo = counter_repo
        self.clock = clock or SystemClock()
        self.carry_over = carry_over

    def _seed(
        self,
        tenant_id: str,
        feature_id: str,
        metric: str,
        window: MeteringWindow,
        at: datetime,
        limit: int = 0,
    ) -> UsageCounter:
        window_start, window_end = window.bounds(at)
        value = 0

        if self.carry_over:
            previous_start = window.previous_start(window_start)
            if previous_start is not None:
                previous = self.counter_repo.find_by_key(
                    CounterKey(tenant_id, feature_id, metric, window, previous_start)
                )
                value = previous.value if previous else 0

        return UsageCounter(
            tenant_id=tenant_id,
            feature_id=feature_id,
            metric=metric,
            window=window,
            window_start=window_start,
            window_end=window_end,
            value=value,
            limit_snapshot=limit,
        )

    def get(
        self,
        tenant_id: str,
        feature_id: str,
        metric: str,
        window: MeteringWindow = MeteringWindow.MONTHLY,
    ) -> UsageCounter:
        """Counter for the window containing now; unseen keys read as a fresh counter."""
        seed = self._seed(tenant_id, feature_id, metric, window, self.clock.now())
        stored = self.counter_repo.find_by_key(seed.key)
        return stored if stored is not None else seed

    def apply(
        self,
        tenant_id: str,
        feature_id: str,
        metric: str,
        delta: int,
        event_kind: UsageEventKind,
        limit: int,
        window: MeteringWindow = MeteringWindow.MONTHLY,
        enforce_limit: bool = True,
        thresholds: Iterable[int] = (),
    ) -> CounterChange:
        """
        Apply a usage change to the current window.

        `limit` is enforced as given; the counter's `limit_snapshot` is set
        once, when the window's counter is first written.

        Raises:
            QuotaExceededError: increment with `enforce_limit` that would take
                the counter past `limit`; nothing is written
        """
        if delta < 0:
            raise ValueError("delta must be non-negative; use a decrement event instead")

        thresholds = list(thresholds)
        seed = self._seed(tenant_id, feature_id, metric, window, self.clock.now(), limit)
        outcome = {}

        def mutation(current: UsageCounter) -> UsageCounter:
            previous = current.value
            if event_kind == UsageEventKind.INCREMENT:
                new_value = previous + delta
                if enforce_limit and limit != UNLIMITED and new_value > limit:
                    raise QuotaExceededError(
                        f"Quota exceeded for {feature_id}.{metric}",
                        current=previous,
                        limit=limit,
                        required=delta,
                        tenant_id=tenant_id,
                        feature_id=feature_id,
                        metric=metric,
                    )
            elif event_kind == UsageEventKind.DECREMENT:
                new_value = max(0, previous - delta)
            else:
                new_value = delta

            crossed = newly_crossed(new_value, limit, thresholds, current.crossed_thresholds)
            outcome["previous"] = previous
            outcome["crossed"] = crossed
            return current.model_copy(
                update={
                    "value": new_value,
                    "crossed_thresholds": sorted(set(current.crossed_thresholds) | set(crossed)),
                }
            )

        counter = self.counter_repo.mutate(seed, mutation)
        return CounterChange(counter, outcome["previous"], outcome["crossed"], limit)

    def rollover(
        self,
        at: Optional[datetime] = None,
        tenant_id: Optional[str] = None,
        limit_for: Optional[Callable[[UsageCounter], int]] = None,
    ) -> int:
        """
        Close counters whose window has ended and open the following window.

        The new window snapshots `limit_for(closed_counter)`, or the closed
        window's snapshot when no lookup is given.

        Safe to run repeatedly or concurrently: closing an already closed
        counter and seeding an existing window are no-ops. Closed counters are
        kept as history. Returns the number of counters closed by this call.
        """
        at = at or self.clock.now()
        closed_now = 0

        for counter in self.counter_repo.find_ended(at):
            if tenant_id and counter.tenant_id != tenant_id:
                continue

            flipped = {}

            def close(current: UsageCounter) -> UsageCounter:
                flipped["closed"] = not current.closed
                return current.model_copy(update={"closed": True})

            self.counter_repo.mutate(counter, close)
            if not flipped.get("closed"):
                continue
            closed_now += 1

            seed = self._seed(
                counter.tenant_id,
                counter.feature_id,
                counter.metric,
                counter.window,
                at,
                limit_for(counter) if limit_for else counter.limit_snapshot,
            )
            if self.counter_repo.find_by_key(seed.key) is None:
                self.counter_repo.mutate(seed, lambda current: current)

            logger.debug(
                "Usage window rolled over",
                tenant_id=counter.tenant_id,
                feature_id=counter.feature_id,
                metric=counter.metric,
                window=counter.window.value,
                closed_window_start=counter.window_start.isoformat(),
                final_value=counter.value,
            )

        if closed_now:
            logger.info("Usage windows rolled over", closed=closed_now, at=at.isoformat())
        return closed_now

    def history(
        self,
        tenant_id: str,
        feature_id: str,
        metric: str,
        window: MeteringWindow,
        windows_back: int = 6,
    ) -> List[UsageCounter]:
        """Current window plus up to `windows_back` earlier ones, newest first."""
        return self.counter_repo.find_history(
            tenant_id, feature_id, metric, window, limit=windows_back + 1
        )
