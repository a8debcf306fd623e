"""
Billing maintenance runner.
Periodically applies time-driven work: trial endings, renewals, grace
expiries, stale retention offers and metering window rollover.
"""

import argparse
import signal
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional

from dependency_injector.wiring import Provide, inject

from src.core.di.container import Container
from src.core.utils import configure_logging, get_logger
from src.modules.billing.services.retention_offer_service import RetentionOfferService
from src.modules.billing.services.subscription_lifecycle import SubscriptionLifecycle
from src.modules.billing.services.usage_metering_service import UsageMeteringService

logger = get_logger(__name__)


@dataclass
class MaintenanceMetrics:
    """Metrics for the maintenance runner."""

    total_cycles: int = 0
    transitions: Dict[str, int] = field(default_factory=dict)
    offers_expired: int = 0
    windows_rolled: int = 0
    errors: int = 0
    started_at: Optional[datetime] = None


class BillingMaintenanceRunner:
    """
    Runs every billing sweep once per cycle. Each sweep is idempotent, so
    several runners may overlap safely.
    """

    @inject
    def __init__(
        self,
        interval_seconds: int = 60,
        batch_size: int = 100,
        lifecycle: SubscriptionLifecycle = Provide[Container.billing.subscription_lifecycle],
        retention_service: RetentionOfferService = Provide[Container.billing.retention_offer_service],
        metering: UsageMeteringService = Provide[Container.billing.usage_metering_service],
    ):
        self.interval_seconds = interval_seconds
        self.batch_size = batch_size
        self.lifecycle = lifecycle
        self.retention_service = retention_service
        self.metering = metering
        self.metrics = MaintenanceMetrics()
        self._stop = threading.Event()

    def run_once(self) -> Dict[str, int]:
        """Run all sweeps a single time and return what each did."""
        self.metrics.total_cycles += 1
        summary: Dict[str, int] = {}

        try:
            counts = self.lifecycle.process_due_transitions(limit=self.batch_size)
            for name, count in counts.items():
                self.metrics.transitions[name] = self.metrics.transitions.get(name, 0) + count
            summary.update(counts)
        except Exception as e:
            logger.error("Due transition sweep failed", error=str(e), exc_info=True)
            self.metrics.errors += 1

        try:
            expired = self.retention_service.expire_stale_offers(limit=self.batch_size)
            self.metrics.offers_expired += expired
            summary["offers_expired"] = expired
        except Exception as e:
            logger.error("Retention offer sweep failed", error=str(e), exc_info=True)
            self.metrics.errors += 1

        try:
            rolled = self.metering.rollover_windows()
            self.metrics.windows_rolled += rolled
            summary["windows_rolled"] = rolled
        except Exception as e:
            logger.error("Metering rollover failed", error=str(e), exc_info=True)
            self.metrics.errors += 1

        logger.info("Maintenance cycle finished", cycle=self.metrics.total_cycles, **summary)
        return summary

    def start(self) -> None:
        """Run cycles until `stop` is called."""
        self.metrics.started_at = datetime.now(timezone.utc)
        logger.info(
            "Starting billing maintenance",
            interval=self.interval_seconds,
            batch_size=self.batch_size,
        )
        while not self._stop.is_set():
            cycle_start = datetime.now(timezone.utc)
            self.run_once()
            elapsed = (datetime.now(timezone.utc) - cycle_start).total_seconds()
            self._stop.wait(max(0, self.interval_seconds - elapsed))
        logger.info("Billing maintenance stopped", cycles=self.metrics.total_cycles)

    def stop(self, *_args) -> None:
        logger.info("Shutdown signal received")
        self._stop.set()


def main():
    """Entry point."""
    parser = argparse.ArgumentParser()
    parser.add_argument("--interval", type=int, default=60)
    parser.add_argument("--batch-size", type=int, default=100)
    parser.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    args = parser.parse_args()

    configure_logging()
    container = Container()
    container.wire(modules=[__name__])

    runner = BillingMaintenanceRunner(
        interval_seconds=args.interval, batch_size=args.batch_size
    )
    if args.once:
        runner.run_once()
        return

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, runner.stop)
    try:
        runner.start()
    finally:
        container.billing.follow_up_dispatcher().shutdown()


if __name__ == "__main__":
    main()
