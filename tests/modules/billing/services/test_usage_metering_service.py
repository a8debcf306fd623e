from datetime import datetime, timezone

import pytest

from src.modules.billing.enums.alert_type import AlertType
from src.modules.billing.enums.metering_window import MeteringWindow
from src.modules.billing.enums.usage_event_kind import UsageEventKind
from src.modules.billing.exceptions import NotEntitledError, QuotaExceededError

TENANT = "tenant_acme"


class TestRecord:
    def test_record_until_limit(self, metering):
        for _ in range(3):
            assert metering.record(TENANT, "projects")

        with pytest.raises(QuotaExceededError) as exc:
            metering.record(TENANT, "projects")

        assert exc.value.current == 3
        assert exc.value.limit == 3
        assert metering.get_current_usage(TENANT, "projects") == 3

    def test_feature_outside_plan(self, metering):
        with pytest.raises(NotEntitledError) as exc:
            metering.record(TENANT, "sso")

        assert exc.value.to_dict()["plan_id"] == "free"

    def test_rejected_usage_is_not_logged(self, metering):
        metering.record(TENANT, "projects", amount=3)

        with pytest.raises(QuotaExceededError):
            metering.record(TENANT, "projects")

        events = metering.get_usage_events(TENANT)
        assert len(events) == 1
        assert events[0].resulting_value == 3
        assert events[0].kind == UsageEventKind.INCREMENT

    def test_unlimited_plan(self, metering, lifecycle):
        lifecycle.start(TENANT, "business")

        result = metering.record(TENANT, "api_calls", amount=1_000_000)

        assert result.success
        assert result.current_usage == 1_000_000
        assert result.alerts == []

    def test_decrement_never_blocked(self, metering):
        metering.record(TENANT, "projects", amount=3)

        result = metering.record(TENANT, "projects", event_kind=UsageEventKind.DECREMENT)

        assert result.current_usage == 2


class TestTrack:
    def test_quota_exceeded_is_falsy(self, metering):
        metering.track(TENANT, "projects", amount=3)

        result = metering.track(TENANT, "projects")

        assert not result
        assert result.reason == "quota_exceeded"
        assert result.current_usage == 3
        assert result.limit == 3

    def test_not_entitled_is_falsy(self, metering):
        result = metering.track(TENANT, "audit_log")

        assert not result
        assert result.reason == "not_entitled"

    def test_can_perform_is_read_only(self, metering):
        assert metering.can_perform(TENANT, "projects", amount=3)
        assert not metering.can_perform(TENANT, "projects", amount=4)
        assert not metering.can_perform(TENANT, "sso")
        assert metering.get_current_usage(TENANT, "projects") == 0


class TestAlerts:
    def test_each_threshold_alerts_once_per_window(self, metering):
        metering.record(TENANT, "api_calls", amount=80)
        metering.record(TENANT, "api_calls", amount=15)
        last = metering.record(TENANT, "api_calls", amount=5)

        # Dropping below and climbing back does not alert again
        metering.record(TENANT, "api_calls", amount=10, event_kind=UsageEventKind.DECREMENT)
        again = metering.record(TENANT, "api_calls", amount=10)

        alerts = metering.get_pending_alerts(TENANT)
        assert [a.threshold_percent for a in alerts] == [80, 95, 100]
        assert last.alerts[0].alert_type == AlertType.LIMIT_REACHED
        assert again.alerts == []

    def test_jump_past_several_thresholds(self, metering):
        result = metering.record(TENANT, "api_calls", amount=100)

        assert [a.threshold_percent for a in result.alerts] == [80, 95, 100]

    def test_alerts_restart_in_new_window(self, metering, clock):
        metering.record(TENANT, "api_calls", amount=80)
        clock.set(datetime(2026, 2, 1, tzinfo=timezone.utc))

        result = metering.record(TENANT, "api_calls", amount=80)

        assert [a.threshold_percent for a in result.alerts] == [80]

    def test_alert_message(self, metering):
        alert = metering.record(TENANT, "api_calls", amount=80).alerts[0]

        assert alert.alert_type == AlertType.WARNING
        assert alert.remaining == 20
        assert "80%" in alert.message

    def test_delivery_and_acknowledgement(self, metering):
        alert = metering.record(TENANT, "api_calls", amount=80).alerts[0]

        delivered = metering.mark_alert_delivered(alert.alert_id)
        acknowledged = metering.acknowledge_alert(alert.alert_id)

        assert delivered.is_delivered
        assert acknowledged.is_acknowledged
        assert metering.get_pending_alerts(TENANT) == []

    def test_unknown_alert(self, metering):
        assert metering.mark_alert_delivered("01ARZ3NDEKTSV4RRFFQ69G5FAV") is None


class TestMetricsAndWindows:
    def test_metric_specific_limit_and_window(self, metering, lifecycle, clock):
        lifecycle.start(TENANT, "pro")
        metering.record(TENANT, "api_calls", metric="tokens", amount=500)

        with pytest.raises(QuotaExceededError):
            metering.record(TENANT, "api_calls", metric="tokens")

        # Daily window: next day is fresh
        clock.advance(days=1)
        assert metering.record(TENANT, "api_calls", metric="tokens").current_usage == 1
        # The default metric is metered separately
        assert metering.get_current_usage(TENANT, "api_calls") == 0

    def test_usage_summary(self, metering):
        metering.record(TENANT, "projects", amount=2)

        summary = metering.get_usage_summary(TENANT)

        assert set(summary) == {"projects", "api_calls"}
        assert summary["projects"].current_usage == 2
        assert summary["projects"].remaining == 1
        assert summary["projects"].window == MeteringWindow.MONTHLY
        assert summary["api_calls"].current_usage == 0

    def test_usage_history(self, metering, clock):
        metering.record(TENANT, "projects", amount=2)
        clock.set(datetime(2026, 2, 3, tzinfo=timezone.utc))
        metering.record(TENANT, "projects")

        history = metering.get_usage_history(TENANT, "projects")

        assert [c.value for c in history] == [1, 2]

    def test_rollover_windows(self, metering, clock):
        metering.record(TENANT, "projects")
        clock.set(datetime(2026, 2, 1, tzinfo=timezone.utc))

        assert metering.rollover_windows() == 1
        assert metering.rollover_windows() == 0

    def test_rollover_snapshots_limit_of_current_plan(self, metering, lifecycle, clock):
        metering.record(TENANT, "projects")
        lifecycle.start(TENANT, "starter")
        clock.set(datetime(2026, 2, 1, tzinfo=timezone.utc))

        metering.rollover_windows()

        history = metering.get_usage_history(TENANT, "projects")
        assert [c.limit_snapshot for c in history] == [10, 3]
