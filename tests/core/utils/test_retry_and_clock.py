from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from src.core.utils.clock import FrozenClock, SystemClock, ensure_utc
from src.core.utils.exceptions import AppError, ConcurrencyError, DuplicateError
from src.core.utils.retry import retry_on_conflict


class TestRetryOnConflict:
    def test_succeeds_after_conflicts(self):
        operation = Mock(side_effect=[ConcurrencyError(), ConcurrencyError(), "done"])

        assert retry_on_conflict(operation, attempts=3) == "done"
        assert operation.call_count == 3

    def test_reraises_last_conflict(self):
        operation = Mock(side_effect=ConcurrencyError("still racing", current_version=7))

        with pytest.raises(ConcurrencyError) as exc:
            retry_on_conflict(operation, attempts=2)

        assert exc.value.current_version == 7
        assert operation.call_count == 2

    def test_other_errors_are_not_retried(self):
        operation = Mock(side_effect=DuplicateError("exists"))

        with pytest.raises(DuplicateError):
            retry_on_conflict(operation, attempts=5)

        assert operation.call_count == 1

    def test_at_least_one_attempt(self):
        operation = Mock(return_value=1)

        assert retry_on_conflict(operation, attempts=0) == 1


class TestAppError:
    def test_to_dict(self):
        error = AppError("boom", tenant_id="t1")

        assert error.to_dict() == {"error": "app_error", "message": "boom", "tenant_id": "t1"}


class TestClock:
    def test_system_clock_is_utc(self):
        assert SystemClock().now().tzinfo == timezone.utc

    def test_frozen_clock(self):
        clock = FrozenClock(datetime(2026, 1, 1))

        assert clock.now() == datetime(2026, 1, 1, tzinfo=timezone.utc)
        assert clock.advance(hours=2) == datetime(2026, 1, 1, 2, tzinfo=timezone.utc)
        clock.advance(timedelta(days=1))
        assert clock.now().day == 2

    def test_ensure_utc_converts_offsets(self):
        value = datetime(2026, 1, 1, 9, tzinfo=timezone(timedelta(hours=3)))

        assert ensure_utc(value) == datetime(2026, 1, 1, 6, tzinfo=timezone.utc)
        assert ensure_utc(value).tzinfo == timezone.utc
