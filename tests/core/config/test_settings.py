import pytest
from pydantic import ValidationError

from src.core.config.settings import (
    APISettings,
    DatabaseSettings,
    MeteringSettings,
    Settings,
)


def test_backend_is_normalized(monkeypatch):
    monkeypatch.setenv("DATABASE_BACKEND", "POSTGRES")

    assert DatabaseSettings().backend == "postgres"


def test_unknown_backend_rejected(monkeypatch):
    monkeypatch.setenv("DATABASE_BACKEND", "supabase")

    with pytest.raises(ValidationError):
        DatabaseSettings()


def test_memory_backend_refused_in_production():
    with pytest.raises(ValidationError):
        Settings(
            api=APISettings(environment="production"),
            database=DatabaseSettings(backend="memory"),
        )


def test_production_with_postgres():
    settings = Settings(
        api=APISettings(environment="production"),
        database=DatabaseSettings(backend="postgres"),
    )

    assert settings.database.backend == "postgres"


def test_alert_thresholds_sorted_and_unique():
    assert MeteringSettings(alert_thresholds=[100, 80, 80, 95]).alert_thresholds == [80, 95, 100]


def test_alert_thresholds_must_be_positive():
    with pytest.raises(ValidationError):
        MeteringSettings(alert_thresholds=[0, 80])


def test_thresholds_from_env(monkeypatch):
    monkeypatch.setenv("METERING_ALERT_THRESHOLDS", "[50, 90]")

    assert MeteringSettings().alert_thresholds == [50, 90]
