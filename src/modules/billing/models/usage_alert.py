from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from src.modules.billing.enums.alert_type import AlertType


class UsageAlertBase(BaseModel):
    tenant_id: str
    feature_id: str
    metric: str
    window_start: datetime
    alert_type: AlertType
    threshold_percent: int = Field(..., gt=0)
    current_usage: int
    limit_value: int
    percentage_used: float
    remaining: int = 0
    message: str = ""


class UsageAlertCreate(UsageAlertBase):

    @classmethod
    def for_threshold(
        cls,
        tenant_id: str,
        feature_id: str,
        metric: str,
        window_start: datetime,
        threshold: int,
        current_usage: int,
        limit_value: int,
    ) -> "UsageAlertCreate":
        alert_type = AlertType.LIMIT_REACHED if threshold >= 100 else AlertType.WARNING
        percentage = round(current_usage / limit_value * 100, 2) if limit_value > 0 else 100.0
        remaining = max(0, limit_value - current_usage)
        label = feature_id if metric in (None, "default") else f"{feature_id} {metric}"

        if alert_type == AlertType.LIMIT_REACHED:
            message = f"You have reached your {label} limit ({current_usage}/{limit_value})."
        else:
            message = (
                f"You have used {threshold}% of your {label} limit "
                f"({current_usage}/{limit_value}, {remaining} remaining)."
            )

        return cls(
            tenant_id=tenant_id,
            feature_id=feature_id,
            metric=metric,
            window_start=window_start,
            alert_type=alert_type,
            threshold_percent=threshold,
            current_usage=current_usage,
            limit_value=limit_value,
            percentage_used=percentage,
            remaining=remaining,
            message=message,
        )


class UsageAlert(UsageAlertBase):
    alert_id: str
    is_delivered: bool = False
    delivered_at: Optional[datetime] = None
    is_acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    def __repr__(self) -> str:
        return (
            f"UsageAlert(id={self.alert_id}, tenant={self.tenant_id}, "
            f"feature={self.feature_id}, threshold={self.threshold_percent})"
        )
