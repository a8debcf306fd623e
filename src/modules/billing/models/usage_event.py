from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.modules.billing.enums.usage_event_kind import UsageEventKind


class UsageEventBase(BaseModel):
    tenant_id: str
    feature_id: str
    metric: str
    window_start: datetime
    kind: UsageEventKind
    amount: int = Field(..., ge=0)
    resulting_value: int = Field(..., ge=0)
    context: Dict[str, Any] = Field(default_factory=dict)


class UsageEventCreate(UsageEventBase):
    pass


class UsageEvent(UsageEventBase):
    """Append-only record of an applied usage change."""
    event_id: str
    created_at: datetime
    subscription_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
