from datetime import datetime
from typing import Any, Optional, Dict

from pydantic import BaseModel, ConfigDict, Field

from src.modules.billing.enums.feature_type import FeatureType


class FeatureBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    feature_type: FeatureType = FeatureType.QUOTA
    unit: Optional[str] = None
    category: Optional[str] = None
    is_premium: bool = False
    metadata: Dict[str, Any] = Field(default_factory=dict)


class FeatureCreate(FeatureBase):
    feature_id: str = Field(..., min_length=1, max_length=100, pattern=r"^[a-z0-9_]+$")


class FeatureUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    feature_type: Optional[FeatureType] = None
    unit: Optional[str] = None
    category: Optional[str] = None
    is_premium: Optional[bool] = None
    metadata: Optional[Dict[str, Any]] = None


class Feature(FeatureBase):
    """
    Feature Catalog entity.

    `feature_id` is the identifier used as entitlement key (e.g. "projects").
    """
    feature_id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    def __repr__(self) -> str:
        return f"Feature(id={self.feature_id}, name={self.name}, type={self.feature_type})"
