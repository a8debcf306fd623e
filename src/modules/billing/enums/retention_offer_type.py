from enum import Enum


class RetentionOfferType(str, Enum):
    PERCENTAGE_DISCOUNT = "percentage_discount"
    FIXED_DISCOUNT = "fixed_discount"
    FREE_MONTHS = "free_months"
    PLAN_DOWNGRADE = "plan_downgrade"

    def __repr__(self) -> str:
        return f"RetentionOfferType.{self.name}"


class OfferUrgency(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    def __repr__(self) -> str:
        return f"OfferUrgency.{self.name}"
