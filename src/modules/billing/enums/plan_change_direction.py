from enum import Enum


class PlanChangeDirection(str, Enum):
    UPGRADE = "upgrade"
    DOWNGRADE = "downgrade"
    LATERAL = "lateral"

    def __repr__(self) -> str:
        return f"PlanChangeDirection.{self.name}"
