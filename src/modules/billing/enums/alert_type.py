from enum import Enum


class AlertType(str, Enum):
    WARNING = "warning"
    LIMIT_REACHED = "limit_reached"

    def __repr__(self) -> str:
        return f"AlertType.{self.name}"
