from enum import Enum


class IntentKind(str, Enum):
    """Follow-up work a committed transition asks collaborators to perform."""

    CHARGE = "charge"
    CREDIT = "credit"
    NOTIFY = "notify"

    def __repr__(self) -> str:
        return f"IntentKind.{self.name}"
