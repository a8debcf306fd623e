from enum import Enum


class UsageEventKind(str, Enum):
    """How a tracked amount changes a usage counter."""

    INCREMENT = "increment"
    DECREMENT = "decrement"  # clamps at zero
    RESET = "reset"  # sets the counter to the amount

    def __repr__(self) -> str:
        return f"UsageEventKind.{self.name}"
