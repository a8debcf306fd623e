from enum import Enum


class ProrationMode(str, Enum):
    """
    How a plan change is billed.

    - IMMEDIATE_FULL: credit unused time, charge the full new price, restart the period
    - IMMEDIATE_PRORATED: credit unused time, charge the new price for the remaining time
    - NEXT_RENEWAL: nothing moves now, the new plan applies at the period end
    """

    IMMEDIATE_FULL = "immediate_full"
    IMMEDIATE_PRORATED = "immediate_prorated"
    NEXT_RENEWAL = "next_renewal"

    def __repr__(self) -> str:
        return f"ProrationMode.{self.name}"
