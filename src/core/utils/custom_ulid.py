"""
ULID utilities.

Identifiers for subscriptions, offers, alerts and events are ULIDs so they
sort by creation time in every backend.
"""

import re
from typing import Optional

from ulid import ULID

# Regex for validation (Crockford's Base32, excludes I, L, O, U)
ULID_PATTERN = re.compile(r"^[0-9A-HJKMNP-TV-Z]{26}$", re.IGNORECASE)


def is_valid_ulid(ulid: str) -> bool:
    """
    Validate ULID format.

    Examples:
        >>> is_valid_ulid('01ARZ3NDEKTSV4RRFFQ69G5FAV')
        True
        >>> is_valid_ulid('invalid')
        False
    """
    if not isinstance(ulid, str):
        return False
    return ULID_PATTERN.match(ulid) is not None


def validate_ulid_field(v: Optional[str]) -> Optional[str]:
    """
    Validate a ULID field for Pydantic models.

    Raises:
        ValueError: If value is present but not a valid ULID
    """
    if v is None:
        return None

    if not is_valid_ulid(v):
        raise ValueError(f"Invalid ULID format: {v}")

    return v.upper()


def generate_ulid() -> str:
    """Generate a new 26-character ULID string."""
    return str(ULID())
