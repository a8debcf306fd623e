from enum import Enum


class FeatureType(str, Enum):
    """Types of features in the catalog."""
    BOOLEAN = "boolean"  # on/off, never metered
    QUOTA = "quota"      # countable against a limit

    def __repr__(self) -> str:
        return f"FeatureType.{self.name}"
