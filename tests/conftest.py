import os
import sys
from datetime import datetime, timezone

import pytest

# Set required environment variables for testing
# These must be set before importing any module that instantiates Settings
os.environ.setdefault("DATABASE_BACKEND", "memory")
os.environ.setdefault("API_ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")

# Ensure project root is in pythonpath
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from src.core.utils.clock import FrozenClock  # noqa: E402

# Mid-month Thursday, so daily, weekly and monthly windows all differ
START = datetime(2026, 1, 15, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return FrozenClock(START)
