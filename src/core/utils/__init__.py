"""Utilities package."""

from .clock import Clock, FrozenClock, SystemClock
from .logging import configure_logging, get_logger

__all__ = ["Clock", "FrozenClock", "SystemClock", "configure_logging", "get_logger"]
