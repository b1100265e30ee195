"""
Shared infrastructure: settings, logging, and time.
"""

from .clock import Clock, ManualClock, SystemClock
from .config import NotifySettings, get_settings, reset_settings
from .logging import get_logger

__all__ = [
    "Clock",
    "ManualClock",
    "SystemClock",
    "NotifySettings",
    "get_settings",
    "reset_settings",
    "get_logger",
]
