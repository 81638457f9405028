"""
Adapters layer - Storage backends and calendar export.
"""

from .base import AvailabilityStore, BookingLedger
from .ical import render_ical
from .memory import InMemoryAvailabilityStore, InMemoryBookingLedger
from .sqlite import SQLiteStore

__all__ = [
    "AvailabilityStore",
    "BookingLedger",
    "InMemoryAvailabilityStore",
    "InMemoryBookingLedger",
    "SQLiteStore",
    "render_ical",
]
