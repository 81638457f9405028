"""
Domain layer - Pure business logic, no storage or I/O.
"""

from .availability import AvailabilityResolver, SlotVerdict, UnavailableReason
from .exceptions import (
    ConflictCode,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    SlotEngineError,
    ValidationError,
)
from .models import (
    AvailabilityProfile,
    Booking,
    BookingStatus,
    DaySchedule,
    Slot,
    TimeRange,
    VacationPeriod,
    WeeklySchedule,
    Weekday,
)
from .slot_generator import generate_slot_starts

__all__ = [
    "AvailabilityProfile",
    "AvailabilityResolver",
    "Booking",
    "BookingStatus",
    "ConflictCode",
    "ConflictError",
    "DaySchedule",
    "InvalidStateError",
    "NotFoundError",
    "Slot",
    "SlotEngineError",
    "SlotVerdict",
    "TimeRange",
    "UnavailableReason",
    "VacationPeriod",
    "ValidationError",
    "WeeklySchedule",
    "Weekday",
    "generate_slot_starts",
]
