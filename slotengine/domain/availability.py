"""
Core business logic for resolving bookable slots.

Pure domain logic: the professional's profile, the active bookings and the
current time are all passed in explicitly, so the resolver can be called
from any number of callers without coordination.
"""

from dataclasses import dataclass
from datetime import date, time
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from pendulum import DateTime

from .models import (
    AvailabilityProfile,
    Booking,
    Slot,
    TimeRange,
    from_minutes,
    iter_dates,
    to_minutes,
)
from .slot_generator import generate_slot_starts


class UnavailableReason(str, Enum):
    VACATION = "vacation"
    BLOCKED_DATE = "blocked_date"
    DAY_CLOSED = "day_closed"
    IN_PAST = "in_past"
    OUTSIDE_WINDOW = "outside_window"
    OFF_GRID = "off_grid"
    BOOKING_CONFLICT = "booking_conflict"


REASON_MESSAGES = {
    UnavailableReason.VACATION: "Professional is on vacation during this time",
    UnavailableReason.BLOCKED_DATE: "This date is blocked by the professional",
    UnavailableReason.DAY_CLOSED: "The professional does not work on this weekday",
    UnavailableReason.IN_PAST: "This time has already passed",
    UnavailableReason.OUTSIDE_WINDOW: "Time slot is outside the professional's working hours",
    UnavailableReason.OFF_GRID: "Time slot does not start on the booking grid",
    UnavailableReason.BOOKING_CONFLICT: "Time slot conflicts with an existing booking or buffer time",
}


@dataclass(frozen=True)
class SlotVerdict:
    """Outcome of checking a single requested slot."""
    available: bool
    reason: Optional[UnavailableReason] = None
    conflicting_booking_id: Optional[str] = None

    @property
    def message(self) -> str:
        if self.reason is None:
            return "Available"
        return REASON_MESSAGES[self.reason]


AVAILABLE = SlotVerdict(available=True)


class AvailabilityResolver:
    """
    Resolves the bookable slots of one professional.

    Algorithm, per date:
    1. Dates inside an active vacation yield nothing
    2. Blocked dates yield nothing
    3. Disabled or missing weekdays yield nothing
    4. Generate raw candidates for the weekday window
    5. Expand every active booking by the buffer on both ends
    6. Drop candidates overlapping any expanded booking
    7. On the current date, drop candidates that already started
    """

    def __init__(self, profile: AvailabilityProfile):
        self.profile = profile

    def find_available_slots(
        self,
        start_date: date,
        end_date: date,
        bookings: Iterable[Booking],
        now: DateTime,
        exclude_booking_id: Optional[str] = None,
    ) -> Tuple[Slot, ...]:
        """
        Find all bookable slots between two dates, both inclusive.

        Args:
            start_date: First date of the range
            end_date: Last date of the range
            bookings: The professional's bookings; inactive ones are ignored
            now: Current time in the professional's timezone
            exclude_booking_id: Booking to treat as absent (rescheduling)

        Returns:
            Slots ordered by date, then start time
        """
        if start_date > end_date:
            return ()

        exclusions = self._exclusions_by_date(bookings, exclude_booking_id)

        slots: List[Slot] = []
        for day in iter_dates(start_date, end_date):
            slots.extend(self._slots_for_day(day, exclusions.get(day, []), now))

        return tuple(slots)

    def slots_for_day(
        self,
        day: date,
        bookings: Iterable[Booking],
        now: DateTime,
        exclude_booking_id: Optional[str] = None,
    ) -> Tuple[Slot, ...]:
        """Bookable slots for a single date."""
        exclusions = self._exclusions_by_date(bookings, exclude_booking_id)
        return tuple(self._slots_for_day(day, exclusions.get(day, []), now))

    def check_slot(
        self,
        day: date,
        start_time: time,
        end_time: time,
        bookings: Iterable[Booking],
        now: DateTime,
        exclude_booking_id: Optional[str] = None,
    ) -> SlotVerdict:
        """
        Check one requested slot against every availability rule.

        The checks run in the same order as the listing algorithm, so a
        verdict explains the first rule that rejects the slot.
        """
        closed = self._day_closed_reason(day, now)
        if closed is not None:
            return SlotVerdict(available=False, reason=closed)

        window = self.profile.weekly_schedule.window_for(day)
        requested = TimeRange.from_times(start_time, end_time)

        if requested.start < window.start or requested.end > window.end:
            return SlotVerdict(available=False, reason=UnavailableReason.OUTSIDE_WINDOW)

        starts = generate_slot_starts(
            start_time=from_minutes(window.start),
            end_time=from_minutes(window.end),
            interval_minutes=self.profile.interval_minutes,
            service_duration_minutes=requested.duration_minutes(),
        )
        if start_time not in starts:
            return SlotVerdict(available=False, reason=UnavailableReason.OFF_GRID)

        if day == now.date() and requested.start < self._minute_of_day(now):
            return SlotVerdict(available=False, reason=UnavailableReason.IN_PAST)

        for booking in bookings:
            if not self._occupies(booking, day, exclude_booking_id):
                continue
            if requested.overlaps(booking.time_range.expand(self.profile.buffer_minutes)):
                return SlotVerdict(
                    available=False,
                    reason=UnavailableReason.BOOKING_CONFLICT,
                    conflicting_booking_id=booking.id,
                )

        return AVAILABLE

    def _slots_for_day(
        self,
        day: date,
        exclusions: List[TimeRange],
        now: DateTime,
    ) -> List[Slot]:
        if self._day_closed_reason(day, now) is not None:
            return []

        window = self.profile.weekly_schedule.window_for(day)
        duration = self.profile.duration_minutes

        starts = generate_slot_starts(
            start_time=from_minutes(window.start),
            end_time=from_minutes(window.end),
            interval_minutes=self.profile.interval_minutes,
            service_duration_minutes=duration,
        )

        earliest = self._minute_of_day(now) if day == now.date() else None

        slots: List[Slot] = []
        for start in starts:
            candidate = TimeRange(start=to_minutes(start), end=to_minutes(start) + duration)

            if any(candidate.overlaps(blocked) for blocked in exclusions):
                continue

            if earliest is not None and candidate.start < earliest:
                continue

            slots.append(Slot(date=day, start_time=start, end_time=from_minutes(candidate.end)))

        return slots

    def _day_closed_reason(self, day: date, now: DateTime) -> Optional[UnavailableReason]:
        """Steps 1-3 plus past dates: reasons a whole date is closed."""
        if self.profile.is_on_vacation(day):
            return UnavailableReason.VACATION
        if self.profile.is_blocked(day):
            return UnavailableReason.BLOCKED_DATE
        if self.profile.weekly_schedule.window_for(day) is None:
            return UnavailableReason.DAY_CLOSED
        if day < now.date():
            return UnavailableReason.IN_PAST
        return None

    def _exclusions_by_date(
        self,
        bookings: Iterable[Booking],
        exclude_booking_id: Optional[str],
    ) -> dict:
        exclusions: dict = {}
        for booking in bookings:
            if not self._occupies(booking, booking.date, exclude_booking_id):
                continue
            exclusions.setdefault(booking.date, []).append(
                booking.time_range.expand(self.profile.buffer_minutes)
            )
        return exclusions

    @staticmethod
    def _occupies(booking: Booking, day: date, exclude_booking_id: Optional[str]) -> bool:
        return (
            booking.status.is_active
            and booking.date == day
            and booking.id != exclude_booking_id
        )

    @staticmethod
    def _minute_of_day(now: DateTime) -> int:
        # Seconds count: at 10:00:30 the 10:00 slot has already started
        return now.hour * 60 + now.minute + (1 if now.second or now.microsecond else 0)
