"""
Moves an existing booking to a new slot.

Proposals come from the availability resolver with the moved booking left
out of the occupied set; confirmation reuses the conflict guard's checks
and rewrites the booking inside the professional's transaction.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, time, timedelta
from typing import Optional, Tuple

import pendulum

from ..adapters.base import AvailabilityStore, BookingLedger
from ..domain.availability import AvailabilityResolver
from ..domain.events import BookingRescheduled, EventPublisher
from ..domain.exceptions import InvalidStateError
from ..domain.models import Booking, Slot, format_time, parse_date, parse_time
from .conflict_guard import Clock, default_end_time, verify_slot

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_DAYS = 30


class RescheduleCoordinator:
    """Proposes and commits new slots for an existing booking."""

    def __init__(
        self,
        availability_store: AvailabilityStore,
        ledger: BookingLedger,
        publisher: Optional[EventPublisher] = None,
        clock: Clock = pendulum.now,
        horizon_days: int = DEFAULT_HORIZON_DAYS,
    ) -> None:
        self._availability_store = availability_store
        self._ledger = ledger
        self._publisher = publisher
        self._clock = clock
        self.horizon_days = horizon_days

    def propose(self, booking_id: str) -> Tuple[Slot, ...]:
        """
        List the slots the booking could move to.

        The horizon starts today. Slots have the booking's own duration,
        and its current slot is offered again.
        """
        booking = self._ledger.get(booking_id)
        self._ensure_movable(booking)

        profile = self._availability_store.get_profile(booking.professional_id)
        profile = profile.updated(service_duration_minutes=booking.duration_minutes())

        now = self._clock(profile.timezone)
        start_date = now.date()
        end_date = start_date + timedelta(days=self.horizon_days - 1)

        bookings = self._ledger.list_active(booking.professional_id, start_date, end_date)

        return AvailabilityResolver(profile).find_available_slots(
            start_date=start_date,
            end_date=end_date,
            bookings=bookings,
            now=now,
            exclude_booking_id=booking.id,
        )

    def confirm(
        self,
        booking_id: str,
        new_date: date | str,
        new_start_time: time | str,
    ) -> Booking:
        """
        Re-validate the target slot and move the booking onto it.

        Duration and status are kept. The booking's old slot does not count
        as occupied, so moving to an overlapping time is allowed.

        Raises:
            NotFoundError: Unknown booking or professional
            InvalidStateError: Booking is Completed or Cancelled
            ValidationError, ConflictError: As for a new reservation
        """
        day = parse_date(new_date)
        start = parse_time(new_start_time)

        professional_id = self._ledger.get(booking_id).professional_id

        with self._ledger.transaction(professional_id):
            current = self._ledger.get(booking_id)
            self._ensure_movable(current)

            profile = self._availability_store.get_profile(professional_id)
            end = default_end_time(profile, start, current.duration_minutes())
            now = self._clock(profile.timezone)
            bookings = self._ledger.list_active(professional_id, day, day)

            verify_slot(profile, day, start, end, bookings, now, exclude_booking_id=current.id)

            moved = replace(current, date=day, start_time=start, end_time=end, updated_at=now)
            self._ledger.update(moved)

        logger.info(
            "Rescheduled booking %s from %s %s to %s %s",
            moved.id,
            current.date.isoformat(), format_time(current.start_time),
            day.isoformat(), format_time(start),
        )

        if self._publisher is not None:
            self._publisher.publish(BookingRescheduled(
                booking=moved,
                previous_date=current.date,
                previous_start_time=current.start_time,
                previous_end_time=current.end_time,
            ))

        return moved

    @staticmethod
    def _ensure_movable(booking: Booking) -> None:
        if booking.status.is_terminal:
            raise InvalidStateError(
                f"Booking {booking.id} is {booking.status.value} and cannot be rescheduled"
            )
