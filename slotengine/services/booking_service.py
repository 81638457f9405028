"""
Application service exposing the engine's operations to callers.

The service wires the conflict guard and the reschedule coordinator to a
store, a ledger, an event publisher and a clock, and adds the booking
lifecycle transitions and the professional's schedule mutations. It keeps
no state of its own: every call reads the stores fresh.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, time
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import pendulum

from ..adapters.base import AvailabilityStore, BookingLedger
from ..domain.availability import AvailabilityResolver
from ..domain.events import (
    BookingCancelled,
    BookingCompleted,
    BookingConfirmed,
    BookingEvent,
    EventPublisher,
)
from ..domain.exceptions import InvalidStateError
from ..domain.models import (
    AvailabilityProfile,
    Booking,
    BookingStatus,
    DaySchedule,
    Slot,
    VacationPeriod,
    WeeklySchedule,
    Weekday,
    parse_date,
    parse_time,
)
from .conflict_guard import Clock, ConflictGuard
from .reschedule import DEFAULT_HORIZON_DAYS, RescheduleCoordinator

logger = logging.getLogger(__name__)

AUTO_DECLINE_REASON = "auto_declined"

# Allowed source states for each target state
TRANSITIONS: Dict[BookingStatus, Tuple[BookingStatus, ...]] = {
    BookingStatus.CONFIRMED: (BookingStatus.PENDING,),
    BookingStatus.CANCELLED: (BookingStatus.PENDING, BookingStatus.CONFIRMED),
    BookingStatus.COMPLETED: (BookingStatus.PENDING, BookingStatus.CONFIRMED),
}


class BookingService:
    """
    Facade over availability listing, reservation and rescheduling.
    """

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
        self.guard = ConflictGuard(
            availability_store=availability_store,
            ledger=ledger,
            publisher=publisher,
            clock=clock,
        )
        self.rescheduler = RescheduleCoordinator(
            availability_store=availability_store,
            ledger=ledger,
            publisher=publisher,
            clock=clock,
            horizon_days=horizon_days,
        )

    # Caller-facing operations

    def list_available_slots(
        self,
        professional_id: str,
        date_from: date | str,
        date_to: date | str,
    ) -> Tuple[Slot, ...]:
        """
        Bookable slots between two dates, both inclusive.

        Nothing available is an empty tuple, never an error.
        """
        start_date = parse_date(date_from)
        end_date = parse_date(date_to)

        profile = self._availability_store.get_profile(professional_id)

        if start_date > end_date:
            return ()

        now = self._clock(profile.timezone)
        bookings = self._ledger.list_active(professional_id, start_date, end_date)

        return AvailabilityResolver(profile).find_available_slots(
            start_date=start_date,
            end_date=end_date,
            bookings=bookings,
            now=now,
        )

    def reserve_slot(
        self,
        professional_id: str,
        customer_id: str,
        date: date | str,
        start_time: time | str,
    ) -> Booking:
        return self.guard.reserve(professional_id, customer_id, date, start_time)

    def propose_reschedule(self, booking_id: str) -> Tuple[Slot, ...]:
        return self.rescheduler.propose(booking_id)

    def confirm_reschedule(
        self,
        booking_id: str,
        date: date | str,
        start_time: time | str,
    ) -> Booking:
        return self.rescheduler.confirm(booking_id, date, start_time)

    # Booking lifecycle

    def get_booking(self, booking_id: str) -> Booking:
        return self._ledger.get(booking_id)

    def list_bookings(self, professional_id: str) -> List[Booking]:
        self._availability_store.get_profile(professional_id)
        return self._ledger.list_for_professional(professional_id)

    def confirm_booking(self, booking_id: str) -> Booking:
        """Professional accepts a Pending booking."""
        booking = self._transition(booking_id, BookingStatus.CONFIRMED)
        self._publish(BookingConfirmed(booking=booking))
        return booking

    def cancel_booking(self, booking_id: str, reason: Optional[str] = None) -> Booking:
        """Cancel (or decline) a Pending or Confirmed booking, freeing its slot."""
        booking = self._transition(booking_id, BookingStatus.CANCELLED, reason=reason)
        self._publish(BookingCancelled(booking=booking, reason=reason))
        return booking

    def complete_booking(self, booking_id: str) -> Booking:
        """Mark the service as rendered. The slot stops blocking immediately."""
        booking = self._transition(booking_id, BookingStatus.COMPLETED)
        self._publish(BookingCompleted(booking=booking))
        return booking

    def _transition(
        self,
        booking_id: str,
        target: BookingStatus,
        reason: Optional[str] = None,
    ) -> Booking:
        professional_id = self._ledger.get(booking_id).professional_id

        with self._ledger.transaction(professional_id):
            current = self._ledger.get(booking_id)

            if current.status not in TRANSITIONS[target]:
                raise InvalidStateError(
                    f"Booking {booking_id} is {current.status.value} and cannot become {target.value}"
                )

            profile = self._availability_store.get_profile(professional_id)
            updated = replace(
                current,
                status=target,
                updated_at=self._clock(profile.timezone),
                cancellation_reason=reason if target == BookingStatus.CANCELLED else current.cancellation_reason,
            )
            self._ledger.update(updated)

        logger.info("Booking %s: %s -> %s", booking_id, current.status.value, target.value)
        return updated

    # Schedule mutations

    def register_professional(self, profile: AvailabilityProfile) -> AvailabilityProfile:
        """Store a new professional's profile, overwriting any existing one."""
        with self._ledger.transaction(profile.professional_id):
            self._availability_store.save_profile(profile)
        logger.info("Registered professional %s", profile.professional_id)
        return profile

    def get_profile(self, professional_id: str) -> AvailabilityProfile:
        return self._availability_store.get_profile(professional_id)

    def set_weekly_schedule(self, professional_id: str, schedule: WeeklySchedule) -> AvailabilityProfile:
        return self._update_profile(professional_id, weekly_schedule=schedule)

    def set_day_schedule(
        self,
        professional_id: str,
        weekday: Weekday | str,
        enabled: bool,
        start_time: time | str = "09:00",
        end_time: time | str = "17:00",
    ) -> AvailabilityProfile:
        if isinstance(weekday, str):
            weekday = Weekday.parse(weekday)
        day = DaySchedule(enabled=enabled, start_time=parse_time(start_time), end_time=parse_time(end_time))
        return self._update_profile(
            professional_id,
            derive=lambda profile: {"weekly_schedule": profile.weekly_schedule.with_day(weekday, day)},
        )

    def set_buffer_minutes(self, professional_id: str, minutes: int) -> AvailabilityProfile:
        return self._update_profile(professional_id, buffer_minutes=minutes)

    def set_auto_decline(self, professional_id: str, enabled: bool) -> AvailabilityProfile:
        return self._update_profile(professional_id, auto_decline=enabled)

    def set_vacation(
        self,
        professional_id: str,
        start_date: date | str,
        end_date: date | str,
        enabled: bool = True,
    ) -> AvailabilityProfile:
        """Store the vacation range and switch vacation mode on or off."""
        vacation = VacationPeriod(start_date=parse_date(start_date), end_date=parse_date(end_date))
        return self._update_profile(professional_id, vacation=vacation, vacation_mode=enabled)

    def clear_vacation(self, professional_id: str) -> AvailabilityProfile:
        return self._update_profile(professional_id, vacation=None, vacation_mode=False)

    def set_blocked_dates(self, professional_id: str, days: Iterable[date | str]) -> AvailabilityProfile:
        return self._update_profile(
            professional_id,
            blocked_dates=frozenset(parse_date(day) for day in days),
        )

    def block_date(self, professional_id: str, day: date | str) -> AvailabilityProfile:
        blocked = parse_date(day)
        return self._update_profile(
            professional_id,
            derive=lambda profile: {"blocked_dates": profile.blocked_dates | {blocked}},
        )

    def unblock_date(self, professional_id: str, day: date | str) -> AvailabilityProfile:
        unblocked = parse_date(day)
        return self._update_profile(
            professional_id,
            derive=lambda profile: {"blocked_dates": profile.blocked_dates - {unblocked}},
        )

    def _update_profile(
        self,
        professional_id: str,
        derive: Optional[Callable[[AvailabilityProfile], Dict[str, Any]]] = None,
        **changes: Any,
    ) -> AvailabilityProfile:
        """
        Overwrite profile fields and, with auto-decline on, cancel the
        Pending bookings on dates that just became unavailable.
        """
        declined: List[Booking] = []

        with self._ledger.transaction(professional_id):
            profile = self._availability_store.get_profile(professional_id)
            if derive is not None:
                changes.update(derive(profile))
            updated = profile.updated(**changes)
            self._availability_store.save_profile(updated)

            if updated.auto_decline:
                declined = self._decline_unavailable(profile, updated)

        for booking in declined:
            self._publish(BookingCancelled(booking=booking, reason=AUTO_DECLINE_REASON))

        return updated

    def _decline_unavailable(
        self,
        before: AvailabilityProfile,
        after: AvailabilityProfile,
    ) -> List[Booking]:
        now = self._clock(after.timezone)
        declined: List[Booking] = []

        for booking in self._ledger.list_active(after.professional_id, start_date=now.date()):
            if booking.status != BookingStatus.PENDING:
                continue

            was_open = not (before.is_on_vacation(booking.date) or before.is_blocked(booking.date))
            now_closed = after.is_on_vacation(booking.date) or after.is_blocked(booking.date)
            if not (was_open and now_closed):
                continue

            cancelled = replace(
                booking,
                status=BookingStatus.CANCELLED,
                updated_at=now,
                cancellation_reason=AUTO_DECLINE_REASON,
            )
            self._ledger.update(cancelled)
            declined.append(cancelled)
            logger.info(
                "Auto-declined booking %s on %s for %s",
                booking.id, booking.date.isoformat(), after.professional_id,
            )

        return declined

    def _publish(self, event: BookingEvent) -> None:
        if self._publisher is not None:
            self._publisher.publish(event)

