"""
The commit path that turns a chosen slot into a Pending booking.

A slot list the customer picked from may already be stale, so the guard
re-reads the profile and the ledger inside the professional's transaction
and re-checks every rule, including buffer time, before inserting.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, time
from typing import Callable, Iterable, Optional

import pendulum
from pendulum import DateTime

from ..adapters.base import AvailabilityStore, BookingLedger
from ..domain.availability import AvailabilityResolver, UnavailableReason
from ..domain.events import BookingReserved, EventPublisher
from ..domain.exceptions import ConflictCode, ConflictError, ValidationError
from ..domain.models import (
    AvailabilityProfile,
    Booking,
    BookingStatus,
    format_time,
    from_minutes,
    parse_date,
    parse_time,
    to_minutes,
)

logger = logging.getLogger(__name__)

Clock = Callable[[str], DateTime]

NO_LONGER_AVAILABLE = (
    UnavailableReason.VACATION,
    UnavailableReason.BLOCKED_DATE,
    UnavailableReason.OUTSIDE_WINDOW,
    UnavailableReason.OFF_GRID,
    UnavailableReason.IN_PAST,
)


def default_end_time(profile: AvailabilityProfile, start_time: time, duration_minutes: Optional[int] = None) -> time:
    """End of a job starting at ``start_time``; it must finish the same day."""
    minutes = duration_minutes or profile.duration_minutes
    end = to_minutes(start_time) + minutes
    if end >= 24 * 60:
        raise ValidationError(
            f"A {minutes} minute job starting at {format_time(start_time)} would end after midnight"
        )
    return from_minutes(end)


def verify_slot(
    profile: AvailabilityProfile,
    day: date,
    start_time: time,
    end_time: time,
    bookings: Iterable[Booking],
    now: DateTime,
    exclude_booking_id: Optional[str] = None,
) -> None:
    """
    Raise unless the slot can be committed right now.

    Raises:
        ValidationError: Closed weekday or a date in the past
        ConflictError: SLOT_NO_LONGER_AVAILABLE when the schedule changed,
            SLOT_ALREADY_TAKEN when an active booking (plus buffer) overlaps
    """
    if end_time <= start_time:
        raise ValidationError(
            f"End time {format_time(end_time)} must be after start time {format_time(start_time)}"
        )
    if day < now.date():
        raise ValidationError(f"{day.isoformat()} is in the past")

    verdict = AvailabilityResolver(profile).check_slot(
        day=day,
        start_time=start_time,
        end_time=end_time,
        bookings=bookings,
        now=now,
        exclude_booking_id=exclude_booking_id,
    )

    if verdict.available:
        return

    if verdict.reason == UnavailableReason.DAY_CLOSED:
        raise ValidationError(f"{day.isoformat()}: {verdict.message}")

    if verdict.reason in NO_LONGER_AVAILABLE:
        raise ConflictError(ConflictCode.SLOT_NO_LONGER_AVAILABLE, verdict.message)

    raise ConflictError(
        ConflictCode.SLOT_ALREADY_TAKEN,
        f"{verdict.message} (booking {verdict.conflicting_booking_id})",
    )


class ConflictGuard:
    """
    Grants at most one customer any given slot.

    Writes for one professional are serialised through the ledger's
    transaction; the check and the insert happen inside it.
    """

    def __init__(
        self,
        availability_store: AvailabilityStore,
        ledger: BookingLedger,
        publisher: Optional[EventPublisher] = None,
        clock: Clock = pendulum.now,
        id_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ) -> None:
        self._availability_store = availability_store
        self._ledger = ledger
        self._publisher = publisher
        self._clock = clock
        self._id_factory = id_factory

    def reserve(
        self,
        professional_id: str,
        customer_id: str,
        date: date | str,
        start_time: time | str,
        end_time: time | str | None = None,
    ) -> Booking:
        """
        Atomically check the slot and insert a Pending booking.

        Args:
            professional_id: Professional being booked
            customer_id: Customer making the booking
            date: Date of the slot
            start_time: Start of the slot
            end_time: End of the slot, defaults to start + service duration

        Returns:
            The new booking

        Raises:
            ValidationError, NotFoundError, ConflictError
        """
        if not customer_id:
            raise ValidationError("customer_id must not be empty")

        day = parse_date(date)
        start = parse_time(start_time)
        end = parse_time(end_time) if end_time is not None else None

        with self._ledger.transaction(professional_id):
            profile = self._availability_store.get_profile(professional_id)
            if end is None:
                end = default_end_time(profile, start)

            now = self._clock(profile.timezone)
            bookings = self._ledger.list_active(professional_id, day, day)

            try:
                verify_slot(profile, day, start, end, bookings, now)
            except ConflictError as exc:
                logger.warning(
                    "Reservation of %s %s for %s rejected: %s",
                    day.isoformat(), format_time(start), professional_id, exc.code.value,
                )
                raise

            booking = Booking(
                id=self._id_factory(),
                professional_id=professional_id,
                customer_id=customer_id,
                date=day,
                start_time=start,
                end_time=end,
                status=BookingStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            self._ledger.add(booking)

        logger.info(
            "Reserved %s %s-%s with %s for %s (booking %s)",
            day.isoformat(), format_time(start), format_time(end),
            professional_id, customer_id, booking.id,
        )

        if self._publisher is not None:
            self._publisher.publish(BookingReserved(booking=booking))

        return booking
