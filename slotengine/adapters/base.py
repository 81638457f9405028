"""
Protocols describing the storage collaborators of the engine.

The services depend only on these protocols, so the in-memory store used in
tests and the SQLite store used by the CLI are interchangeable.
"""

from __future__ import annotations

from datetime import date
from typing import ContextManager, List, Optional, Protocol

from ..domain.models import AvailabilityProfile, Booking


class AvailabilityStore(Protocol):
    """Professional Availability Store, keyed by professional id."""

    def get_profile(self, professional_id: str) -> AvailabilityProfile:
        """Return the profile or raise NotFoundError."""

    def save_profile(self, profile: AvailabilityProfile) -> None:
        """Overwrite the stored profile."""

    def list_professionals(self) -> List[str]:
        """Return all known professional ids."""


class BookingLedger(Protocol):
    """
    Booking Ledger, keyed by professional id and date.

    ``transaction`` serialises writers for one professional. Every
    check-and-write of a booking must run inside it.
    """

    def get(self, booking_id: str) -> Booking:
        """Return the booking or raise NotFoundError."""

    def list_active(
        self,
        professional_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Booking]:
        """Return Pending and Confirmed bookings, optionally within a date range."""

    def list_for_professional(self, professional_id: str) -> List[Booking]:
        """Return every booking of the professional, in date order."""

    def add(self, booking: Booking) -> None:
        """Insert a new booking."""

    def update(self, booking: Booking) -> None:
        """Overwrite an existing booking."""

    def transaction(self, professional_id: str) -> ContextManager[None]:
        """Hold the professional's write lock for the duration of the block."""


def in_range(booking: Booking, start_date: Optional[date], end_date: Optional[date]) -> bool:
    if start_date is not None and booking.date < start_date:
        return False
    if end_date is not None and booking.date > end_date:
        return False
    return True


def sort_key(booking: Booking):
    return (booking.date, booking.start_time, booking.id)
