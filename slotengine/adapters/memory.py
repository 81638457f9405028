"""
Thread-safe in-memory stores.

Used by the tests and by embedders that keep state elsewhere. The ledger
enforces the same "one active booking per (professional, date, start)"
uniqueness as the SQLite store.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import date
from typing import Dict, Iterator, List, Optional

from ..domain.exceptions import ConflictCode, ConflictError, NotFoundError
from ..domain.models import AvailabilityProfile, Booking
from .base import in_range, sort_key


class InMemoryAvailabilityStore:
    """Keeps availability profiles in a dict."""

    def __init__(self, profiles: Optional[List[AvailabilityProfile]] = None):
        self._profiles: Dict[str, AvailabilityProfile] = {}
        self._lock = threading.Lock()
        for profile in profiles or []:
            self.save_profile(profile)

    def get_profile(self, professional_id: str) -> AvailabilityProfile:
        with self._lock:
            profile = self._profiles.get(professional_id)
        if profile is None:
            raise NotFoundError(f"Unknown professional: {professional_id}")
        return profile

    def save_profile(self, profile: AvailabilityProfile) -> None:
        with self._lock:
            self._profiles[profile.professional_id] = profile

    def list_professionals(self) -> List[str]:
        with self._lock:
            return sorted(self._profiles)


class InMemoryBookingLedger:
    """
    Keeps bookings in a dict with one re-entrant lock per professional.
    """

    def __init__(self) -> None:
        self._bookings: Dict[str, Booking] = {}
        self._data_lock = threading.RLock()
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, professional_id: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(professional_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[professional_id] = lock
            return lock

    @contextmanager
    def transaction(self, professional_id: str) -> Iterator[None]:
        with self._lock_for(professional_id):
            yield

    def get(self, booking_id: str) -> Booking:
        with self._data_lock:
            booking = self._bookings.get(booking_id)
        if booking is None:
            raise NotFoundError(f"Unknown booking: {booking_id}")
        return booking

    def list_active(
        self,
        professional_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Booking]:
        return [
            booking for booking in self.list_for_professional(professional_id)
            if booking.status.is_active and in_range(booking, start_date, end_date)
        ]

    def list_for_professional(self, professional_id: str) -> List[Booking]:
        with self._data_lock:
            bookings = [
                booking for booking in self._bookings.values()
                if booking.professional_id == professional_id
            ]
        return sorted(bookings, key=sort_key)

    def add(self, booking: Booking) -> None:
        with self._data_lock:
            if booking.id in self._bookings:
                raise ValueError(f"Booking {booking.id} already exists")
            self._check_unique_start(booking)
            self._bookings[booking.id] = booking

    def update(self, booking: Booking) -> None:
        with self._data_lock:
            if booking.id not in self._bookings:
                raise NotFoundError(f"Unknown booking: {booking.id}")
            self._check_unique_start(booking)
            self._bookings[booking.id] = booking

    def _check_unique_start(self, booking: Booking) -> None:
        if not booking.status.is_active:
            return
        for other in self._bookings.values():
            if (
                other.id != booking.id
                and other.status.is_active
                and other.professional_id == booking.professional_id
                and other.date == booking.date
                and other.start_time == booking.start_time
            ):
                raise ConflictError(
                    ConflictCode.SLOT_ALREADY_TAKEN,
                    f"Booking {other.id} already starts at this time",
                )
