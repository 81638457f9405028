"""
Tests for the reservation commit path.
"""

import threading
from datetime import time

import pytest

from slotengine.domain.events import BookingReserved
from slotengine.domain.exceptions import (
    ConflictCode,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from slotengine.domain.models import BookingStatus, VacationPeriod

from tests.conftest import MONDAY, PRO, SATURDAY, SUNDAY_BEFORE, TUESDAY, make_profile, start_times


class TestReserve:
    """Successful reservations."""

    def test_reserve_creates_pending_booking(self, service, ledger, bus, clock):
        booking = service.reserve_slot(PRO, "cust-1", "2024-11-25", "10:00")

        assert booking.status == BookingStatus.PENDING
        assert booking.date == MONDAY
        assert booking.start_time == time(10, 0)
        assert booking.end_time == time(10, 30)
        assert booking.created_at == clock.now
        assert ledger.get(booking.id) == booking
        assert bus.of_type(BookingReserved) == [BookingReserved(booking=booking)]

    def test_end_time_follows_service_duration(self, store, service):
        store.save_profile(make_profile(service_duration_minutes=60))

        booking = service.reserve_slot(PRO, "cust-1", MONDAY, time(14, 0))

        assert booking.end_time == time(15, 0)

    def test_reserved_slot_disappears_from_listing(self, service):
        service.reserve_slot(PRO, "cust-1", MONDAY, "10:00")

        starts = start_times(service.list_available_slots(PRO, MONDAY, MONDAY))

        assert "10:00" not in starts
        assert len(starts) == 15

    def test_adjacent_slots_without_buffer(self, service):
        service.reserve_slot(PRO, "cust-1", MONDAY, "10:00")

        booking = service.reserve_slot(PRO, "cust-2", MONDAY, "10:30")

        assert booking.start_time == time(10, 30)

    def test_cancelled_slot_can_be_reserved_again(self, service):
        first = service.reserve_slot(PRO, "cust-1", MONDAY, "10:00")
        service.cancel_booking(first.id)

        second = service.reserve_slot(PRO, "cust-2", MONDAY, "10:00")

        assert second.id != first.id
        assert second.status == BookingStatus.PENDING


class TestRejections:
    """Every way a commit can fail, and the error it fails with."""

    def test_same_slot_twice_is_taken(self, service):
        service.reserve_slot(PRO, "cust-1", MONDAY, "10:00")

        with pytest.raises(ConflictError) as exc_info:
            service.reserve_slot(PRO, "cust-2", MONDAY, "10:00")

        assert exc_info.value.code == ConflictCode.SLOT_ALREADY_TAKEN

    def test_buffer_is_enforced_at_commit(self, store, service):
        store.save_profile(make_profile(buffer_minutes=15))
        service.reserve_slot(PRO, "cust-1", MONDAY, "10:00")

        with pytest.raises(ConflictError) as exc_info:
            service.reserve_slot(PRO, "cust-2", MONDAY, "10:30")

        assert exc_info.value.code == ConflictCode.SLOT_ALREADY_TAKEN
        assert service.reserve_slot(PRO, "cust-2", MONDAY, "11:00").start_time == time(11, 0)

    def test_blocked_after_listing_is_no_longer_available(self, service):
        listed = service.list_available_slots(PRO, TUESDAY, TUESDAY)
        assert listed

        service.block_date(PRO, TUESDAY)

        with pytest.raises(ConflictError) as exc_info:
            service.reserve_slot(PRO, "cust-1", TUESDAY, listed[0].start_time)

        assert exc_info.value.code == ConflictCode.SLOT_NO_LONGER_AVAILABLE

    def test_vacation_is_no_longer_available(self, store, service):
        store.save_profile(make_profile(
            vacation=VacationPeriod(start_date=MONDAY, end_date=TUESDAY),
            vacation_mode=True,
        ))

        with pytest.raises(ConflictError) as exc_info:
            service.reserve_slot(PRO, "cust-1", TUESDAY, "10:00")

        assert exc_info.value.code == ConflictCode.SLOT_NO_LONGER_AVAILABLE

    @pytest.mark.parametrize("start", ["08:30", "16:45", "10:10"])
    def test_outside_hours_or_off_grid(self, service, start):
        with pytest.raises(ConflictError) as exc_info:
            service.reserve_slot(PRO, "cust-1", MONDAY, start)

        assert exc_info.value.code == ConflictCode.SLOT_NO_LONGER_AVAILABLE

    def test_start_already_passed_today(self, service, clock):
        clock.set("2024-11-25T10:15:00")

        with pytest.raises(ConflictError) as exc_info:
            service.reserve_slot(PRO, "cust-1", MONDAY, "10:00")

        assert exc_info.value.code == ConflictCode.SLOT_NO_LONGER_AVAILABLE

    def test_closed_weekday_is_a_validation_error(self, service):
        with pytest.raises(ValidationError):
            service.reserve_slot(PRO, "cust-1", SATURDAY, "10:00")

    def test_past_date_is_a_validation_error(self, service):
        with pytest.raises(ValidationError):
            service.reserve_slot(PRO, "cust-1", SUNDAY_BEFORE, "10:00")

    @pytest.mark.parametrize("day, start", [("25/11/2024", "10:00"), ("2024-11-25", "ten")])
    def test_malformed_input(self, service, day, start):
        with pytest.raises(ValidationError):
            service.reserve_slot(PRO, "cust-1", day, start)

    def test_empty_customer(self, service):
        with pytest.raises(ValidationError):
            service.reserve_slot(PRO, "", MONDAY, "10:00")

    def test_unknown_professional(self, service):
        with pytest.raises(NotFoundError):
            service.reserve_slot("nobody", "cust-1", MONDAY, "10:00")

    def test_rejection_writes_nothing(self, service, ledger, bus):
        service.reserve_slot(PRO, "cust-1", MONDAY, "10:00")

        with pytest.raises(ConflictError):
            service.reserve_slot(PRO, "cust-2", MONDAY, "10:00")

        assert len(ledger.list_for_professional(PRO)) == 1
        assert len(bus.of_type(BookingReserved)) == 1

    def test_conflict_message_names_the_code(self, service):
        service.reserve_slot(PRO, "cust-1", MONDAY, "10:00")

        with pytest.raises(ConflictError, match="SLOT_ALREADY_TAKEN"):
            service.reserve_slot(PRO, "cust-2", MONDAY, "10:00")


class TestConcurrency:
    """Simultaneous commits for the same slot."""

    def test_exactly_one_of_many_wins(self, service, ledger):
        workers = 12
        barrier = threading.Barrier(workers)
        successes = []
        failures = []
        errors = []

        def attempt(customer_id):
            barrier.wait()
            try:
                successes.append(service.reserve_slot(PRO, customer_id, MONDAY, "10:00"))
            except ConflictError as exc:
                failures.append(exc.code)
            except Exception as exc:  # surfaced by the assertion below
                errors.append(exc)

        threads = [
            threading.Thread(target=attempt, args=(f"cust-{index}",))
            for index in range(workers)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(successes) == 1
        assert failures == [ConflictCode.SLOT_ALREADY_TAKEN] * (workers - 1)
        assert len(ledger.list_active(PRO)) == 1

    def test_different_slots_all_succeed(self, service):
        starts = ["09:00", "10:00", "11:00", "12:00"]
        barrier = threading.Barrier(len(starts))
        results = []

        def attempt(start):
            barrier.wait()
            results.append(service.reserve_slot(PRO, f"cust-{start}", MONDAY, start))

        threads = [threading.Thread(target=attempt, args=(start,)) for start in starts]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(booking.start_time.strftime("%H:%M") for booking in results) == starts
