"""
Tests for the booking service facade: listing, lifecycle and schedule changes.
"""

from datetime import date

import pytest

from slotengine.domain.events import (
    BookingCancelled,
    BookingCompleted,
    BookingConfirmed,
    InMemoryEventBus,
)
from slotengine.domain.exceptions import InvalidStateError, NotFoundError, ValidationError
from slotengine.domain.models import BookingStatus, WeeklySchedule, Weekday
from slotengine.services.booking_service import AUTO_DECLINE_REASON, BookingService

from tests.conftest import (
    MONDAY,
    PRO,
    SATURDAY,
    TUESDAY,
    make_profile,
    monday_only,
    start_times,
)

WEDNESDAY = date(2024, 11, 27)


class TestListAvailableSlots:
    """Listing through the service."""

    def test_lists_open_week(self, service):
        slots = service.list_available_slots(PRO, "2024-11-25", "2024-12-01")

        assert {slot.date for slot in slots} == {
            date(2024, 11, 25), date(2024, 11, 26), date(2024, 11, 27),
            date(2024, 11, 28), date(2024, 11, 29),
        }
        assert len(slots) == 5 * 16

    def test_reversed_range_is_empty(self, service):
        assert service.list_available_slots(PRO, TUESDAY, MONDAY) == ()

    def test_unknown_professional(self, service):
        with pytest.raises(NotFoundError):
            service.list_available_slots("nobody", MONDAY, TUESDAY)

    def test_malformed_date(self, service):
        with pytest.raises(ValidationError):
            service.list_available_slots(PRO, "next monday", TUESDAY)

    def test_completed_booking_frees_its_slot(self, service):
        booking = service.reserve_slot(PRO, "cust-1", MONDAY, "10:00")
        assert "10:00" not in start_times(service.list_available_slots(PRO, MONDAY, MONDAY))

        service.complete_booking(booking.id)

        assert "10:00" in start_times(service.list_available_slots(PRO, MONDAY, MONDAY))


class TestLifecycle:
    """Status transitions and their events."""

    def test_confirm_pending(self, service, bus):
        booking = service.reserve_slot(PRO, "cust-1", MONDAY, "10:00")

        confirmed = service.confirm_booking(booking.id)

        assert confirmed.status == BookingStatus.CONFIRMED
        assert bus.of_type(BookingConfirmed) == [BookingConfirmed(booking=confirmed)]

    def test_cancel_records_reason(self, service, bus):
        booking = service.reserve_slot(PRO, "cust-1", MONDAY, "10:00")

        cancelled = service.cancel_booking(booking.id, reason="customer request")

        assert cancelled.status == BookingStatus.CANCELLED
        assert cancelled.cancellation_reason == "customer request"
        assert bus.of_type(BookingCancelled)[-1].reason == "customer request"

    def test_complete_confirmed(self, service, bus):
        booking = service.reserve_slot(PRO, "cust-1", MONDAY, "10:00")
        service.confirm_booking(booking.id)

        completed = service.complete_booking(booking.id)

        assert completed.status == BookingStatus.COMPLETED
        assert len(bus.of_type(BookingCompleted)) == 1

    @pytest.mark.parametrize("finish", ["cancel_booking", "complete_booking"])
    def test_terminal_states_are_final(self, service, finish):
        booking = service.reserve_slot(PRO, "cust-1", MONDAY, "10:00")
        getattr(service, finish)(booking.id)

        with pytest.raises(InvalidStateError):
            service.confirm_booking(booking.id)
        with pytest.raises(InvalidStateError):
            service.cancel_booking(booking.id)
        with pytest.raises(InvalidStateError):
            service.complete_booking(booking.id)

    def test_confirming_twice_is_rejected(self, service):
        booking = service.reserve_slot(PRO, "cust-1", MONDAY, "10:00")
        service.confirm_booking(booking.id)

        with pytest.raises(InvalidStateError):
            service.confirm_booking(booking.id)

    def test_unknown_booking(self, service):
        with pytest.raises(NotFoundError):
            service.confirm_booking("missing")

    def test_list_bookings_in_date_order(self, service):
        later = service.reserve_slot(PRO, "cust-1", TUESDAY, "09:00")
        earlier = service.reserve_slot(PRO, "cust-2", MONDAY, "15:00")

        assert [b.id for b in service.list_bookings(PRO)] == [earlier.id, later.id]

    def test_failing_subscriber_does_not_undo_the_change(self, store, ledger, clock):
        bus = InMemoryEventBus()

        def explode(event):
            raise RuntimeError("mailer down")

        bus.subscribe(explode)

        service = BookingService(store, ledger, publisher=bus, clock=clock)
        booking = service.reserve_slot(PRO, "cust-1", MONDAY, "10:00")

        assert ledger.get(booking.id).status == BookingStatus.PENDING
        assert len(bus.events) == 1


class TestScheduleMutations:
    """Changes to the professional's profile."""

    def test_register_and_get_profile(self, service):
        profile = make_profile(professional_id="pro-ben", buffer_minutes=10)

        service.register_professional(profile)

        assert service.get_profile("pro-ben").buffer_minutes == 10

    def test_set_day_schedule(self, service):
        service.set_day_schedule(PRO, "saturday", True, "10:00", "12:00")

        slots = service.list_available_slots(PRO, SATURDAY, SATURDAY)

        assert start_times(slots) == ["10:00", "10:30", "11:00", "11:30"]

    def test_disable_day(self, service):
        service.set_day_schedule(PRO, Weekday.TUESDAY, False)

        assert service.list_available_slots(PRO, TUESDAY, TUESDAY) == ()

    def test_set_weekly_schedule(self, service):
        service.set_weekly_schedule(PRO, monday_only("13:00", "15:00"))

        slots = service.list_available_slots(PRO, MONDAY, TUESDAY)

        assert start_times(slots) == ["13:00", "13:30", "14:00", "14:30"]

    def test_buffer_change_applies_to_next_listing(self, service):
        service.reserve_slot(PRO, "cust-1", MONDAY, "10:00")

        service.set_buffer_minutes(PRO, 30)

        starts = start_times(service.list_available_slots(PRO, MONDAY, MONDAY))
        assert "09:30" not in starts
        assert "10:30" not in starts
        assert "11:00" in starts

    def test_negative_buffer_is_rejected(self, service):
        with pytest.raises(ValidationError):
            service.set_buffer_minutes(PRO, -1)

    def test_block_and_unblock(self, service):
        service.block_date(PRO, "2024-11-26")
        assert service.list_available_slots(PRO, TUESDAY, TUESDAY) == ()

        service.unblock_date(PRO, "2024-11-26")
        assert len(service.list_available_slots(PRO, TUESDAY, TUESDAY)) == 16

    def test_set_blocked_dates_replaces_the_set(self, service):
        service.block_date(PRO, TUESDAY)

        profile = service.set_blocked_dates(PRO, ["2024-11-27"])

        assert profile.blocked_dates == frozenset({WEDNESDAY})

    def test_vacation_and_clear(self, service):
        service.set_vacation(PRO, MONDAY, TUESDAY)
        assert {s.date for s in service.list_available_slots(PRO, MONDAY, WEDNESDAY)} == {WEDNESDAY}

        service.clear_vacation(PRO)
        assert len(service.list_available_slots(PRO, MONDAY, WEDNESDAY)) == 3 * 16

    def test_vacation_stored_but_off(self, service):
        profile = service.set_vacation(PRO, MONDAY, TUESDAY, enabled=False)

        assert profile.vacation is not None
        assert len(service.list_available_slots(PRO, MONDAY, MONDAY)) == 16

    def test_existing_bookings_survive_schedule_changes(self, service):
        booking = service.reserve_slot(PRO, "cust-1", TUESDAY, "10:00")

        service.block_date(PRO, TUESDAY)

        assert service.get_booking(booking.id).status == BookingStatus.PENDING

    def test_unknown_professional(self, service):
        with pytest.raises(NotFoundError):
            service.set_buffer_minutes("nobody", 10)


class TestAutoDecline:
    """Pending bookings on newly closed dates are declined automatically."""

    def test_blocking_declines_pending(self, service, bus):
        service.set_auto_decline(PRO, True)
        pending = service.reserve_slot(PRO, "cust-1", TUESDAY, "10:00")
        untouched = service.reserve_slot(PRO, "cust-2", WEDNESDAY, "10:00")

        service.block_date(PRO, TUESDAY)

        declined = service.get_booking(pending.id)
        assert declined.status == BookingStatus.CANCELLED
        assert declined.cancellation_reason == AUTO_DECLINE_REASON
        assert service.get_booking(untouched.id).status == BookingStatus.PENDING

        event = bus.of_type(BookingCancelled)[-1]
        assert event.booking.id == pending.id
        assert event.reason == AUTO_DECLINE_REASON

    def test_confirmed_bookings_are_kept(self, service):
        service.set_auto_decline(PRO, True)
        booking = service.reserve_slot(PRO, "cust-1", TUESDAY, "10:00")
        service.confirm_booking(booking.id)

        service.set_vacation(PRO, MONDAY, WEDNESDAY)

        assert service.get_booking(booking.id).status == BookingStatus.CONFIRMED

    def test_vacation_declines_pending(self, service):
        service.set_auto_decline(PRO, True)
        booking = service.reserve_slot(PRO, "cust-1", WEDNESDAY, "10:00")

        service.set_vacation(PRO, TUESDAY, WEDNESDAY)

        assert service.get_booking(booking.id).status == BookingStatus.CANCELLED

    def test_disabled_keeps_pending(self, service, bus):
        booking = service.reserve_slot(PRO, "cust-1", TUESDAY, "10:00")

        service.block_date(PRO, TUESDAY)

        assert service.get_booking(booking.id).status == BookingStatus.PENDING
        assert bus.of_type(BookingCancelled) == []

    def test_weekly_schedule_change_does_not_decline(self, service):
        service.set_auto_decline(PRO, True)
        booking = service.reserve_slot(PRO, "cust-1", TUESDAY, "10:00")

        service.set_weekly_schedule(PRO, WeeklySchedule(days={}))

        assert service.get_booking(booking.id).status == BookingStatus.PENDING
