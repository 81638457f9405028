"""Shared test fixtures and helpers."""

from datetime import date, time
from typing import Optional

import pendulum
import pytest

from slotengine.adapters.memory import InMemoryAvailabilityStore, InMemoryBookingLedger
from slotengine.domain.events import InMemoryEventBus
from slotengine.domain.models import (
    AvailabilityProfile,
    Booking,
    BookingStatus,
    DaySchedule,
    WeeklySchedule,
    Weekday,
)
from slotengine.services.booking_service import BookingService

TZ = "Europe/Berlin"
PRO = "pro-anna"

MONDAY = date(2024, 11, 25)
TUESDAY = date(2024, 11, 26)
SATURDAY = date(2024, 11, 30)
SUNDAY_BEFORE = date(2024, 11, 24)


class FakeClock:
    """Clock returning a settable instant in the requested timezone."""

    def __init__(self, now: pendulum.DateTime):
        self.now = now

    def set(self, value: str) -> None:
        self.now = pendulum.parse(value, tz=TZ)

    def __call__(self, timezone: str) -> pendulum.DateTime:
        return self.now.in_timezone(timezone)


def make_profile(**overrides) -> AvailabilityProfile:
    """Monday-Friday 09:00-17:00, 30 minute slots, no buffer."""
    settings = dict(
        professional_id=PRO,
        weekly_schedule=WeeklySchedule.default(),
        timezone=TZ,
    )
    settings.update(overrides)
    return AvailabilityProfile(**settings)


def make_booking(
    start: str,
    end: str,
    day: date = MONDAY,
    status: BookingStatus = BookingStatus.CONFIRMED,
    booking_id: str = "b1",
    customer_id: str = "cust-1",
) -> Booking:
    return Booking(
        id=booking_id,
        professional_id=PRO,
        customer_id=customer_id,
        date=day,
        start_time=time.fromisoformat(start),
        end_time=time.fromisoformat(end),
        status=status,
    )


def monday_only(start: str = "09:00", end: str = "17:00") -> WeeklySchedule:
    return WeeklySchedule(days={
        Weekday.MONDAY: DaySchedule(
            enabled=True,
            start_time=time.fromisoformat(start),
            end_time=time.fromisoformat(end),
        ),
    })


@pytest.fixture
def clock():
    # Monday morning, before opening time
    return FakeClock(pendulum.datetime(2024, 11, 25, 8, 0, tz=TZ))


@pytest.fixture
def store():
    return InMemoryAvailabilityStore([make_profile()])


@pytest.fixture
def ledger():
    return InMemoryBookingLedger()


@pytest.fixture
def bus():
    return InMemoryEventBus()


@pytest.fixture
def service(store, ledger, bus, clock):
    return BookingService(
        availability_store=store,
        ledger=ledger,
        publisher=bus,
        clock=clock,
    )


def start_times(slots, day: Optional[date] = None):
    """Start times as HH:MM strings, optionally for one date only."""
    return [
        slot.start_time.strftime("%H:%M")
        for slot in slots
        if day is None or slot.date == day
    ]
