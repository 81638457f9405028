"""
Domain events emitted after a booking change has been committed.

Delivery (email, SMS, push, analytics) belongs to external consumers; the
engine only publishes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, time
from typing import Callable, List, Optional, Protocol, Union

from .models import Booking

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingReserved:
    booking: Booking


@dataclass(frozen=True)
class BookingRescheduled:
    booking: Booking
    previous_date: date
    previous_start_time: time
    previous_end_time: time


@dataclass(frozen=True)
class BookingCancelled:
    booking: Booking
    reason: Optional[str] = None


@dataclass(frozen=True)
class BookingConfirmed:
    booking: Booking


@dataclass(frozen=True)
class BookingCompleted:
    booking: Booking


BookingEvent = Union[
    BookingReserved,
    BookingRescheduled,
    BookingCancelled,
    BookingConfirmed,
    BookingCompleted,
]


class EventPublisher(Protocol):
    """Protocol describing where committed booking events are sent."""

    def publish(self, event: BookingEvent) -> None:
        """Hand one event to its consumers."""


class InMemoryEventBus:
    """
    Records published events and fans them out to subscribers.

    A failing subscriber is logged and does not affect the others or the
    already committed booking change.
    """

    def __init__(self) -> None:
        self.events: List[BookingEvent] = []
        self._subscribers: List[Callable[[BookingEvent], None]] = []

    def subscribe(self, handler: Callable[[BookingEvent], None]) -> None:
        self._subscribers.append(handler)

    def publish(self, event: BookingEvent) -> None:
        self.events.append(event)
        logger.debug("Published %s for booking %s", type(event).__name__, event.booking.id)

        for handler in self._subscribers:
            try:
                handler(event)
            except Exception:
                logger.exception("Event subscriber %r failed for %s", handler, type(event).__name__)

    def of_type(self, event_type: type) -> List[BookingEvent]:
        return [event for event in self.events if isinstance(event, event_type)]
