"""
iCalendar (RFC 5545) export of a booking.
"""

from typing import Optional

import pendulum
from pendulum import DateTime

from ..domain.models import Booking, BookingStatus

PRODUCT_ID = "-//slotengine//Booking//EN"
ICAL_DATETIME_FORMAT = "YYYYMMDD[T]HHmmss[Z]"


def _escape(text: str) -> str:
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
    )


def _utc_stamp(value: DateTime) -> str:
    return value.in_timezone("UTC").format(ICAL_DATETIME_FORMAT)


def _local_datetime(booking: Booking, timezone: str, use_end: bool) -> DateTime:
    moment = booking.end_time if use_end else booking.start_time
    return pendulum.datetime(
        booking.date.year,
        booking.date.month,
        booking.date.day,
        moment.hour,
        moment.minute,
        tz=timezone,
    )


def render_ical(
    booking: Booking,
    timezone: str = "Europe/Berlin",
    summary: str = "Service Booking",
    description: Optional[str] = None,
    location: Optional[str] = None,
    now: Optional[DateTime] = None,
) -> str:
    """
    Render a single-event calendar for the booking.

    Times are converted from the professional's timezone to UTC. Confirmed
    bookings are exported as CONFIRMED, everything else as TENTATIVE
    (cancelled ones as CANCELLED).

    Returns:
        Calendar text with CRLF line endings
    """
    stamp = now or pendulum.now("UTC")

    if booking.status == BookingStatus.CONFIRMED:
        status = "CONFIRMED"
    elif booking.status == BookingStatus.CANCELLED:
        status = "CANCELLED"
    else:
        status = "TENTATIVE"

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODUCT_ID}",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        "BEGIN:VEVENT",
        f"UID:{booking.id}@slotengine",
        f"DTSTAMP:{_utc_stamp(stamp)}",
        f"DTSTART:{_utc_stamp(_local_datetime(booking, timezone, use_end=False))}",
        f"DTEND:{_utc_stamp(_local_datetime(booking, timezone, use_end=True))}",
        f"SUMMARY:{_escape(summary)}",
    ]

    if description:
        lines.append(f"DESCRIPTION:{_escape(description)}")
    if location:
        lines.append(f"LOCATION:{_escape(location)}")

    lines.extend([
        f"STATUS:{status}",
        "END:VEVENT",
        "END:VCALENDAR",
    ])

    return "\r\n".join(lines) + "\r\n"
