"""
Turns one day's opening window into candidate start times.

Pure domain logic: no I/O, no clock, no state.
"""

from datetime import time
from typing import Optional, Tuple

from .exceptions import ValidationError
from .models import from_minutes, to_minutes

DEFAULT_INTERVAL_MINUTES = 30


def generate_slot_starts(
    start_time: time,
    end_time: time,
    interval_minutes: int = DEFAULT_INTERVAL_MINUTES,
    service_duration_minutes: Optional[int] = None,
) -> Tuple[time, ...]:
    """
    Generate candidate start times within ``[start_time, end_time]``.

    Starts step by ``interval_minutes`` from ``start_time``; the last start
    is the latest one where ``start + duration <= end_time``. A window
    shorter than one service duration yields an empty tuple.

    Example:
    Window: 09:00 - 11:00, interval 30, duration 60
    Result: (09:00, 09:30, 10:00)

    Args:
        start_time: Opening time of the window
        end_time: Closing time of the window
        interval_minutes: Step between consecutive starts
        service_duration_minutes: Length of one job, defaults to the interval

    Returns:
        Tuple of start times in ascending order
    """
    duration = service_duration_minutes if service_duration_minutes is not None else interval_minutes

    if interval_minutes <= 0:
        raise ValidationError(f"interval_minutes must be greater than zero, got {interval_minutes}")
    if duration <= 0:
        raise ValidationError(f"service_duration_minutes must be greater than zero, got {duration}")

    first = to_minutes(start_time)
    last = to_minutes(end_time) - duration

    if last < first:
        return ()

    return tuple(
        from_minutes(minute)
        for minute in range(first, last + 1, interval_minutes)
    )
