"""
Domain models for schedules, bookings and slots.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterator, Optional

import pendulum
from pendulum import DateTime

from .exceptions import ValidationError

DATE_FORMAT = "YYYY-MM-DD"
TIME_FORMAT = "HH:mm"


def parse_date(value: str | date) -> date:
    """Parse a YYYY-MM-DD string (or pass through a date)."""
    if isinstance(value, (date, datetime)):
        return date(value.year, value.month, value.day)
    try:
        parsed = pendulum.from_format(str(value).strip(), DATE_FORMAT)
    except ValueError as exc:
        raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD") from exc
    return date(parsed.year, parsed.month, parsed.day)


def parse_time(value: str | time) -> time:
    """Parse an HH:MM string (or pass through a time) at minute resolution."""
    if isinstance(value, time):
        return time(value.hour, value.minute)
    try:
        parsed = pendulum.from_format(str(value).strip(), TIME_FORMAT)
    except ValueError as exc:
        raise ValidationError(f"Invalid time '{value}', expected HH:MM") from exc
    return time(parsed.hour, parsed.minute)


def format_time(value: time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def to_minutes(value: time) -> int:
    """Minutes since midnight."""
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    if not 0 <= minutes < 24 * 60:
        raise ValidationError(f"Minute offset {minutes} is outside a single day")
    return time(hour=minutes // 60, minute=minutes % 60)


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Yield every calendar date from start to end, both inclusive."""
    first = date(start.year, start.month, start.day)
    last = date(end.year, end.month, end.day)
    # Counting days keeps a range ending on date.max from stepping past it
    for offset in range((last - first).days + 1):
        yield first + timedelta(days=offset)


@dataclass(frozen=True)
class TimeRange:
    """
    Half-open range of minutes within one day: [start, end).

    Invariant: start must be before end. Buffer expansion may push the
    bounds outside 00:00-24:00, which is fine for overlap checks.
    """
    start: int
    end: int

    def __post_init__(self):
        if self.start >= self.end:
            raise ValidationError(
                f"Start time {self.start} must be before end time {self.end}"
            )

    @classmethod
    def from_times(cls, start: time, end: time) -> "TimeRange":
        return cls(start=to_minutes(start), end=to_minutes(end))

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return self.end - self.start

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another."""
        return self.start < other.end and self.end > other.start

    def expand(self, minutes: int) -> "TimeRange":
        """Widen the range by ``minutes`` on both sides."""
        return TimeRange(start=self.start - minutes, end=self.end + minutes)

    def __str__(self) -> str:
        return f"{self.start // 60:02d}:{self.start % 60:02d} - {self.end // 60:02d}:{self.end % 60:02d}"


class Weekday(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def for_date(cls, day: date) -> "Weekday":
        return list(cls)[day.weekday()]

    @classmethod
    def parse(cls, value: str) -> "Weekday":
        key = value.strip().lower()
        for weekday in cls:
            if weekday.value == key or weekday.value[:3] == key:
                return weekday
        raise ValidationError(f"Unknown weekday '{value}'")


@dataclass(frozen=True)
class DaySchedule:
    """
    Opening window for one weekday.

    Invariant: if enabled, start_time < end_time.
    """
    enabled: bool
    start_time: time = time(9, 0)
    end_time: time = time(17, 0)

    def __post_init__(self):
        if self.enabled and self.start_time >= self.end_time:
            raise ValidationError(
                f"Start time {format_time(self.start_time)} must be before "
                f"end time {format_time(self.end_time)}"
            )

    def window(self) -> Optional[TimeRange]:
        """Return the open window, or None when the day is closed."""
        if not self.enabled:
            return None
        return TimeRange.from_times(self.start_time, self.end_time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "startTime": format_time(self.start_time),
            "endTime": format_time(self.end_time),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DaySchedule":
        return cls(
            enabled=bool(data.get("enabled", False)),
            start_time=parse_time(data.get("startTime", "09:00")),
            end_time=parse_time(data.get("endTime", "17:00")),
        )


@dataclass(frozen=True)
class WeeklySchedule:
    """Recurring weekday template. A missing weekday counts as closed."""
    days: Dict[Weekday, DaySchedule] = field(default_factory=dict)

    @classmethod
    def default(cls) -> "WeeklySchedule":
        """Weekdays 09:00-17:00, weekends closed."""
        return cls(days={
            weekday: DaySchedule(enabled=weekday not in (Weekday.SATURDAY, Weekday.SUNDAY))
            for weekday in Weekday
        })

    def for_date(self, day: date) -> Optional[DaySchedule]:
        return self.days.get(Weekday.for_date(day))

    def window_for(self, day: date) -> Optional[TimeRange]:
        schedule = self.for_date(day)
        if schedule is None:
            return None
        return schedule.window()

    def with_day(self, weekday: Weekday, schedule: DaySchedule) -> "WeeklySchedule":
        days = dict(self.days)
        days[weekday] = schedule
        return WeeklySchedule(days=days)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {weekday.value: self.days[weekday].to_dict() for weekday in Weekday if weekday in self.days}

    @classmethod
    def from_dict(cls, data: Dict[str, Dict[str, Any]]) -> "WeeklySchedule":
        return cls(days={
            Weekday.parse(name): DaySchedule.from_dict(day)
            for name, day in (data or {}).items()
        })


@dataclass(frozen=True)
class VacationPeriod:
    """Inclusive date range during which the professional is unavailable."""
    start_date: date
    end_date: date

    def __post_init__(self):
        if self.end_date < self.start_date:
            raise ValidationError(
                f"Vacation end {self.end_date} is before its start {self.start_date}"
            )

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def dates(self) -> Iterator[date]:
        return iter_dates(self.start_date, self.end_date)


@dataclass(frozen=True)
class AvailabilityProfile:
    """
    Everything the professional controls about their bookability.

    Mutations are full-field overwrites via ``dataclasses.replace``.
    """
    professional_id: str
    weekly_schedule: WeeklySchedule = field(default_factory=WeeklySchedule.default)
    timezone: str = "Europe/Berlin"
    vacation: Optional[VacationPeriod] = None
    vacation_mode: bool = False
    blocked_dates: FrozenSet[date] = frozenset()
    buffer_minutes: int = 0
    auto_decline: bool = False
    interval_minutes: int = 30
    service_duration_minutes: Optional[int] = None

    def __post_init__(self):
        if not self.professional_id:
            raise ValidationError("professional_id must not be empty")
        if self.buffer_minutes < 0:
            raise ValidationError("buffer_minutes must be zero or greater")
        if self.interval_minutes <= 0:
            raise ValidationError("interval_minutes must be greater than zero")
        if self.service_duration_minutes is not None and self.service_duration_minutes <= 0:
            raise ValidationError("service_duration_minutes must be greater than zero")

    @property
    def duration_minutes(self) -> int:
        """Service duration, defaulting to the slot interval."""
        return self.service_duration_minutes or self.interval_minutes

    def is_on_vacation(self, day: date) -> bool:
        return self.vacation_mode and self.vacation is not None and self.vacation.contains(day)

    def is_blocked(self, day: date) -> bool:
        return day in self.blocked_dates

    def updated(self, **changes: Any) -> "AvailabilityProfile":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "professionalId": self.professional_id,
            "availability": self.weekly_schedule.to_dict(),
            "timezone": self.timezone,
            "vacationMode": self.vacation_mode,
            "vacationStartDate": self.vacation.start_date.isoformat() if self.vacation else None,
            "vacationEndDate": self.vacation.end_date.isoformat() if self.vacation else None,
            "blockedDates": sorted(day.isoformat() for day in self.blocked_dates),
            "bufferTimeMinutes": self.buffer_minutes,
            "autoDeclineEnabled": self.auto_decline,
            "intervalMinutes": self.interval_minutes,
            "serviceDurationMinutes": self.service_duration_minutes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AvailabilityProfile":
        vacation = None
        if data.get("vacationStartDate") and data.get("vacationEndDate"):
            vacation = VacationPeriod(
                start_date=parse_date(data["vacationStartDate"]),
                end_date=parse_date(data["vacationEndDate"]),
            )
        return cls(
            professional_id=data["professionalId"],
            weekly_schedule=WeeklySchedule.from_dict(data.get("availability", {})),
            timezone=data.get("timezone", "Europe/Berlin"),
            vacation=vacation,
            vacation_mode=bool(data.get("vacationMode", False)),
            blocked_dates=frozenset(parse_date(day) for day in data.get("blockedDates", [])),
            buffer_minutes=int(data.get("bufferTimeMinutes", 0)),
            auto_decline=bool(data.get("autoDeclineEnabled", False)),
            interval_minutes=int(data.get("intervalMinutes", 30)),
            service_duration_minutes=data.get("serviceDurationMinutes"),
        )


class BookingStatus(str, Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

    @property
    def is_active(self) -> bool:
        """Active bookings occupy their slot and block others."""
        return self in (BookingStatus.PENDING, BookingStatus.CONFIRMED)

    @property
    def is_terminal(self) -> bool:
        return not self.is_active


ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


@dataclass(frozen=True)
class Booking:
    """A reservation of one professional's time by one customer."""
    id: str
    professional_id: str
    customer_id: str
    date: date
    start_time: time
    end_time: time
    status: BookingStatus = BookingStatus.PENDING
    created_at: Optional[DateTime] = None
    updated_at: Optional[DateTime] = None
    cancellation_reason: Optional[str] = None

    def __post_init__(self):
        if self.start_time >= self.end_time:
            raise ValidationError(
                f"Booking start {format_time(self.start_time)} must be before "
                f"end {format_time(self.end_time)}"
            )

    @property
    def time_range(self) -> TimeRange:
        return TimeRange.from_times(self.start_time, self.end_time)

    def duration_minutes(self) -> int:
        return self.time_range.duration_minutes()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "professionalId": self.professional_id,
            "customerId": self.customer_id,
            "date": self.date.isoformat(),
            "startTime": format_time(self.start_time),
            "endTime": format_time(self.end_time),
            "status": self.status.value,
            "createdAt": self.created_at.to_iso8601_string() if self.created_at else None,
            "updatedAt": self.updated_at.to_iso8601_string() if self.updated_at else None,
            "cancellationReason": self.cancellation_reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Booking":
        created_at = data.get("createdAt")
        updated_at = data.get("updatedAt")
        return cls(
            id=data["id"],
            professional_id=data["professionalId"],
            customer_id=data["customerId"],
            date=parse_date(data["date"]),
            start_time=parse_time(data["startTime"]),
            end_time=parse_time(data["endTime"]),
            status=BookingStatus(data.get("status", BookingStatus.PENDING.value)),
            created_at=pendulum.parse(created_at) if created_at else None,
            updated_at=pendulum.parse(updated_at) if updated_at else None,
            cancellation_reason=data.get("cancellationReason"),
        )


WEEKDAY_NAMES = {
    0: "Monday",
    1: "Tuesday",
    2: "Wednesday",
    3: "Thursday",
    4: "Friday",
    5: "Saturday",
    6: "Sunday",
}


@dataclass(frozen=True, order=True)
class Slot:
    """
    A bookable window. Computed on demand, never persisted.

    Ordering is by date, then start time.
    """
    date: date
    start_time: time
    end_time: time

    @property
    def time_range(self) -> TimeRange:
        return TimeRange.from_times(self.start_time, self.end_time)

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Weekday, DD.MM.YYYY | HH:MM - HH:MM
        """
        weekday = WEEKDAY_NAMES[self.date.weekday()]
        date_str = self.date.strftime("%d.%m.%Y")
        return f"{weekday}, {date_str} | {format_time(self.start_time)} - {format_time(self.end_time)}"
