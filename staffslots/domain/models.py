"""
Domain models for staff schedules, leave, bookings and derived time slots.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping, Optional, Sequence

import pendulum
from pendulum import Date


# Index matches ``isoweekday() % 7`` (0=Sunday .. 6=Saturday)
DAYS_OF_WEEK = (
    "sunday",
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
)

MINUTES_PER_DAY = 24 * 60


def time_to_minutes(value: str) -> int:
    """
    Convert an ``HH:MM`` wall-clock string to minutes since midnight.

    Postgres ``time`` values (``HH:MM:SS``) are accepted; seconds are dropped.

    Raises:
        ValueError: If the value is not a valid wall-clock time
    """
    parts = str(value).strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid time value: {value!r}")

    try:
        hours, minutes = int(parts[0]), int(parts[1])
    except ValueError as exc:
        raise ValueError(f"Invalid time value: {value!r}") from exc

    if not 0 <= hours <= 23 or not 0 <= minutes <= 59:
        raise ValueError(f"Time out of range: {value!r}")

    return hours * 60 + minutes


def minutes_to_time(minutes: int) -> str:
    """Format minutes since midnight as a zero-padded ``HH:MM`` string."""
    if minutes < 0:
        raise ValueError(f"Minutes must not be negative, got {minutes}")
    hours, mins = divmod(minutes, 60)
    return f"{hours:02d}:{mins:02d}"


def day_name(date: Date) -> str:
    """Return the lowercase weekday name of a date (locale-independent)."""
    return DAYS_OF_WEEK[date.isoweekday() % 7]


class MissingScheduleDataPolicy(str, Enum):
    """What to do when a staff record lacks schedule data for a date."""

    PERMIT_BOOKING = "permit_booking"
    BLOCK_BOOKING = "block_booking"


class DateStatus(str, Enum):
    """Per-date status used for calendar marking."""

    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    LEAVE = "leave"


@dataclass(frozen=True)
class DaySchedule:
    """
    Working hours of one weekday.

    Invariant: start_time is before end_time when is_working is set. The
    times of a day off are kept as given and never parsed.
    """
    is_working: bool
    start_time: str = "09:00"
    end_time: str = "18:00"

    def __post_init__(self):
        if not self.is_working:
            return
        if self.start_minutes() >= self.end_minutes():
            raise ValueError(
                f"Start time {self.start_time} must be before end time {self.end_time}"
            )

    def start_minutes(self) -> int:
        return time_to_minutes(self.start_time)

    def end_minutes(self) -> int:
        return time_to_minutes(self.end_time)


@dataclass(frozen=True)
class WeeklySchedule:
    """
    Weekly work schedule keyed by lowercase weekday name.

    Records coming from the database may be incomplete, so a day can be absent.
    """
    days: Mapping[str, DaySchedule] = field(default_factory=dict)

    def __post_init__(self):
        unknown = [name for name in self.days if name not in DAYS_OF_WEEK]
        if unknown:
            raise ValueError(f"Unknown weekday name(s): {', '.join(sorted(unknown))}")

    def for_day(self, name: str) -> Optional[DaySchedule]:
        """Return the schedule for a weekday, or None if it is missing."""
        return self.days.get(name)

    def for_date(self, date: Date) -> Optional[DaySchedule]:
        return self.for_day(day_name(date))

    def is_complete(self) -> bool:
        """True when all seven weekdays are present."""
        return all(name in self.days for name in DAYS_OF_WEEK)

    @classmethod
    def uniform(
        cls,
        start_time: str = "09:00",
        end_time: str = "18:00",
        days_off: Sequence[str] = ("sunday",),
    ) -> "WeeklySchedule":
        """Build a schedule with the same hours every day except ``days_off``."""
        return cls(
            days={
                name: DaySchedule(
                    is_working=name not in days_off,
                    start_time=start_time,
                    end_time=end_time,
                )
                for name in DAYS_OF_WEEK
            }
        )


@dataclass(frozen=True)
class LeaveInterval:
    """
    A date range during which a staff member takes no bookings.

    Invariant: start_date is not after end_date. Both ends are inclusive.
    """
    title: str
    start_date: Date
    end_date: Date
    type: str = "vacation"

    def __post_init__(self):
        if self.start_date > self.end_date:
            raise ValueError(
                f"Leave start {self.start_date} must not be after end {self.end_date}"
            )

    def contains(self, date: Date) -> bool:
        return self.start_date <= date <= self.end_date


@dataclass(frozen=True)
class StaffMember:
    """
    A staff member with an optional schedule and leave list.

    ``schedule`` and ``leaves`` are None when the record carries no such data.
    """
    id: str
    name: str
    schedule: Optional[WeeklySchedule] = None
    leaves: Optional[Sequence[LeaveInterval]] = None

    @classmethod
    def any_available(cls) -> "StaffMember":
        """Placeholder used when the customer lets the shop pick the staff member."""
        return cls(
            id="any",
            name="Any Available",
            schedule=WeeklySchedule.uniform(days_off=()),
            leaves=(),
        )


@dataclass(frozen=True)
class BookedInterval:
    """An existing booking of one staff member on one date (wall-clock times)."""
    start: str
    end: str

    def overlaps(self, start_minutes: int, end_minutes: int) -> bool:
        """Half-open overlap test: touching endpoints do not conflict."""
        return (
            start_minutes < time_to_minutes(self.end)
            and end_minutes > time_to_minutes(self.start)
        )


@dataclass(frozen=True)
class WorkingHours:
    start: str
    end: str


@dataclass(frozen=True)
class DayAvailability:
    """Availability of a staff member on one date."""
    is_available: bool
    working_hours: Optional[WorkingHours] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class TimeSlot:
    """
    A candidate booking start time on the slot grid.
    """
    id: str
    start_time: str
    end_time: str
    available: bool
    staff_available: bool = True
    reason: Optional[str] = None

    def format_display(self) -> str:
        """Format the slot for display, e.g. ``09:00 - 10:00``."""
        return f"{self.start_time} - {self.end_time}"


@dataclass(frozen=True)
class CalendarMark:
    """Display state for one calendar date."""
    status: DateStatus
    disabled: bool
    disable_touch_event: bool
    marked: bool
    dot_color: str
    background_color: str
    text_color: str
    font_weight: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        """Render in the calendar widget's marked-dates format."""
        text: Dict[str, str] = {"color": self.text_color}
        if self.font_weight:
            text["fontWeight"] = self.font_weight

        mark: Dict[str, object] = {
            "marked": self.marked,
            "dotColor": self.dot_color,
            "customStyles": {
                "container": {"backgroundColor": self.background_color},
                "text": text,
            },
        }
        if self.disabled:
            mark["disabled"] = True
            mark["disableTouchEvent"] = self.disable_touch_event
        return mark


CALENDAR_MARKS: Dict[DateStatus, CalendarMark] = {
    DateStatus.UNAVAILABLE: CalendarMark(
        status=DateStatus.UNAVAILABLE,
        disabled=True,
        disable_touch_event=True,
        marked=True,
        dot_color="#9CA3AF",
        background_color="#E5E7EB",
        text_color="#9CA3AF",
        font_weight="500",
    ),
    DateStatus.LEAVE: CalendarMark(
        status=DateStatus.LEAVE,
        disabled=True,
        disable_touch_event=True,
        marked=True,
        dot_color="#EF4444",
        background_color="#FEE2E2",
        text_color="#DC2626",
        font_weight="600",
    ),
    DateStatus.AVAILABLE: CalendarMark(
        status=DateStatus.AVAILABLE,
        disabled=False,
        disable_touch_event=False,
        marked=True,
        dot_color="#10B981",
        background_color="transparent",
        text_color="#1F2937",
    ),
}


@dataclass(frozen=True)
class BookingUpdate:
    """A booking change pushed over a realtime channel."""
    operation: str  # INSERT, UPDATE or DELETE
    booking_id: str
    shop_id: str = ""
    provider_id: str = ""
    customer_id: str = ""
    staff_id: str = ""
    status: str = ""
    booking_date: str = ""
    start_time: str = ""
    timestamp: str = field(default_factory=lambda: pendulum.now("UTC").to_iso8601_string())
