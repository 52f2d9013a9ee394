"""
Core business logic for staff availability and bookable time slots.

Pure domain logic without external dependencies (no API calls, no database,
no I/O). Results are advisory: the server still performs the authoritative
conflict check when a booking is written.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Union

import pendulum
from pendulum import Date

from .models import (
    CALENDAR_MARKS,
    BookedInterval,
    CalendarMark,
    DateStatus,
    DayAvailability,
    LeaveInterval,
    MissingScheduleDataPolicy,
    StaffMember,
    TimeSlot,
    WorkingHours,
    day_name,
    minutes_to_time,
    time_to_minutes,
)

logger = logging.getLogger(__name__)

DateLike = Union[str, dt.date, dt.datetime]

SLOT_INTERVAL_MINUTES = 30
CALENDAR_DAYS_AHEAD = 60

ON_LEAVE_REASON = "Staff member is on leave"
NO_SCHEDULE_REASON = "No schedule data available (using default availability)"


def to_date(value: DateLike) -> Optional[Date]:
    """
    Normalise a date-like value to a calendar date, dropping any time of day.

    Returns None when the value cannot be interpreted as a date.
    """
    if isinstance(value, dt.datetime):
        return pendulum.instance(value).date()
    if isinstance(value, dt.date):
        return pendulum.date(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            parsed = pendulum.parse(value.strip())
        except (ValueError, TypeError):
            return None
        if isinstance(parsed, pendulum.DateTime):
            return parsed.date()
        if isinstance(parsed, Date):
            return parsed
    return None


def is_on_leave(date: DateLike, leaves: Optional[Iterable[LeaveInterval]]) -> bool:
    """Check whether a date falls inside any leave interval (inclusive)."""
    check_date = to_date(date)
    if check_date is None or not leaves:
        return False
    return any(leave.contains(check_date) for leave in leaves)


def has_conflict(start: str, end: str, booked: Iterable[BookedInterval]) -> bool:
    """
    Check a requested interval against existing bookings.

    Uses the same half-open overlap rule as slot generation. Malformed
    intervals are ignored.
    """
    try:
        start_minutes = time_to_minutes(start)
        end_minutes = time_to_minutes(end)
    except ValueError:
        logger.warning("Cannot check conflict for malformed interval %s-%s", start, end)
        return False
    return any(
        _overlaps(interval, start_minutes, end_minutes) for interval in booked
    )


def _overlaps(interval: BookedInterval, start_minutes: int, end_minutes: int) -> bool:
    try:
        return interval.overlaps(start_minutes, end_minutes)
    except ValueError:
        logger.warning("Ignoring malformed booked interval %s-%s", interval.start, interval.end)
        return False


class AvailabilityCalculator:
    """
    Calculates per-date availability and bookable slots for a staff member.

    Algorithm for slots:
    1. Resolve the staff member's availability for the date
    2. Walk the slot grid from opening time to the last start that still fits
    3. Mark every grid point that overlaps an existing booking as unavailable
    """

    def __init__(
        self,
        slot_interval_minutes: int = SLOT_INTERVAL_MINUTES,
        missing_data_policy: MissingScheduleDataPolicy = MissingScheduleDataPolicy.PERMIT_BOOKING,
        timezone: str = "local",
    ):
        if slot_interval_minutes <= 0:
            raise ValueError("slot_interval_minutes must be greater than zero")
        self.slot_interval_minutes = slot_interval_minutes
        self.missing_data_policy = missing_data_policy
        self.timezone = timezone

    def get_availability_for_date(self, date: DateLike, staff: StaffMember) -> DayAvailability:
        """
        Determine whether a staff member takes bookings on a date.

        Leave takes priority over the weekly schedule. Missing schedule data is
        resolved through the missing-data policy.
        """
        if staff.schedule is None:
            logger.warning(
                "Staff %s (%s) has no work schedule data", staff.name, staff.id
            )
            return self._missing_data(NO_SCHEDULE_REASON)

        check_date = to_date(date)
        if check_date is None:
            logger.warning("Cannot resolve weekday for date %r", date)
            return self._missing_data(f"Invalid date: {date}")

        if is_on_leave(check_date, staff.leaves):
            return DayAvailability(is_available=False, reason=ON_LEAVE_REASON)

        weekday = day_name(check_date)
        day_schedule = staff.schedule.for_day(weekday)

        if day_schedule is None:
            logger.warning("Staff %s (%s) has no schedule for %s", staff.name, staff.id, weekday)
            return self._missing_data(f"No {weekday} schedule data available")

        if not day_schedule.is_working:
            return DayAvailability(
                is_available=False,
                reason=f"Staff member doesn't work on {weekday}s",
            )

        return DayAvailability(
            is_available=True,
            working_hours=WorkingHours(
                start=day_schedule.start_time,
                end=day_schedule.end_time,
            ),
        )

    def generate_time_slots(
        self,
        date: DateLike,
        staff: StaffMember,
        service_duration_minutes: int,
        booked: Sequence[BookedInterval] = (),
    ) -> List[TimeSlot]:
        """
        Generate the slot grid for a date.

        Returns an empty list when the staff member is unavailable or their
        working hours are unknown.
        """
        availability = self.get_availability_for_date(date, staff)

        if not availability.is_available or availability.working_hours is None:
            return []

        try:
            duration = int(service_duration_minutes)
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid service duration %r", service_duration_minutes)
            return []

        if duration <= 0:
            logger.warning("Ignoring non-positive service duration %s", service_duration_minutes)
            return []

        work_start = time_to_minutes(availability.working_hours.start)
        work_end = time_to_minutes(availability.working_hours.end)

        slots: List[TimeSlot] = []
        last_start = work_end - duration

        for start in range(work_start, last_start + 1, self.slot_interval_minutes):
            slot_end = start + duration
            is_booked = any(_overlaps(interval, start, slot_end) for interval in booked)
            start_str = minutes_to_time(start)

            slots.append(
                TimeSlot(
                    id=start_str,
                    start_time=start_str,
                    end_time=minutes_to_time(slot_end),
                    available=not is_booked,
                    staff_available=True,
                )
            )

        return slots

    def get_date_status(
        self,
        date: DateLike,
        staff: StaffMember,
        today: Optional[DateLike] = None,
    ) -> DateStatus:
        """
        Status used to mark a date on the booking calendar.

        Dates strictly before today are always unavailable.
        """
        check_date = to_date(date)
        if check_date is None:
            return self._missing_data_status()

        reference = to_date(today) if today is not None else self.today()
        if reference is not None and check_date < reference:
            return DateStatus.UNAVAILABLE

        if is_on_leave(check_date, staff.leaves):
            return DateStatus.LEAVE

        day_schedule = staff.schedule.for_date(check_date) if staff.schedule else None
        if day_schedule is None:
            return self._missing_data_status()

        return DateStatus.AVAILABLE if day_schedule.is_working else DateStatus.UNAVAILABLE

    def generate_calendar_marks(
        self,
        staff: StaffMember,
        start_date: Optional[DateLike] = None,
        days_ahead: int = CALENDAR_DAYS_AHEAD,
        today: Optional[DateLike] = None,
    ) -> Dict[str, CalendarMark]:
        """Precompute calendar marks for a lookahead window of dates."""
        first = to_date(start_date) if start_date is not None else None
        if first is None:
            first = self.today()
        reference = to_date(today) if today is not None else self.today()

        marks: Dict[str, CalendarMark] = {}

        for offset in range(days_ahead):
            current = first.add(days=offset)
            status = self.get_date_status(current, staff, today=reference)
            marks[current.to_date_string()] = CALENDAR_MARKS[status]

        return marks

    def is_fully_booked(
        self,
        date: DateLike,
        staff: StaffMember,
        service_duration_minutes: int,
        booked: Sequence[BookedInterval] = (),
    ) -> bool:
        """True when no slot of the given duration can be booked on the date."""
        slots = self.generate_time_slots(date, staff, service_duration_minutes, booked)
        return not any(slot.available for slot in slots)

    def today(self) -> Date:
        return pendulum.today(self.timezone).date()

    def _missing_data(self, reason: str) -> DayAvailability:
        permitted = self.missing_data_policy is MissingScheduleDataPolicy.PERMIT_BOOKING
        return DayAvailability(is_available=permitted, reason=reason)

    def _missing_data_status(self) -> DateStatus:
        if self.missing_data_policy is MissingScheduleDataPolicy.PERMIT_BOOKING:
            return DateStatus.AVAILABLE
        return DateStatus.UNAVAILABLE
