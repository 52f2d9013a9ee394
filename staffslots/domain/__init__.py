"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability_calculator import AvailabilityCalculator, has_conflict, is_on_leave
from .models import (
    BookedInterval,
    BookingUpdate,
    CalendarMark,
    DateStatus,
    DayAvailability,
    DaySchedule,
    LeaveInterval,
    MissingScheduleDataPolicy,
    StaffMember,
    TimeSlot,
    WeeklySchedule,
    minutes_to_time,
    time_to_minutes,
)

__all__ = [
    "AvailabilityCalculator",
    "BookedInterval",
    "BookingUpdate",
    "CalendarMark",
    "DateStatus",
    "DayAvailability",
    "DaySchedule",
    "LeaveInterval",
    "MissingScheduleDataPolicy",
    "StaffMember",
    "TimeSlot",
    "WeeklySchedule",
    "has_conflict",
    "is_on_leave",
    "minutes_to_time",
    "time_to_minutes",
]
