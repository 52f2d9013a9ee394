"""
Parsing of raw database rows into domain models.

Staff rows are often incomplete (older rows predate the schedule columns), so
parsing is lenient: unusable parts are logged and dropped instead of failing
the whole record.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..domain.availability_calculator import to_date
from ..domain.models import (
    DAYS_OF_WEEK,
    BookedInterval,
    DaySchedule,
    LeaveInterval,
    StaffMember,
    WeeklySchedule,
    minutes_to_time,
    time_to_minutes,
)

logger = logging.getLogger(__name__)


def parse_work_schedule(raw: Any) -> Optional[WeeklySchedule]:
    """
    Parse a ``work_schedule`` JSON object.

    Returns None when the value is not an object at all; individual invalid
    days are left out of the schedule.
    """
    if not isinstance(raw, Mapping):
        return None

    days: Dict[str, DaySchedule] = {}

    for name in DAYS_OF_WEEK:
        entry = raw.get(name)
        if not isinstance(entry, Mapping):
            continue
        is_working = bool(entry.get("isWorking", False))
        if not is_working:
            days[name] = DaySchedule(is_working=False)
            continue
        try:
            days[name] = DaySchedule(
                is_working=True,
                start_time=str(entry.get("startTime", "09:00")),
                end_time=str(entry.get("endTime", "18:00")),
            )
        except ValueError as exc:
            logger.warning("Dropping invalid %s schedule: %s", name, exc)

    return WeeklySchedule(days=days)


def parse_leave_dates(raw: Any) -> Optional[List[LeaveInterval]]:
    """Parse a ``leave_dates`` JSON array; returns None when it is absent."""
    if raw is None:
        return None
    if not isinstance(raw, list):
        logger.warning("Ignoring leave_dates of unexpected type %s", type(raw).__name__)
        return None

    leaves: List[LeaveInterval] = []

    for entry in raw:
        if not isinstance(entry, Mapping):
            continue
        start = to_date(entry.get("startDate", ""))
        end = to_date(entry.get("endDate", ""))
        if start is None or end is None:
            logger.warning("Skipping leave entry with unparseable dates: %s", entry)
            continue
        try:
            leaves.append(
                LeaveInterval(
                    title=str(entry.get("title", "")),
                    start_date=start,
                    end_date=end,
                    type=str(entry.get("type", "")),
                )
            )
        except ValueError as exc:
            logger.warning("Skipping invalid leave entry: %s", exc)

    return leaves


def parse_staff_record(row: Mapping[str, Any]) -> StaffMember:
    """Build a StaffMember from a ``shop_staff`` row."""
    schedule = parse_work_schedule(row.get("work_schedule"))
    if schedule is None:
        logger.warning("Staff %s has no work_schedule data", row.get("name", row.get("id")))

    return StaffMember(
        id=str(row.get("id", "")),
        name=str(row.get("name", "")),
        schedule=schedule,
        leaves=parse_leave_dates(row.get("leave_dates")),
    )


def parse_booked_intervals(rows: Iterable[Mapping[str, Any]]) -> List[BookedInterval]:
    """
    Convert ``shop_bookings`` rows (``start_time``/``end_time``) to intervals.

    Rows with missing or malformed times are skipped.
    """
    intervals: List[BookedInterval] = []

    for row in rows:
        start = row.get("start_time") or row.get("start")
        end = row.get("end_time") or row.get("end")
        try:
            start_minutes = time_to_minutes(start)
            end_minutes = time_to_minutes(end)
        except (ValueError, TypeError):
            logger.warning("Skipping booking with invalid times: %s", dict(row))
            continue
        intervals.append(
            BookedInterval(
                start=minutes_to_time(start_minutes),
                end=minutes_to_time(end_minutes),
            )
        )

    return intervals
