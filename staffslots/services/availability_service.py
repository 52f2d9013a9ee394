"""
Application services for finding bookable staff time slots.

The service coordinates fetching booked intervals via a bookings client
adapter and delegates the availability calculation to the domain-level
``AvailabilityCalculator``. The client dependency is a simple protocol so the
Supabase adapter, the mock adapter or a test stub can be plugged in.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Protocol, Union

from ..domain.availability_calculator import (
    CALENDAR_DAYS_AHEAD,
    AvailabilityCalculator,
    DateLike,
    has_conflict,
    to_date,
)
from ..domain.models import (
    BookedInterval,
    CalendarMark,
    DayAvailability,
    StaffMember,
    TimeSlot,
)

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_DURATION_MINUTES = 30


class BookingsClientProtocol(Protocol):
    """Protocol describing the data access the service needs."""

    async def get_staff_bookings(self, staff_id: str, date: str) -> List[BookedInterval]:
        """Return booked intervals of a staff member on a date."""

    async def get_staff(self, staff_id: str) -> Optional[StaffMember]:
        """Return a staff record, or None if it does not exist."""


def total_duration(durations: Iterable[Union[int, str, None]]) -> int:
    """
    Sum the durations (minutes) of the selected services.

    A service whose duration cannot be read counts as 30 minutes.
    """
    total = 0
    for duration in durations:
        try:
            minutes = int(duration)
        except (TypeError, ValueError):
            minutes = 0
        total += minutes if minutes > 0 else DEFAULT_SERVICE_DURATION_MINUTES
    return total


class AvailabilityService:
    """
    Orchestrates booking retrieval and slot calculation for one shop.
    """

    def __init__(
        self,
        bookings_client: BookingsClientProtocol,
        calculator: AvailabilityCalculator,
    ) -> None:
        self._bookings_client = bookings_client
        self._calculator = calculator

    async def get_staff(self, staff_id: str) -> Optional[StaffMember]:
        return await self._bookings_client.get_staff(staff_id)

    def get_availability(self, staff: StaffMember, date: DateLike) -> DayAvailability:
        return self._calculator.get_availability_for_date(date, staff)

    async def fetch_booked_intervals(self, staff_id: str, date: DateLike) -> List[BookedInterval]:
        """Fetch the booked intervals of a staff member for a date."""
        day = to_date(date)
        if day is None:
            logger.warning("Not fetching bookings for invalid date %r", date)
            return []
        return await self._bookings_client.get_staff_bookings(staff_id, day.to_date_string())

    async def find_slots(
        self,
        *,
        staff: StaffMember,
        date: DateLike,
        service_duration_minutes: int,
    ) -> List[TimeSlot]:
        """
        Retrieve bookings for the date and compute the slot grid.

        Bookings are only fetched when the staff member works that day.
        """
        availability = self._calculator.get_availability_for_date(date, staff)
        if not availability.is_available:
            return []

        booked = await self.fetch_booked_intervals(staff.id, date)

        return self._calculator.generate_time_slots(
            date,
            staff,
            service_duration_minutes,
            booked,
        )

    async def check_conflict(self, staff_id: str, date: DateLike, start: str, end: str) -> bool:
        """
        Advisory check whether an interval collides with existing bookings.

        The server still enforces the authoritative check on write.
        """
        booked = await self.fetch_booked_intervals(staff_id, date)
        return has_conflict(start, end, booked)

    def calendar(
        self,
        staff: StaffMember,
        start_date: Optional[DateLike] = None,
        days_ahead: int = CALENDAR_DAYS_AHEAD,
    ) -> Dict[str, CalendarMark]:
        """Calendar marks for the lookahead window."""
        return self._calculator.generate_calendar_marks(
            staff,
            start_date=start_date,
            days_ahead=days_ahead,
        )
