"""
Mock bookings client for working without a Supabase project.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..domain.models import BookedInterval, StaffMember
from .records import parse_booked_intervals, parse_staff_record


class MockBookingsClient:
    """
    Mock client that serves staff and bookings from mock_bookings_data.json.

    Matches the SupabaseClient interface so it can be swapped in for demos
    and tests without network access.
    """

    def __init__(self, data_file: Optional[Path] = None):
        """
        Initialize the mock client.

        Args:
            data_file: Optional JSON file; defaults to the bundled sample data
        """
        self.data_file = data_file or Path(__file__).parent / "mock_bookings_data.json"
        self._load_data()

    def _load_data(self):
        """Load mock data from the JSON file."""
        if self.data_file.exists():
            with open(self.data_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        else:
            data = {}

        self.staff: List[Dict[str, Any]] = data.get("staff", [])
        self.bookings: List[Dict[str, Any]] = data.get("bookings", [])

    async def get_staff_bookings(self, staff_id: str, date: str) -> List[BookedInterval]:
        """Return active bookings of a staff member on a date."""
        rows = [
            booking for booking in self.bookings
            if booking.get("staff_id") == staff_id
            and booking.get("booking_date") == date
            and booking.get("status") in ("confirmed", "pending")
        ]
        return parse_booked_intervals(rows)

    async def get_staff(self, staff_id: str) -> Optional[StaffMember]:
        """Return a staff record by id."""
        for row in self.staff:
            if str(row.get("id")) == staff_id:
                return parse_staff_record(row)
        return None

    async def list_shop_staff(self, shop_id: str) -> List[StaffMember]:
        """Return all staff records of a shop."""
        return [
            parse_staff_record(row) for row in self.staff
            if row.get("shop_id") == shop_id
        ]
