"""
Supabase REST (PostgREST) client for staff records and bookings.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import requests

from ..domain.exceptions import DataAccessError
from ..domain.models import BookedInterval, StaffMember
from .records import parse_booked_intervals, parse_staff_record

# Bookings in these states occupy the staff member's time
ACTIVE_BOOKING_STATUSES = ("confirmed", "pending")


class SupabaseClient:
    """
    Client for the hosted Supabase data API.

    Queries the ``shop_staff`` and ``shop_bookings`` tables through PostgREST.
    Blocking HTTP calls run in a worker thread so the async service layer is
    not stalled.
    """

    def __init__(
        self,
        rest_url: str,
        api_key: str,
        access_token: Optional[str] = None,
        timeout: float = 30,
    ):
        """
        Initialize the client.

        Args:
            rest_url: PostgREST base URL (``<project>/rest/v1``)
            api_key: Project anon key
            access_token: Optional user session token; defaults to the anon key
            timeout: Request timeout in seconds
        """
        self.rest_url = rest_url.rstrip("/")
        self.timeout = timeout
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
            "Accept": "application/json",
        }

    async def get_staff_bookings(self, staff_id: str, date: str) -> List[BookedInterval]:
        """Get the booked intervals of a staff member on a date (``YYYY-MM-DD``)."""
        params = {
            "select": "start_time,end_time",
            "staff_id": f"eq.{staff_id}",
            "booking_date": f"eq.{date}",
            "status": f"in.({','.join(ACTIVE_BOOKING_STATUSES)})",
        }
        rows = await asyncio.to_thread(self._get, "shop_bookings", params)
        return parse_booked_intervals(rows)

    async def get_staff(self, staff_id: str) -> Optional[StaffMember]:
        """Get a staff record with its schedule and leave dates."""
        params = {
            "select": "id,name,work_schedule,leave_dates",
            "id": f"eq.{staff_id}",
            "limit": "1",
        }
        rows = await asyncio.to_thread(self._get, "shop_staff", params)
        if not rows:
            return None
        return parse_staff_record(rows[0])

    async def list_shop_staff(self, shop_id: str) -> List[StaffMember]:
        """Get all active staff records of a shop."""
        params = {
            "select": "id,name,work_schedule,leave_dates",
            "shop_id": f"eq.{shop_id}",
            "is_active": "eq.true",
            "order": "name.asc",
        }
        rows = await asyncio.to_thread(self._get, "shop_staff", params)
        return [parse_staff_record(row) for row in rows]

    def _get(self, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        """
        Run a GET query against a table.

        Raises:
            DataAccessError: If the request fails or the response is not a list
        """
        url = f"{self.rest_url}/{table}"

        try:
            response = requests.get(
                url,
                headers=self.headers,
                params=params,
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise DataAccessError(f"Failed to query {table}: {e}") from e
        except ValueError as e:
            raise DataAccessError(f"Invalid JSON from {table}: {e}") from e

        if not isinstance(data, list):
            raise DataAccessError(f"Unexpected response from {table}: {data!r}")

        return data
