"""
Tests for record parsing and the data access adapters.
"""

import asyncio
import json

import pendulum
import pytest
import requests
from keyring.errors import KeyringError

from staffslots.adapters import supabase_authenticator
from staffslots.adapters.mock_bookings_client import MockBookingsClient
from staffslots.adapters.records import (
    parse_booked_intervals,
    parse_leave_dates,
    parse_staff_record,
    parse_work_schedule,
)
from staffslots.adapters.supabase_authenticator import SupabaseAuthenticator
from staffslots.adapters.supabase_client import SupabaseClient
from staffslots.domain.availability_calculator import AvailabilityCalculator
from staffslots.domain.exceptions import AuthenticationError, DataAccessError
from staffslots.domain.models import BookedInterval, DateStatus


class FakeResponse:
    def __init__(self, payload, status_code=200, reason="OK"):
        self._payload = payload
        self.status_code = status_code
        self.reason = reason

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} {self.reason}")


class TestRecords:
    """Tests for parsing database rows."""

    def test_parse_work_schedule(self):
        """Test a complete work_schedule object."""
        schedule = parse_work_schedule({
            "monday": {"isWorking": True, "startTime": "09:00", "endTime": "17:00"},
            "sunday": {"isWorking": False, "startTime": "09:00", "endTime": "17:00"},
        })

        assert schedule.for_day("monday").is_working
        assert schedule.for_day("monday").end_time == "17:00"
        assert not schedule.for_day("sunday").is_working
        assert schedule.for_day("tuesday") is None

    def test_invalid_day_is_dropped(self, caplog):
        """Test that a day with inverted hours is left out and logged."""
        schedule = parse_work_schedule({
            "monday": {"isWorking": True, "startTime": "17:00", "endTime": "09:00"},
        })

        assert schedule.for_day("monday") is None
        assert "Dropping invalid monday schedule" in caplog.text

    def test_day_off_with_null_times(self):
        """Test a day off without times stays a day off instead of missing data."""
        staff = parse_staff_record({
            "id": "staff-1",
            "name": "Anna",
            "work_schedule": {
                "monday": {"isWorking": True, "startTime": "09:00", "endTime": "17:00"},
                "sunday": {"isWorking": False, "startTime": None, "endTime": None},
            },
            "leave_dates": [],
        })
        calculator = AvailabilityCalculator()

        availability = calculator.get_availability_for_date("2024-11-24", staff)

        assert not staff.schedule.for_day("sunday").is_working
        assert not availability.is_available
        assert availability.reason == "Staff member doesn't work on sundays"
        assert calculator.get_date_status("2024-11-24", staff, today="2024-11-24") is DateStatus.UNAVAILABLE

    def test_day_off_with_blank_times(self, caplog):
        schedule = parse_work_schedule({
            "saturday": {"isWorking": False, "startTime": "", "endTime": "n/a"},
        })

        assert not schedule.for_day("saturday").is_working
        assert "Dropping" not in caplog.text

    def test_non_object_schedule(self):
        """Test that a missing work_schedule gives None."""
        assert parse_work_schedule(None) is None
        assert parse_work_schedule("oops") is None

    def test_parse_leave_dates(self):
        """Test ISO datetimes in leave entries are cut to dates."""
        leaves = parse_leave_dates([
            {"title": "Trip", "startDate": "2024-12-23T00:00:00.000Z", "endDate": "2024-12-27", "type": "vacation"},
            {"title": "Broken", "startDate": "n/a", "endDate": "2024-12-27"},
            {"title": "Inverted", "startDate": "2024-12-27", "endDate": "2024-12-01"},
        ])

        assert len(leaves) == 1
        assert leaves[0].start_date == pendulum.date(2024, 12, 23)
        assert leaves[0].title == "Trip"

    def test_missing_leave_dates(self):
        assert parse_leave_dates(None) is None

    def test_parse_staff_record_without_schedule(self):
        """Test rows predating the schedule columns still parse."""
        staff = parse_staff_record({"id": 7, "name": "Carla"})

        assert staff.id == "7"
        assert staff.schedule is None
        assert staff.leaves is None

    def test_parse_booked_intervals(self):
        """Test Postgres time values are reduced to HH:MM and bad rows skipped."""
        intervals = parse_booked_intervals([
            {"start_time": "10:00:00", "end_time": "11:30:00"},
            {"start_time": None, "end_time": "12:00:00"},
        ])

        assert intervals == [BookedInterval(start="10:00", end="11:30")]


class TestMockBookingsClient:
    """Tests for the JSON-backed mock client."""

    def test_bundled_data(self):
        """Test the bundled sample data is served."""
        client = MockBookingsClient()

        anna = asyncio.run(client.get_staff("staff-anna"))
        booked = asyncio.run(client.get_staff_bookings("staff-anna", "2024-11-25"))

        assert anna.name == "Anna"
        assert anna.schedule.for_day("monday").start_time == "09:00"
        # cancelled bookings do not occupy time
        assert booked == [
            BookedInterval(start="10:00", end="11:00"),
            BookedInterval(start="14:30", end="15:30"),
        ]

    def test_custom_data_file(self, tmp_path):
        """Test loading another data file and listing shop staff."""
        data_file = tmp_path / "data.json"
        data_file.write_text(json.dumps({
            "staff": [
                {"id": "s1", "shop_id": "shop-9", "name": "Dana"},
                {"id": "s2", "shop_id": "shop-8", "name": "Eli"},
            ],
            "bookings": [],
        }), encoding="utf-8")

        client = MockBookingsClient(data_file=data_file)
        staff = asyncio.run(client.list_shop_staff("shop-9"))

        assert [member.name for member in staff] == ["Dana"]
        assert asyncio.run(client.get_staff("nobody")) is None

    def test_missing_data_file(self, tmp_path):
        client = MockBookingsClient(data_file=tmp_path / "absent.json")

        assert asyncio.run(client.get_staff_bookings("s1", "2024-11-25")) == []


class TestSupabaseClient:
    """Tests for the PostgREST client."""

    def test_get_staff_bookings_query(self, monkeypatch):
        """Test the bookings query filters and response parsing."""
        captured = {}

        def fake_get(url, headers, params, timeout):
            captured.update(url=url, headers=headers, params=params)
            return FakeResponse([{"start_time": "10:00:00", "end_time": "11:00:00"}])

        monkeypatch.setattr(requests, "get", fake_get)
        client = SupabaseClient("https://demo.supabase.co/rest/v1/", api_key="anon")

        booked = asyncio.run(client.get_staff_bookings("staff-1", "2024-11-25"))

        assert booked == [BookedInterval(start="10:00", end="11:00")]
        assert captured["url"] == "https://demo.supabase.co/rest/v1/shop_bookings"
        assert captured["params"]["staff_id"] == "eq.staff-1"
        assert captured["params"]["booking_date"] == "eq.2024-11-25"
        assert captured["params"]["status"] == "in.(confirmed,pending)"
        assert captured["headers"]["Authorization"] == "Bearer anon"

    def test_get_staff(self, monkeypatch):
        """Test staff lookup returns a parsed record or None."""
        rows = [{"id": "staff-1", "name": "Anna", "work_schedule": None, "leave_dates": []}]
        monkeypatch.setattr(requests, "get", lambda *args, **kwargs: FakeResponse(rows))
        client = SupabaseClient("https://demo.supabase.co/rest/v1", api_key="anon", access_token="user")

        staff = asyncio.run(client.get_staff("staff-1"))

        assert staff.name == "Anna"
        assert client.headers["Authorization"] == "Bearer user"

        monkeypatch.setattr(requests, "get", lambda *args, **kwargs: FakeResponse([]))
        assert asyncio.run(client.get_staff("staff-1")) is None

    def test_http_error_raises_data_access_error(self, monkeypatch):
        """Test failed requests surface as DataAccessError."""
        monkeypatch.setattr(
            requests, "get",
            lambda *args, **kwargs: FakeResponse({"message": "nope"}, status_code=401, reason="Unauthorized"),
        )
        client = SupabaseClient("https://demo.supabase.co/rest/v1", api_key="anon")

        with pytest.raises(DataAccessError, match="shop_bookings"):
            asyncio.run(client.get_staff_bookings("staff-1", "2024-11-25"))


@pytest.fixture
def fake_keyring(monkeypatch):
    """Replace keyring storage with a dict."""
    store = {}

    def get_password(service, key):
        return store.get((service, key))

    def set_password(service, key, value):
        store[(service, key)] = value

    def delete_password(service, key):
        store.pop((service, key), None)

    monkeypatch.setattr(supabase_authenticator.keyring, "get_password", get_password)
    monkeypatch.setattr(supabase_authenticator.keyring, "set_password", set_password)
    monkeypatch.setattr(supabase_authenticator.keyring, "delete_password", delete_password)
    return store


class TestSupabaseAuthenticator:
    """Tests for Supabase Auth session handling."""

    def _authenticator(self, tmp_path):
        return SupabaseAuthenticator(
            auth_url="https://demo.supabase.co/auth/v1",
            api_key="anon",
            cache_file=tmp_path / "session.json",
        )

    def test_sign_in_caches_session_in_keyring(self, monkeypatch, tmp_path, fake_keyring):
        """Test a successful sign-in is stored and reused."""
        calls = []

        def fake_post(url, params, headers, json, timeout):
            calls.append(params["grant_type"])
            return FakeResponse({"access_token": "tok-1", "refresh_token": "ref-1", "expires_in": 3600})

        monkeypatch.setattr(requests, "post", fake_post)
        authenticator = self._authenticator(tmp_path)

        assert authenticator.sign_in("owner@example.com", "secret") == "tok-1"
        assert authenticator.cache_backend == "keyring"
        assert len(fake_keyring) == 1

        reloaded = self._authenticator(tmp_path)
        assert reloaded.get_access_token() == "tok-1"
        assert calls == ["password"]

    def test_expired_session_is_refreshed(self, monkeypatch, tmp_path, fake_keyring):
        """Test an expired session uses the refresh token."""
        def fake_post(url, params, headers, json, timeout):
            assert params["grant_type"] == "refresh_token"
            assert json == {"refresh_token": "ref-1"}
            return FakeResponse({"access_token": "tok-2", "refresh_token": "ref-2", "expires_in": 3600})

        monkeypatch.setattr(requests, "post", fake_post)
        authenticator = self._authenticator(tmp_path)
        authenticator.session = {
            "access_token": "tok-1",
            "refresh_token": "ref-1",
            "expires_at": pendulum.now("UTC").subtract(minutes=5).int_timestamp,
        }

        assert authenticator.get_access_token() == "tok-2"

    def test_not_signed_in(self, tmp_path, fake_keyring):
        """Test that a missing session raises AuthenticationError."""
        with pytest.raises(AuthenticationError, match="Not signed in"):
            self._authenticator(tmp_path).get_access_token()

    def test_failed_sign_in(self, monkeypatch, tmp_path, fake_keyring):
        """Test rejected credentials raise AuthenticationError."""
        monkeypatch.setattr(
            requests, "post",
            lambda *args, **kwargs: FakeResponse(
                {"error_description": "Invalid login credentials"}, status_code=400, reason="Bad Request"
            ),
        )

        with pytest.raises(AuthenticationError, match="Invalid login credentials"):
            self._authenticator(tmp_path).sign_in("owner@example.com", "wrong")

    def test_error_body_that_is_not_an_object(self, monkeypatch, tmp_path, fake_keyring):
        """Test a JSON array error body still raises AuthenticationError."""
        monkeypatch.setattr(
            requests, "post",
            lambda *args, **kwargs: FakeResponse(["upstream", "failure"], status_code=500, reason="Server Error"),
        )

        with pytest.raises(AuthenticationError, match="Server Error"):
            self._authenticator(tmp_path).sign_in("owner@example.com", "secret")

    def test_keyring_failure_falls_back_to_file(self, monkeypatch, tmp_path):
        """Test the plaintext file fallback when the keyring is unusable."""
        def broken(*args, **kwargs):
            raise KeyringError("no backend")

        monkeypatch.setattr(supabase_authenticator.keyring, "get_password", broken)
        monkeypatch.setattr(supabase_authenticator.keyring, "set_password", broken)
        monkeypatch.setattr(
            requests, "post",
            lambda *args, **kwargs: FakeResponse({"access_token": "tok-1", "expires_in": 3600}),
        )

        authenticator = self._authenticator(tmp_path)
        authenticator.sign_in("owner@example.com", "secret")

        assert authenticator.cache_backend == "file"
        assert authenticator.insecure_storage_warning
        assert json.loads((tmp_path / "session.json").read_text())["access_token"] == "tok-1"

    def test_sign_out(self, monkeypatch, tmp_path, fake_keyring):
        """Test signing out clears keyring and memory."""
        monkeypatch.setattr(
            requests, "post",
            lambda *args, **kwargs: FakeResponse({"access_token": "tok-1", "expires_in": 3600}),
        )
        authenticator = self._authenticator(tmp_path)
        authenticator.sign_in("owner@example.com", "secret")

        authenticator.sign_out()

        assert authenticator.session is None
        assert fake_keyring == {}
