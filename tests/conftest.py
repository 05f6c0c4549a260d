"""
Pytest configuration and shared fixtures.
"""

import os
import tempfile
from datetime import datetime, time, timezone
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

# Settings are read at import time, so the environment comes first
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test_key")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_123")
os.environ.setdefault("STRIPE_PUBLISHABLE_KEY", "pk_test_123")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "diviner-booking-logs"))

import pytest  # noqa: E402

from db.supabase_client import SupabaseClient  # noqa: E402
from models.availability import Availability  # noqa: E402
from models.booking import Booking, BookingStatus  # noqa: E402
from models.client import Client  # noqa: E402
from models.diviner import Diviner  # noqa: E402
from models.service import Service  # noqa: E402

JST = ZoneInfo("Asia/Tokyo")

# Monday 2026-01-05 09:00 JST
NOW = datetime(2026, 1, 5, 0, 0, tzinfo=timezone.utc)


def at_jst(year, month, day, hour, minute=0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=JST)


def _make_booking(
    start: datetime,
    duration_minutes: int = 20,
    status: BookingStatus = BookingStatus.CONFIRMED,
    booking_id: str = "booking_1",
    client_id: str = "client_1",
) -> Booking:
    return Booking(
        id=booking_id,
        client_id=client_id,
        diviner_id="diviner_1",
        service_id="service_1",
        scheduled_at=start,
        duration_minutes=duration_minutes,
        total_amount=5000,
        status=status,
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def monday_window():
    """Monday 10:00-18:00."""
    return Availability(
        diviner_id="diviner_1",
        day_of_week=1,
        start_time=time(10, 0),
        end_time=time(18, 0),
    )


@pytest.fixture
def service():
    return Service(
        id="service_1",
        diviner_id="diviner_1",
        title="Tarot reading",
        duration_minutes=40,
        price=5000,
        first_time_price=3000,
    )


@pytest.fixture
def diviner():
    return Diviner(
        id="diviner_1",
        display_name="Luna",
        stripe_account_id="acct_test_123",
    )


@pytest.fixture
def client():
    return Client(id="client_1", user_id="user_1", nickname="hoshimi")


@pytest.fixture
def mock_db():
    """Data-access collaborator with every async method mocked."""
    return AsyncMock(spec=SupabaseClient)


@pytest.fixture
def make_booking():
    """Factory for bookings of diviner_1."""
    return _make_booking


@pytest.fixture
def jst():
    """Factory for Asia/Tokyo wall-clock datetimes."""
    return at_jst
