"""
Basic unit tests for models and configuration.
"""

from datetime import datetime, time, timezone

import pytest
from pydantic import ValidationError

from config import settings
from models.availability import Availability
from models.booking import Booking, BookingStatus
from models.payment import PaymentStatus
from models.service import ConsultationType, Service


def test_default_settings():
    """Marketplace defaults."""
    assert settings.platform_fee_rate == 0.186
    assert settings.currency == "jpy"
    assert settings.timezone == "Asia/Tokyo"
    assert settings.booking_horizon_days == 30


def test_booking_status_enum():
    assert BookingStatus.PENDING.value == "pending"
    assert BookingStatus.CONFIRMED.value == "confirmed"
    assert BookingStatus.NO_SHOW.value == "no_show"


def test_payment_status_enum():
    assert PaymentStatus.SUCCEEDED.value == "succeeded"
    assert PaymentStatus.REFUNDED.value == "refunded"


def test_service_defaults():
    service = Service(diviner_id="diviner_1", duration_minutes=30, price=4000)
    assert service.first_time_price is None
    assert service.consultation_type == ConsultationType.VIDEO_CALL
    assert service.is_active


def test_service_duration_bounds():
    with pytest.raises(ValidationError):
        Service(diviner_id="diviner_1", duration_minutes=0, price=4000)


def test_booking_end_is_exclusive_bound():
    booking = Booking(
        client_id="client_1",
        diviner_id="diviner_1",
        service_id="service_1",
        scheduled_at=datetime(2026, 1, 12, 1, 0, tzinfo=timezone.utc),
        duration_minutes=20,
        total_amount=3000,
    )
    assert booking.scheduled_end == datetime(2026, 1, 12, 1, 20, tzinfo=timezone.utc)


def test_availability_window_order():
    with pytest.raises(ValidationError):
        Availability(
            diviner_id="diviner_1",
            day_of_week=1,
            start_time=time(18, 0),
            end_time=time(10, 0),
        )


def test_availability_day_range():
    with pytest.raises(ValidationError):
        Availability(
            diviner_id="diviner_1",
            day_of_week=7,
            start_time=time(10, 0),
            end_time=time(18, 0),
        )
