"""
Unit tests for the booking JSON API.
"""

from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from aiohttp.test_utils import TestClient, TestServer

from booking.service import PaymentIntentResult
from models.booking import BookingStatus
from models.review import Review
from utils.exceptions import (
    AlreadyPaidError,
    DuplicateReviewError,
    InvalidSlotError,
    PaymentIntentError,
    PermissionDeniedError,
    ServiceNotFoundError,
    SlotConflictError,
)
from webhook import create_app


@pytest.fixture
def booking_service():
    service = MagicMock()
    service.create_booking = AsyncMock()
    service.available_slots = AsyncMock(return_value=[])
    service.prepare_payment = AsyncMock()
    with patch("api.get_booking_service", return_value=service):
        yield service


@pytest.fixture
def review_service():
    service = MagicMock()
    service.submit_review = AsyncMock()
    with patch("api.get_review_service", return_value=service):
        yield service


async def _request(method, path, **kwargs):
    async with TestClient(TestServer(create_app())) as client:
        response = await client.request(method, path, **kwargs)
        return response.status, await response.json()


BOOKING_BODY = {
    "client_id": "client_1",
    "service_id": "service_1",
    "scheduled_at": "2026-01-12T17:20:00+09:00",
}


class TestCreateBooking:
    """POST /api/bookings"""

    @pytest.mark.asyncio
    async def test_created(self, booking_service, make_booking, jst):
        booking_service.create_booking.return_value = make_booking(
            jst(2026, 1, 12, 17, 20), 40, status=BookingStatus.PENDING
        )

        status, data = await _request(
            "POST", "/api/bookings", json={**BOOKING_BODY, "pre_question": "Career?"}
        )

        assert status == 201
        assert data == {
            "success": True,
            "booking_id": "booking_1",
            "total_amount": 5000,
            "status": "pending",
        }
        kwargs = booking_service.create_booking.call_args.kwargs
        assert kwargs["requested_start"] == jst(2026, 1, 12, 17, 20)
        assert kwargs["pre_question"] == "Career?"

    @pytest.mark.asyncio
    async def test_conflict_is_409(self, booking_service):
        booking_service.create_booking.side_effect = SlotConflictError(
            "overlap", conflicting_booking_id="booking_a"
        )

        status, data = await _request("POST", "/api/bookings", json=BOOKING_BODY)

        assert status == 409
        assert data["error"] == "slot_conflict"

    @pytest.mark.asyncio
    async def test_invalid_slot_is_400(self, booking_service):
        booking_service.create_booking.side_effect = InvalidSlotError("outside hours")

        status, data = await _request("POST", "/api/bookings", json=BOOKING_BODY)

        assert status == 400
        assert data["error"] == "invalid_slot"

    @pytest.mark.asyncio
    async def test_unknown_service_is_404(self, booking_service):
        booking_service.create_booking.side_effect = ServiceNotFoundError("missing")

        status, data = await _request("POST", "/api/bookings", json=BOOKING_BODY)

        assert status == 404
        assert data["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_missing_field(self, booking_service):
        body = {k: v for k, v in BOOKING_BODY.items() if k != "service_id"}

        status, data = await _request("POST", "/api/bookings", json=body)

        assert status == 400
        assert data["error"] == "validation_failed"
        booking_service.create_booking.assert_not_called()

    @pytest.mark.asyncio
    async def test_bad_datetime(self, booking_service):
        status, _ = await _request(
            "POST", "/api/bookings", json={**BOOKING_BODY, "scheduled_at": "tomorrow"}
        )
        assert status == 400

    @pytest.mark.asyncio
    async def test_body_not_json(self, booking_service):
        status, data = await _request("POST", "/api/bookings", data=b"not json")
        assert status == 400
        assert data["error"] == "validation_failed"


class TestAvailableSlots:
    """GET /api/services/{service_id}/slots"""

    @pytest.mark.asyncio
    async def test_lists_slots(self, booking_service, jst):
        booking_service.available_slots.return_value = [
            jst(2026, 1, 12, 10, 0),
            jst(2026, 1, 12, 10, 30),
        ]

        status, data = await _request("GET", "/api/services/service_1/slots?date=2026-01-12")

        assert status == 200
        assert data == {
            "date": "2026-01-12",
            "slots": ["2026-01-12T10:00:00+09:00", "2026-01-12T10:30:00+09:00"],
        }
        booking_service.available_slots.assert_awaited_once_with(
            "service_1", date(2026, 1, 12)
        )

    @pytest.mark.asyncio
    async def test_date_required(self, booking_service):
        status, _ = await _request("GET", "/api/services/service_1/slots")
        assert status == 400


class TestPaymentIntent:
    """POST /api/payments/intent"""

    @pytest.mark.asyncio
    async def test_returns_client_secret(self, booking_service):
        booking_service.prepare_payment.return_value = PaymentIntentResult(
            client_secret="pi_test_123_secret",
            payment_intent_id="pi_test_123",
            amount=10000,
            platform_fee=1860,
        )

        status, data = await _request(
            "POST",
            "/api/payments/intent",
            json={"booking_id": "booking_1", "client_id": "client_1"},
        )

        assert status == 200
        assert data == {
            "client_secret": "pi_test_123_secret",
            "amount": 10000,
            "platform_fee": 1860,
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error, expected_status",
        [
            (AlreadyPaidError("paid"), 400),
            (PermissionDeniedError("not yours"), 403),
            (PaymentIntentError("stripe down"), 502),
        ],
    )
    async def test_error_mapping(self, booking_service, error, expected_status):
        booking_service.prepare_payment.side_effect = error

        status, _ = await _request(
            "POST",
            "/api/payments/intent",
            json={"booking_id": "booking_1", "client_id": "client_1"},
        )

        assert status == expected_status


class TestReviews:
    """POST /api/reviews"""

    @pytest.mark.asyncio
    async def test_created(self, review_service):
        review_service.submit_review.return_value = Review(
            id="review_1",
            booking_id="booking_1",
            client_id="client_1",
            diviner_id="diviner_1",
            rating=5,
            comment="Spot on",
        )

        status, data = await _request(
            "POST",
            "/api/reviews",
            json={
                "client_id": "client_1",
                "booking_id": "booking_1",
                "rating": 5,
                "comment": "Spot on",
            },
        )

        assert status == 201
        assert data["review"]["rating"] == 5
        review_service.submit_review.assert_awaited_once_with(
            client_id="client_1", booking_id="booking_1", rating=5, comment="Spot on"
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rating", [0, 6, "5", True, None])
    async def test_rating_validated(self, review_service, rating):
        status, _ = await _request(
            "POST",
            "/api/reviews",
            json={"client_id": "client_1", "booking_id": "booking_1", "rating": rating},
        )

        assert status == 400
        review_service.submit_review.assert_not_called()

    @pytest.mark.asyncio
    async def test_duplicate_review(self, review_service):
        review_service.submit_review.side_effect = DuplicateReviewError("exists")

        status, data = await _request(
            "POST",
            "/api/reviews",
            json={"client_id": "client_1", "booking_id": "booking_1", "rating": 4},
        )

        assert status == 400
        assert data["error"] == "booking_rule"
