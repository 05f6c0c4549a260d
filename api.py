"""
JSON API for booking, payment preparation and reviews.

Authentication happens in front of this service; handlers trust the
client_id they receive.
"""

from aiohttp import web
from aiohttp.web import Request, Response

from booking.service import get_booking_service
from reviews import ReviewService
from utils.constants import MAX_RATING, MIN_RATING
from utils.exceptions import (
    AlreadyPaidError,
    BookingError,
    DatabaseError,
    InvalidSlotError,
    PaymentError,
    PermissionDeniedError,
    SlotConflictError,
    ValidationError,
)
from utils.logging_config import setup_logging
from utils.validation import parse_date, require_datetime, require_id, require_rating

logger = setup_logging(name=__name__, log_file="api.log")

_review_service = None


def get_review_service() -> ReviewService:
    global _review_service
    if _review_service is None:
        _review_service = ReviewService()
    return _review_service


def _error(status: int, error: str, message: str) -> Response:
    return web.json_response({"error": error, "message": message}, status=status)


def _to_error_response(e: Exception) -> Response:
    """Translate a domain error into its HTTP response."""
    if isinstance(e, SlotConflictError):
        return _error(409, "slot_conflict", str(e))
    if isinstance(e, InvalidSlotError):
        return _error(400, "invalid_slot", str(e))
    if isinstance(e, AlreadyPaidError):
        return _error(400, "already_paid", str(e))
    if isinstance(e, PermissionDeniedError):
        return _error(403, "forbidden", str(e))
    if isinstance(e, BookingError):
        return _error(400, "booking_rule", str(e))
    if isinstance(e, DatabaseError):
        return _error(404, "not_found", str(e))
    if isinstance(e, PaymentError):
        return _error(502, "payment_failed", str(e))
    return _error(400, "validation_failed", str(e))


async def _read_json(request: Request) -> dict:
    try:
        body = await request.json()
    except ValueError as e:
        raise ValidationError("Request body must be valid JSON") from e
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


async def create_booking_handler(request: Request) -> Response:
    """POST /api/bookings"""
    try:
        body = await _read_json(request)
        pre_question = body.get("pre_question")
        if pre_question is not None and not isinstance(pre_question, str):
            raise ValidationError("'pre_question' must be a string")

        booking = await get_booking_service().create_booking(
            client_id=require_id(body, "client_id"),
            service_id=require_id(body, "service_id"),
            requested_start=require_datetime(body, "scheduled_at"),
            pre_question=pre_question,
        )
    except (BookingError, DatabaseError, ValidationError, ValueError) as e:
        return _to_error_response(e)

    return web.json_response(
        {
            "success": True,
            "booking_id": booking.id,
            "total_amount": booking.total_amount,
            "status": booking.status.value,
        },
        status=201,
    )


async def available_slots_handler(request: Request) -> Response:
    """GET /api/services/{service_id}/slots?date=YYYY-MM-DD"""
    try:
        day = parse_date(request.query.get("date"))
        slots = await get_booking_service().available_slots(
            request.match_info["service_id"], day
        )
    except (BookingError, DatabaseError, ValidationError) as e:
        return _to_error_response(e)

    return web.json_response(
        {"date": day.isoformat(), "slots": [slot.isoformat() for slot in slots]}
    )


async def create_payment_intent_handler(request: Request) -> Response:
    """POST /api/payments/intent"""
    try:
        body = await _read_json(request)
        result = await get_booking_service().prepare_payment(
            booking_id=require_id(body, "booking_id"),
            client_id=require_id(body, "client_id"),
        )
    except PaymentError as e:
        logger.error(f"Payment intent creation failed: {e}", exc_info=True)
        return _to_error_response(e)
    except (BookingError, DatabaseError, ValidationError, ValueError) as e:
        return _to_error_response(e)

    return web.json_response(
        {
            "client_secret": result.client_secret,
            "amount": result.amount,
            "platform_fee": result.platform_fee,
        }
    )


async def create_review_handler(request: Request) -> Response:
    """POST /api/reviews"""
    try:
        body = await _read_json(request)
        comment = body.get("comment")
        if comment is not None and not isinstance(comment, str):
            raise ValidationError("'comment' must be a string")

        review = await get_review_service().submit_review(
            client_id=require_id(body, "client_id"),
            booking_id=require_id(body, "booking_id"),
            rating=require_rating(body, MIN_RATING, MAX_RATING),
            comment=comment,
        )
    except (BookingError, DatabaseError, ValidationError) as e:
        return _to_error_response(e)

    return web.json_response(
        {"success": True, "review": review.model_dump(mode="json")}, status=201
    )


def setup_routes(app: web.Application) -> None:
    app.router.add_post("/api/bookings", create_booking_handler)
    app.router.add_get("/api/services/{service_id}/slots", available_slots_handler)
    app.router.add_post("/api/payments/intent", create_payment_intent_handler)
    app.router.add_post("/api/reviews", create_review_handler)
