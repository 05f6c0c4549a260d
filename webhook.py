"""
HTTP server: Stripe webhook endpoint, health check and the booking API.

The webhook is the only path that confirms, fails or refunds payments, so it
verifies signatures, validates payloads and drops duplicate deliveries.
"""

import json
import time
from collections import deque
from typing import Dict, Optional

import stripe
from aiohttp import web
from aiohttp.web import Request, Response

from api import setup_routes
from config import settings
from payments import handle_webhook
from utils.exceptions import (
    BookingError,
    DatabaseError,
    ValidationError,
    WebhookVerificationError,
)
from utils.logging_config import setup_logging

logger = setup_logging(name=__name__, log_file="webhook.log")

MAX_REQUEST_BODY_SIZE = 1024 * 1024  # 1MB
_MAX_EVENT_HISTORY = 1000  # Keep last 1000 events for metrics
_EVENT_ID_CLEANUP_INTERVAL = 3600  # 1 hour in seconds
_EVENT_ID_MAX_AGE = 86400  # Stripe retries for up to 3 days; dedupe the first 24h

_processed_events: deque = deque(maxlen=_MAX_EVENT_HISTORY)
_processed_event_ids: Dict[str, float] = {}  # event_id -> timestamp
_last_cleanup_time = time.time()

_health_metrics = {
    "total_events": 0,
    "successful_events": 0,
    "failed_events": 0,
    "ignored_events": 0,
    "verification_failures": 0,
    "validation_failures": 0,
    "duplicate_events": 0,
    "start_time": time.time(),
}


def _cleanup_old_event_ids() -> None:
    """Drop idempotency entries older than _EVENT_ID_MAX_AGE."""
    global _last_cleanup_time
    current_time = time.time()

    if current_time - _last_cleanup_time < _EVENT_ID_CLEANUP_INTERVAL:
        return

    cutoff_time = current_time - _EVENT_ID_MAX_AGE
    expired_ids = [
        event_id
        for event_id, timestamp in _processed_event_ids.items()
        if timestamp < cutoff_time
    ]
    for event_id in expired_ids:
        _processed_event_ids.pop(event_id, None)

    _last_cleanup_time = current_time
    if expired_ids:
        logger.debug(f"Cleaned up {len(expired_ids)} expired event IDs")


def _verify_webhook_signature(payload: bytes, signature: Optional[str]) -> Dict:
    """
    Verify Stripe webhook signature.

    Args:
        payload: Raw request body bytes
        signature: Stripe-Signature header value

    Returns:
        Parsed event data

    Raises:
        WebhookVerificationError: If signature verification fails
        ValidationError: If no secret is configured outside test mode
    """
    if not settings.stripe_webhook_secret:
        if settings.stripe_secret_key.startswith("sk_test_"):
            logger.warning(
                "STRIPE_WEBHOOK_SECRET not set - skipping signature verification. "
                "This is insecure and should only be used in development."
            )
            try:
                return json.loads(payload.decode("utf-8"))
            except ValueError as e:
                raise ValidationError(f"Invalid JSON payload: {e}") from e
        raise ValidationError(
            "Stripe webhook secret is required for production webhook verification"
        )

    if not signature:
        raise WebhookVerificationError("Missing Stripe-Signature header")

    try:
        event = stripe.Webhook.construct_event(
            payload, signature, settings.stripe_webhook_secret
        )
    except ValueError as e:
        raise WebhookVerificationError(f"Invalid payload: {e}") from e
    except stripe.SignatureVerificationError as e:
        raise WebhookVerificationError(f"Invalid signature: {e}") from e

    # StripeObject -> plain dicts for the dispatcher
    return event.to_dict() if hasattr(event, "to_dict") else event


def _validate_webhook_payload(payload: Dict) -> None:
    """
    Validate webhook payload structure.

    Raises:
        ValidationError: If payload structure is invalid
    """
    if not isinstance(payload, dict):
        raise ValidationError("Webhook payload must be a JSON object")

    for field in ("id", "type"):
        value = payload.get(field)
        if not isinstance(value, str) or not value:
            raise ValidationError(f"Webhook '{field}' must be a non-empty string")

    if not isinstance(payload.get("data"), dict):
        raise ValidationError("Webhook payload 'data' field must be an object")


def _check_and_mark_idempotency(event_id: str) -> bool:
    """
    Check if event has already been seen and mark it if not.

    Returns:
        True if event was already processed, False if newly marked
    """
    _cleanup_old_event_ids()

    if event_id in _processed_event_ids:
        return True

    _processed_event_ids[event_id] = time.time()
    return False


def _error_response(status: int, error: str, message: str) -> Response:
    return web.json_response(
        {"status": "error", "error": error, "message": message}, status=status
    )


@web.middleware
async def security_headers_middleware(request: Request, handler):
    """Add security headers to all responses."""
    response = await handler(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Strict-Transport-Security"] = (
        "max-age=31536000; includeSubDomains"
    )

    if request.path.startswith("/webhook/"):
        response.headers["Allow"] = "POST"

    return response


async def stripe_webhook_handler(request: Request) -> Response:
    """Handle a Stripe webhook delivery."""
    event_id: Optional[str] = None
    event_type: Optional[str] = None

    try:
        raw_body = await request.read()

        if len(raw_body) > MAX_REQUEST_BODY_SIZE:
            logger.warning(f"Request body too large: {len(raw_body)} bytes")
            _health_metrics["validation_failures"] += 1
            return _error_response(
                413,
                "request_too_large",
                f"Request body exceeds maximum size of {MAX_REQUEST_BODY_SIZE} bytes",
            )

        if not raw_body:
            logger.warning("Received empty webhook payload")
            _health_metrics["validation_failures"] += 1
            return _error_response(400, "empty_payload", "Empty payload")

        signature = request.headers.get("Stripe-Signature")
        payload = _verify_webhook_signature(raw_body, signature)
        _validate_webhook_payload(payload)

        event_id = str(payload["id"])
        event_type = str(payload["type"])
        logger.info(f"Received Stripe webhook: event_id={event_id}, type={event_type}")

        if _check_and_mark_idempotency(event_id):
            _health_metrics["duplicate_events"] += 1
            logger.info(f"Duplicate webhook event ignored: event_id={event_id}")
            return web.json_response(
                {
                    "status": "success",
                    "message": "Event already processed",
                    "event_id": event_id,
                    "event_type": event_type,
                }
            )

        _health_metrics["total_events"] += 1
        try:
            result = await handle_webhook(payload)
        except (BookingError, DatabaseError) as e:
            # Redelivery cannot fix a missing booking or a rule violation
            _health_metrics["ignored_events"] += 1
            logger.warning(f"Webhook event {event_id} not applied: {e}")
            return web.json_response(
                {
                    "status": "ignored",
                    "event_id": event_id,
                    "event_type": event_type,
                    "message": str(e),
                }
            )
        except Exception:
            # Let Stripe's retry be processed
            _processed_event_ids.pop(event_id, None)
            raise

        _processed_events.append(
            {"id": event_id, "type": event_type, "timestamp": time.time()}
        )
        _health_metrics["successful_events"] += 1
        logger.info(f"Processed webhook: event_id={event_id}, type={event_type}")

        return web.json_response(
            {
                "status": "success",
                "event_id": event_id,
                "event_type": event_type,
                "result": result,
            }
        )

    except WebhookVerificationError as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        _health_metrics["verification_failures"] += 1
        return _error_response(401, "verification_failed", "Invalid webhook signature")

    except ValidationError as e:
        logger.warning(f"Invalid webhook payload: {e}")
        _health_metrics["validation_failures"] += 1
        return _error_response(400, "validation_failed", str(e))

    except Exception as e:
        logger.error(
            f"Unexpected webhook error: {e}",
            extra={
                "event_id": event_id or "unknown",
                "event_type": event_type or "unknown",
            },
            exc_info=True,
        )
        _health_metrics["failed_events"] += 1
        return _error_response(
            500,
            "processing_failed",
            "Internal server error while processing webhook",
        )


async def health_check(request: Request) -> Response:
    """Health check with webhook processing metrics."""
    _cleanup_old_event_ids()

    uptime_seconds = time.time() - _health_metrics["start_time"]
    total = _health_metrics["total_events"]
    success_rate = (
        (_health_metrics["successful_events"] / total * 100) if total > 0 else 0.0
    )

    recent_event_types: Dict[str, int] = {}
    for event in _processed_events:
        event_type = event.get("type", "unknown")
        recent_event_types[event_type] = recent_event_types.get(event_type, 0) + 1

    metrics = {
        key: value for key, value in _health_metrics.items() if key != "start_time"
    }
    metrics.update(
        {
            "success_rate_percent": round(success_rate, 2),
            "recent_events_count": len(_processed_events),
            "unique_event_ids_tracked": len(_processed_event_ids),
            "recent_event_types": recent_event_types,
        }
    )

    return web.json_response(
        {
            "status": "ok",
            "service": "diviner-booking",
            "timestamp": time.time(),
            "uptime_hours": round(uptime_seconds / 3600, 2),
            "metrics": metrics,
            "configuration": {
                "webhook_secret_configured": bool(settings.stripe_webhook_secret),
                "platform_fee_rate": settings.platform_fee_rate,
                "booking_horizon_days": settings.booking_horizon_days,
                "timezone": settings.timezone,
            },
        }
    )


async def _start_background_jobs(app: web.Application) -> None:
    from scheduler import setup_scheduler

    setup_scheduler()


async def _stop_background_jobs(app: web.Application) -> None:
    from scheduler import shutdown_scheduler

    shutdown_scheduler()


def create_app(with_scheduler: bool = False) -> web.Application:
    """
    Create aiohttp application with middleware and routes.

    Args:
        with_scheduler: Start the booking lifecycle job with the app
    """
    app = web.Application(
        middlewares=[security_headers_middleware],
        # Oversized bodies reach the handler and get a JSON 413
        client_max_size=MAX_REQUEST_BODY_SIZE * 2,
    )

    app.router.add_post("/webhook/stripe", stripe_webhook_handler)
    app.router.add_get("/health", health_check)
    setup_routes(app)

    if with_scheduler:
        app.on_startup.append(_start_background_jobs)
        app.on_cleanup.append(_stop_background_jobs)

    return app


if __name__ == "__main__":
    try:
        settings.validate_all_required()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        raise SystemExit(1)

    logger.info(f"Starting server on {settings.host}:{settings.port}")
    web.run_app(create_app(with_scheduler=True), host=settings.host, port=settings.port)
