"""
Stripe Connect integration for consultation payments.

Charges are destination charges: the client pays the platform, Stripe moves
the amount minus application_fee_amount to the diviner's connected account.
"""

import asyncio
import uuid
from typing import Optional, Tuple

import stripe
from stripe import PaymentIntent, Refund

from booking.pricing import split_payment
from config import settings
from models.payment import PaymentSplit
from utils.constants import BOOKING_ID_DISPLAY_LENGTH, CANCEL_REASON_REFUND
from utils.exceptions import PaymentError, PaymentIntentError
from utils.logging_config import setup_logging

logger = setup_logging(name=__name__, log_file="payments.log")

stripe.api_key = settings.stripe_secret_key

# Retry configuration
_MAX_RETRIES = 3
_RETRY_DELAY = 1.0  # seconds
_RETRY_BACKOFF = 2.0  # exponential backoff multiplier


def _is_client_error(error: stripe.StripeError) -> bool:
    return bool(error.http_status and 400 <= error.http_status < 500)


async def create_payment_intent(
    amount: int,
    booking_id: str,
    diviner_id: str,
    destination_account: str,
    fee_rate: Optional[float] = None,
    currency: Optional[str] = None,
) -> Tuple[PaymentIntent, PaymentSplit]:
    """
    Create a split payment intent for a booking.

    The synchronous Stripe call runs in a worker thread. Network failures
    and 5xx responses are retried with exponential backoff; card and request
    errors are passed through at once.

    Args:
        amount: Amount in yen (must be positive)
        booking_id: Booking ID
        diviner_id: Diviner ID, kept in metadata
        destination_account: Diviner's Stripe connected account ID
        fee_rate: Platform fee rate (default: settings.platform_fee_rate)
        currency: Currency code (default: settings.currency)

    Returns:
        The PaymentIntent and the fee split it was created with

    Raises:
        ValueError: If input validation fails
        PaymentIntentError: If the Stripe call fails
    """
    if amount <= 0:
        raise ValueError(f"Invalid amount: {amount} must be positive")

    if not booking_id:
        raise ValueError("Booking ID is required")

    if not destination_account:
        raise ValueError("Destination account is required")

    rate = settings.platform_fee_rate if fee_rate is None else fee_rate
    split = split_payment(amount, rate)
    delay = _RETRY_DELAY
    # One key for every attempt of this call
    idempotency_key = f"booking-{booking_id}-pi-{uuid.uuid4().hex}"

    for attempt in range(_MAX_RETRIES):
        try:
            payment_intent = await asyncio.to_thread(
                stripe.PaymentIntent.create,
                amount=amount,
                currency=currency or settings.currency,
                application_fee_amount=split.platform_fee,
                transfer_data={"destination": destination_account},
                metadata={
                    "booking_id": booking_id,
                    "diviner_id": diviner_id,
                },
                description=f"Consultation booking - {booking_id[:BOOKING_ID_DISPLAY_LENGTH]}",
                automatic_payment_methods={"enabled": True},
                idempotency_key=idempotency_key,
            )

            logger.info(
                f"Created payment intent {payment_intent.id} for booking {booking_id} "
                f"(amount={amount}, platform_fee={split.platform_fee})"
            )
            return payment_intent, split

        except stripe.StripeError as e:
            if _is_client_error(e):
                logger.error(
                    f"Stripe client error creating payment intent for booking {booking_id}: {e}",
                    exc_info=True,
                )
                raise PaymentIntentError(f"Payment processing error: {e}") from e

            if attempt < _MAX_RETRIES - 1:
                logger.warning(
                    f"Stripe error (attempt {attempt + 1}/{_MAX_RETRIES}) for booking "
                    f"{booking_id}: {e}. Retrying in {delay}s..."
                )
                await asyncio.sleep(delay)
                delay *= _RETRY_BACKOFF
            else:
                logger.error(
                    f"Stripe error creating payment intent for booking {booking_id} "
                    f"after {_MAX_RETRIES} attempts: {e}",
                    exc_info=True,
                )
                raise PaymentIntentError(
                    f"Payment processing error after {_MAX_RETRIES} attempts: {e}"
                ) from e

    raise PaymentIntentError(f"Failed to create payment intent for booking {booking_id}")


async def get_payment_intent(payment_intent_id: str) -> Optional[PaymentIntent]:
    """
    Get payment intent by ID.

    Returns:
        PaymentIntent object or None if not found or unreachable

    Raises:
        ValueError: If payment_intent_id is empty
    """
    if not payment_intent_id:
        raise ValueError("Payment intent ID is required")

    delay = _RETRY_DELAY

    for attempt in range(_MAX_RETRIES):
        try:
            return await asyncio.to_thread(
                stripe.PaymentIntent.retrieve, payment_intent_id
            )
        except stripe.StripeError as e:
            if _is_client_error(e):
                logger.debug(
                    f"Payment intent {payment_intent_id} not found or client error: {e}"
                )
                return None

            if attempt < _MAX_RETRIES - 1:
                logger.warning(
                    f"Stripe error (attempt {attempt + 1}/{_MAX_RETRIES}) retrieving "
                    f"payment intent {payment_intent_id}: {e}. Retrying in {delay}s..."
                )
                await asyncio.sleep(delay)
                delay *= _RETRY_BACKOFF
            else:
                logger.error(
                    f"Stripe error retrieving payment intent {payment_intent_id} "
                    f"after {_MAX_RETRIES} attempts: {e}",
                    exc_info=True,
                )

    return None


REFUND_REASONS = ("duplicate", "fraudulent", "requested_by_customer")

# Intents the client can still complete
REUSABLE_INTENT_STATUSES = (
    "requires_payment_method",
    "requires_confirmation",
    "requires_action",
)


async def create_refund(
    payment_intent_id: str,
    amount: Optional[int] = None,
    reason: Optional[str] = None,
) -> Refund:
    """
    Refund a consultation payment, fully or partially.

    The booking is cancelled when Stripe reports the refund through the
    charge.refunded webhook, not here.

    Raises:
        ValueError: Missing intent ID, non-positive amount or unknown reason
        PaymentError: If the Stripe call fails
    """
    if not payment_intent_id:
        raise ValueError("Payment intent ID is required")
    if amount is not None and amount <= 0:
        raise ValueError(f"Invalid refund amount: {amount} must be positive")
    if reason is not None and reason not in REFUND_REASONS:
        raise ValueError(f"Invalid refund reason: {reason}")

    params = {"payment_intent": payment_intent_id}
    if amount is not None:
        params["amount"] = amount
    if reason is not None:
        params["reason"] = reason

    try:
        refund = await asyncio.to_thread(stripe.Refund.create, **params)
    except stripe.StripeError as e:
        logger.error(
            f"Stripe error refunding payment intent {payment_intent_id}: {e}",
            exc_info=True,
        )
        raise PaymentError(f"Refund failed: {e}") from e

    logger.info(
        f"Created refund {refund.id} for payment intent {payment_intent_id} "
        f"(amount={amount or 'full'})"
    )
    return refund


async def handle_webhook(event_data: dict) -> dict:
    """
    Dispatch a verified Stripe webhook event to the booking lifecycle.

    Args:
        event_data: Stripe webhook event data

    Returns:
        Response dict
    """
    from booking.service import get_booking_service
    from db import get_db_client

    event_type = event_data.get("type")
    obj = event_data.get("data", {}).get("object")

    if not obj:
        return {"status": "error", "message": "Invalid webhook data"}

    service = get_booking_service()

    if event_type == "payment_intent.succeeded":
        booking_id = (obj.get("metadata") or {}).get("booking_id")
        if not booking_id:
            logger.warning("Webhook received without booking_id")
            return {"status": "ignored", "message": "No booking_id in metadata"}

        split = await service.confirm_payment(booking_id, payment_intent_id=obj["id"])
        return {
            "status": "success",
            "booking_id": booking_id,
            "platform_fee": split.platform_fee,
            "diviner_net": split.diviner_net,
        }

    if event_type == "payment_intent.payment_failed":
        payment = await service.record_payment_failure(obj["id"])
        booking_id = payment.booking_id if payment else None
        logger.warning(f"Payment {obj['id']} failed for booking {booking_id}")
        return {"status": "failed", "booking_id": booking_id}

    if event_type == "charge.refunded":
        payment_intent_id = obj.get("payment_intent")
        if not payment_intent_id:
            return {"status": "ignored", "message": "Charge has no payment intent"}

        payment = await get_db_client().get_payment_by_stripe_id(payment_intent_id)
        if not payment:
            logger.warning(f"Refund for unknown payment intent {payment_intent_id}")
            return {"status": "ignored", "message": "Unknown payment intent"}

        await service.cancel_for_refund(payment.booking_id, CANCEL_REASON_REFUND)
        return {"status": "refunded", "booking_id": payment.booking_id}

    if event_type == "account.updated":
        diviner_id = (obj.get("metadata") or {}).get("diviner_id")
        if diviner_id and obj.get("details_submitted"):
            await get_db_client().update_diviner_stripe_account(diviner_id, obj["id"])
            logger.info(f"Linked Stripe account {obj['id']} to diviner {diviner_id}")
            return {"status": "success", "diviner_id": diviner_id}
        return {"status": "ignored", "message": "Account onboarding incomplete"}

    logger.info(f"Unhandled event type: {event_type}")
    return {"status": "processed", "event_type": event_type}
