"""
Booking orchestration: creation, payment preparation and the payment-driven
lifecycle (confirm, fail, refund, complete).
"""

from datetime import date, datetime, time, timedelta
from typing import Callable, List, NamedTuple, Optional

from booking.conflicts import find_conflict
from booking.pricing import resolve_price, split_payment
from booking.slots import generate_time_slots, is_legal_slot
from config import settings
from db import SupabaseClient, get_db_client
from models.booking import Booking, BookingCreate, BookingStatus
from models.diviner import DivinerStatus
from models.payment import Payment, PaymentCreate, PaymentSplit, PaymentStatus
from models.service import Service
from payments.stripe import (
    REUSABLE_INTENT_STATUSES,
    create_payment_intent,
    get_payment_intent,
)
from utils.constants import MAX_PRE_QUESTION_LENGTH
from utils.datetime_utils import combine_local, ensure_aware, utc_now
from utils.exceptions import (
    AlreadyPaidError,
    BookingError,
    BookingNotFoundError,
    ClientNotFoundError,
    DivinerNotFoundError,
    InvalidSlotError,
    PaymentAccountMissingError,
    PaymentNotFoundError,
    PermissionDeniedError,
    ServiceNotFoundError,
    SlotConflictError,
)
from utils.logging_config import setup_logging
from utils.validation import sanitize_text

logger = setup_logging(name=__name__, log_file="booking.log")


class PaymentIntentResult(NamedTuple):
    client_secret: str
    payment_intent_id: str
    amount: int
    platform_fee: int


class BookingService:
    """
    Applies the booking rules against the data-access layer.

    Args:
        db: Data-access collaborator (defaults to the shared Supabase client)
        fee_rate: Platform fee rate (defaults to settings.platform_fee_rate)
        clock: Returns the current instant; injectable for tests
    """

    def __init__(
        self,
        db: Optional[SupabaseClient] = None,
        fee_rate: Optional[float] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db if db is not None else get_db_client()
        self.fee_rate = settings.platform_fee_rate if fee_rate is None else fee_rate
        self.clock = clock

    async def _get_bookable_service(self, service_id: str) -> Service:
        service = await self.db.get_service_by_id(service_id)
        if not service:
            raise ServiceNotFoundError(f"Service {service_id} not found")

        diviner = await self.db.get_diviner_by_id(service.diviner_id)
        if not diviner or diviner.status != DivinerStatus.APPROVED:
            raise DivinerNotFoundError(f"Diviner {service.diviner_id} not found")
        return service

    async def _get_booking(self, booking_id: str) -> Booking:
        booking = await self.db.get_booking_by_id(booking_id)
        if not booking:
            raise BookingNotFoundError(f"Booking {booking_id} not found")
        return booking

    # ========== Booking Creation ==========

    async def create_booking(
        self,
        client_id: str,
        service_id: str,
        requested_start: datetime,
        pre_question: Optional[str] = None,
    ) -> Booking:
        """
        Create a PENDING booking for a client.

        Raises:
            ClientNotFoundError: Unknown client
            ServiceNotFoundError: Unknown or inactive service
            DivinerNotFoundError: Service owner missing or not approved
            InvalidSlotError: Start outside availability, in the past or
                beyond the booking horizon
            SlotConflictError: Interval overlaps a pending/confirmed booking
        """
        client = await self.db.get_client_by_id(client_id)
        if not client:
            raise ClientNotFoundError(f"Client {client_id} not found")

        service = await self._get_bookable_service(service_id)
        start = ensure_aware(requested_start)
        end = start + timedelta(minutes=service.duration_minutes)

        availabilities = await self.db.get_availabilities(service.diviner_id)
        if not is_legal_slot(
            availabilities, start, service.duration_minutes, now=self.clock()
        ):
            raise InvalidSlotError(
                f"{start.isoformat()} is not bookable for service {service_id}"
            )

        existing = await self.db.get_active_bookings_for_diviner(
            service.diviner_id, start, end
        )
        conflict = find_conflict(existing, start, end)
        if conflict:
            logger.info(
                f"Slot conflict for diviner {service.diviner_id} at {start.isoformat()} "
                f"with booking {conflict.id}"
            )
            raise SlotConflictError(
                "The requested time overlaps an existing booking",
                conflicting_booking_id=conflict.id,
            )

        completed = await self.db.count_completed_bookings(client_id, service.diviner_id)
        price = resolve_price(service, completed)

        booking = await self.db.create_booking(
            BookingCreate(
                client_id=client_id,
                diviner_id=service.diviner_id,
                service_id=service_id,
                scheduled_at=start,
                duration_minutes=service.duration_minutes,
                total_amount=price,
                status=BookingStatus.PENDING,
                pre_question=sanitize_text(pre_question, MAX_PRE_QUESTION_LENGTH) or None,
            )
        )

        logger.info(
            f"Created booking {booking.id} for client {client_id} with diviner "
            f"{service.diviner_id} at {start.isoformat()} (amount={price}, "
            f"first_time={completed == 0 and service.first_time_price is not None})"
        )
        return booking

    async def available_slots(self, service_id: str, day: date) -> List[datetime]:
        """Bookable start instants for a service on a local calendar day."""
        service = await self._get_bookable_service(service_id)
        availabilities = await self.db.get_availabilities(service.diviner_id)

        day_start = combine_local(day, time.min, settings.timezone)
        day_end = day_start + timedelta(days=1)
        bookings = await self.db.get_active_bookings_for_diviner(
            service.diviner_id, day_start, day_end
        )

        return generate_time_slots(
            availabilities,
            day,
            service.duration_minutes,
            now=self.clock(),
            bookings=bookings,
        )

    # ========== Payment Lifecycle ==========

    async def prepare_payment(
        self, booking_id: str, client_id: str
    ) -> PaymentIntentResult:
        """
        Create the split payment intent for a client's pending booking and
        record the PENDING payment. An intent already recorded for the
        booking that is still awaiting payment is handed back instead.

        Raises:
            BookingNotFoundError, PermissionDeniedError, AlreadyPaidError,
            DivinerNotFoundError, PaymentAccountMissingError, PaymentIntentError
        """
        booking = await self._get_booking(booking_id)
        if booking.client_id != client_id:
            raise PermissionDeniedError("Not allowed to pay for this booking")

        payment = await self.db.get_payment_by_booking(booking_id)
        if payment and payment.status == PaymentStatus.SUCCEEDED:
            raise AlreadyPaidError(f"Booking {booking_id} is already paid")

        if booking.status != BookingStatus.PENDING:
            raise BookingError(
                f"Booking {booking_id} is {booking.status.value} and cannot be paid"
            )

        diviner = await self.db.get_diviner_by_id(booking.diviner_id)
        if not diviner:
            raise DivinerNotFoundError(f"Diviner {booking.diviner_id} not found")
        if not diviner.stripe_account_id:
            raise PaymentAccountMissingError(
                "The diviner has not set up a payout account"
            )

        if (
            payment
            and payment.stripe_payment_id
            and payment.status == PaymentStatus.PENDING
        ):
            open_intent = await get_payment_intent(payment.stripe_payment_id)
            if (
                open_intent
                and open_intent.status in REUSABLE_INTENT_STATUSES
                and open_intent.amount == booking.total_amount
            ):
                logger.info(
                    f"Reusing payment intent {open_intent.id} for booking {booking_id}"
                )
                return PaymentIntentResult(
                    client_secret=open_intent.client_secret,
                    payment_intent_id=open_intent.id,
                    amount=booking.total_amount,
                    platform_fee=payment.platform_fee,
                )

        payment_intent, split = await create_payment_intent(
            booking.total_amount,
            booking.id,
            booking.diviner_id,
            diviner.stripe_account_id,
            fee_rate=self.fee_rate,
        )

        await self.db.upsert_payment(
            PaymentCreate(
                booking_id=booking.id,
                amount=booking.total_amount,
                platform_fee=split.platform_fee,
                stripe_payment_id=payment_intent.id,
                status=PaymentStatus.PENDING,
            )
        )

        return PaymentIntentResult(
            client_secret=payment_intent.client_secret,
            payment_intent_id=payment_intent.id,
            amount=booking.total_amount,
            platform_fee=split.platform_fee,
        )

    async def confirm_payment(
        self, booking_id: str, payment_intent_id: Optional[str] = None
    ) -> PaymentSplit:
        """
        Mark a booking as CONFIRMED and its payment as succeeded.

        The split is recomputed from the charged amount. The payment is
        written SUCCEEDED last, so a confirmation interrupted part-way is
        finished by the next delivery; once it is SUCCEEDED, further calls
        only yield the split again.

        Raises:
            BookingNotFoundError: Unknown booking
            BookingError: Booking is no longer PENDING (e.g. cancelled before
                the charge landed); the charge needs a refund
            PaymentNotFoundError: No payment record or intent ID to update
        """
        booking = await self._get_booking(booking_id)
        payment = await self.db.get_payment_by_booking(booking_id)

        amount = payment.amount if payment else booking.total_amount
        split = split_payment(amount, self.fee_rate)

        if payment and payment.status == PaymentStatus.SUCCEEDED:
            logger.warning(f"Payment for booking {booking_id} already confirmed")
            return split

        # CONFIRMED without a SUCCEEDED payment is an interrupted confirmation
        if booking.status not in (BookingStatus.PENDING, BookingStatus.CONFIRMED):
            logger.error(
                f"Charge succeeded for {booking.status.value} booking {booking_id}; "
                f"refund required"
            )
            raise BookingError(
                f"Booking {booking_id} is {booking.status.value} and cannot be confirmed"
            )

        stripe_payment_id = payment_intent_id or (
            payment.stripe_payment_id if payment else None
        )
        if not stripe_payment_id:
            raise PaymentNotFoundError(f"No payment recorded for booking {booking_id}")

        if booking.status == BookingStatus.PENDING:
            await self.db.update_booking_status(booking_id, BookingStatus.CONFIRMED)
        await self.db.increment_diviner_booking_count(booking.diviner_id)
        await self.db.update_payment_status(stripe_payment_id, PaymentStatus.SUCCEEDED)

        logger.info(
            f"Payment confirmed for booking {booking_id}: platform_fee="
            f"{split.platform_fee}, diviner_net={split.diviner_net}"
        )
        return split

    async def record_payment_failure(self, payment_intent_id: str) -> Optional[Payment]:
        """Mark a payment as FAILED. The booking stays PENDING for a retry."""
        payment = await self.db.update_payment_status(
            payment_intent_id, PaymentStatus.FAILED
        )
        if not payment:
            logger.warning(f"Failure reported for unknown payment {payment_intent_id}")
        return payment

    async def cancel_for_refund(self, booking_id: str, reason: str) -> Booking:
        """Mark the payment REFUNDED and cancel the booking."""
        booking = await self._get_booking(booking_id)
        payment = await self.db.get_payment_by_booking(booking_id)

        if (
            payment
            and payment.stripe_payment_id
            and payment.status != PaymentStatus.REFUNDED
        ):
            await self.db.update_payment_status(
                payment.stripe_payment_id, PaymentStatus.REFUNDED
            )

        updated = await self.db.update_booking_status(
            booking_id, BookingStatus.CANCELLED, cancel_reason=reason
        )
        logger.info(f"Booking {booking_id} cancelled: {reason}")
        return updated or booking

    async def complete_finished_bookings(self, now: Optional[datetime] = None) -> int:
        """
        Move CONFIRMED bookings whose consultation has ended to COMPLETED.

        Returns:
            Number of bookings completed
        """
        now = now or self.clock()
        candidates = await self.db.get_confirmed_bookings_started_before(now)

        completed = 0
        for booking in candidates:
            if booking.scheduled_end > now:
                continue
            if await self.db.update_booking_status(booking.id, BookingStatus.COMPLETED):
                completed += 1

        return completed


_booking_service: Optional[BookingService] = None


def get_booking_service() -> BookingService:
    """Get or create the shared booking service."""
    global _booking_service
    if _booking_service is None:
        _booking_service = BookingService()
    return _booking_service
