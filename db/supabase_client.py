"""
Supabase database client with the queries the booking flow needs.
Handles diviners, clients, services, availability, bookings, payments
and reviews.

Double-booking guard (storage side):
====================================
The conflict check in booking.service is a read followed by an insert, so
two concurrent requests can both see a free slot. The bookings table must
make the insert itself fail for overlapping active rows:

CREATE EXTENSION IF NOT EXISTS btree_gist;

ALTER TABLE bookings
  ADD COLUMN scheduled_end timestamptz
  GENERATED ALWAYS AS (scheduled_at + make_interval(mins => duration_minutes)) STORED;

ALTER TABLE bookings
  ADD CONSTRAINT bookings_no_overlap
  EXCLUDE USING gist (
    diviner_id WITH =,
    tstzrange(scheduled_at, scheduled_end, '[)') WITH &&
  ) WHERE (status IN ('pending', 'confirmed'));

A violation comes back as PostgreSQL error 23P01 and is raised as
SlotConflictError by create_booking.

Booking counter (atomic increment):
-----------------------------------
CREATE FUNCTION increment_diviner_booking_count(p_diviner_id uuid)
RETURNS void LANGUAGE sql AS $$
  UPDATE diviners SET booking_count = booking_count + 1 WHERE id = p_diviner_id;
$$;
"""

from datetime import datetime, timedelta
from typing import List, Optional

from postgrest.exceptions import APIError
from supabase import Client as SupabaseClientType
from supabase import create_client

from config import settings
from models.availability import Availability
from models.booking import Booking, BookingCreate, BookingStatus
from models.client import Client
from models.diviner import Diviner
from models.payment import Payment, PaymentCreate, PaymentStatus
from models.review import Review, ReviewCreate
from models.service import Service
from utils.constants import ACTIVE_BOOKING_STATUSES, MAX_DURATION_MINUTES
from utils.datetime_utils import parse_iso_datetime, to_iso_string, utc_now
from utils.exceptions import SlotConflictError

EXCLUSION_VIOLATION = "23P01"

_DATETIME_FIELDS = (
    "scheduled_at",
    "cancelled_at",
    "paid_at",
    "created_at",
    "updated_at",
)


class SupabaseClient:
    """
    Supabase database client wrapper.

    Uses the service_role key, so row level security is bypassed and the
    HTTP layer is responsible for ownership checks.
    """

    def __init__(self):
        self.client: SupabaseClientType = create_client(
            settings.supabase_url, settings.supabase_key
        )

    # ========== Client & Diviner Operations ==========

    async def get_client_by_id(self, client_id: str) -> Optional[Client]:
        """Get client by ID."""
        try:
            response = (
                self.client.table("clients").select("*").eq("id", client_id).execute()
            )

            if response.data:
                return Client(**self._parse_row(response.data[0]))
            return None
        except Exception as e:
            raise RuntimeError(f"Failed to get client: {e}") from e

    async def get_diviner_by_id(self, diviner_id: str) -> Optional[Diviner]:
        """Get diviner by ID."""
        try:
            response = (
                self.client.table("diviners").select("*").eq("id", diviner_id).execute()
            )

            if response.data:
                return Diviner(**self._parse_row(response.data[0]))
            return None
        except Exception as e:
            raise RuntimeError(f"Failed to get diviner: {e}") from e

    async def increment_diviner_booking_count(self, diviner_id: str) -> None:
        """Atomically add one to the diviner's booking counter."""
        try:
            self.client.rpc(
                "increment_diviner_booking_count", {"p_diviner_id": diviner_id}
            ).execute()
        except Exception as e:
            raise RuntimeError(f"Failed to increment booking count: {e}") from e

    async def update_diviner_rating(
        self, diviner_id: str, rating_avg: float, review_count: int
    ) -> Optional[Diviner]:
        """Store recomputed rating aggregates."""
        try:
            response = (
                self.client.table("diviners")
                .update(
                    {
                        "rating_avg": rating_avg,
                        "review_count": review_count,
                        "updated_at": to_iso_string(utc_now()),
                    }
                )
                .eq("id", diviner_id)
                .execute()
            )

            if not response.data:
                return None
            return Diviner(**self._parse_row(response.data[0]))
        except Exception as e:
            raise RuntimeError(f"Failed to update diviner rating: {e}") from e

    async def update_diviner_stripe_account(
        self, diviner_id: str, stripe_account_id: str
    ) -> Optional[Diviner]:
        """Link a Stripe connected account after onboarding."""
        try:
            response = (
                self.client.table("diviners")
                .update(
                    {
                        "stripe_account_id": stripe_account_id,
                        "updated_at": to_iso_string(utc_now()),
                    }
                )
                .eq("id", diviner_id)
                .execute()
            )

            if not response.data:
                return None
            return Diviner(**self._parse_row(response.data[0]))
        except Exception as e:
            raise RuntimeError(f"Failed to update Stripe account: {e}") from e

    # ========== Service & Availability Operations ==========

    async def get_service_by_id(self, service_id: str) -> Optional[Service]:
        """Get an active service by ID; inactive services are treated as missing."""
        try:
            response = (
                self.client.table("services")
                .select("*")
                .eq("id", service_id)
                .eq("is_active", True)
                .execute()
            )

            if response.data:
                return Service(**self._parse_row(response.data[0]))
            return None
        except Exception as e:
            raise RuntimeError(f"Failed to get service: {e}") from e

    async def get_availabilities(self, diviner_id: str) -> List[Availability]:
        """Get the diviner's active weekly windows."""
        try:
            response = (
                self.client.table("availabilities")
                .select("*")
                .eq("diviner_id", diviner_id)
                .eq("is_available", True)
                .order("day_of_week", desc=False)
                .execute()
            )

            return [Availability(**self._parse_row(item)) for item in response.data]
        except Exception as e:
            raise RuntimeError(f"Failed to get availabilities: {e}") from e

    # ========== Booking Operations ==========

    async def create_booking(self, booking_data: BookingCreate) -> Booking:
        """
        Create a new booking.

        Raises:
            SlotConflictError: If the storage-level overlap constraint rejects it
        """
        try:
            data = booking_data.model_dump(mode="json", exclude_none=True)
            response = self.client.table("bookings").insert(data).execute()

            if not response.data:
                raise ValueError("Failed to create booking: no data returned")

            return self._parse_booking(response.data[0])
        except APIError as e:
            if e.code == EXCLUSION_VIOLATION:
                raise SlotConflictError(
                    "The requested time overlaps an existing booking"
                ) from e
            raise RuntimeError(f"Failed to create booking: {e}") from e
        except Exception as e:
            raise RuntimeError(f"Failed to create booking: {e}") from e

    async def get_booking_by_id(self, booking_id: str) -> Optional[Booking]:
        """Get booking by ID."""
        try:
            response = (
                self.client.table("bookings").select("*").eq("id", booking_id).execute()
            )

            if response.data:
                return self._parse_booking(response.data[0])
            return None
        except Exception as e:
            raise RuntimeError(f"Failed to get booking: {e}") from e

    async def get_active_bookings_for_diviner(
        self, diviner_id: str, start: datetime, end: datetime
    ) -> List[Booking]:
        """
        Get pending/confirmed bookings that could overlap [start, end).

        A booking overlapping the range must start before `end` and, since no
        booking is longer than MAX_DURATION_MINUTES, no earlier than that
        many minutes before `start`. The exact overlap test is left to
        booking.conflicts.find_conflict.
        """
        lower = start - timedelta(minutes=MAX_DURATION_MINUTES)
        try:
            response = (
                self.client.table("bookings")
                .select("*")
                .eq("diviner_id", diviner_id)
                .in_("status", list(ACTIVE_BOOKING_STATUSES))
                .gte("scheduled_at", to_iso_string(lower))
                .lt("scheduled_at", to_iso_string(end))
                .order("scheduled_at", desc=False)
                .execute()
            )

            return [self._parse_booking(item) for item in response.data]
        except Exception as e:
            raise RuntimeError(f"Failed to get diviner bookings: {e}") from e

    async def count_completed_bookings(self, client_id: str, diviner_id: str) -> int:
        """Count the client's COMPLETED bookings with a diviner."""
        try:
            response = (
                self.client.table("bookings")
                .select("id", count="exact")
                .eq("client_id", client_id)
                .eq("diviner_id", diviner_id)
                .eq("status", BookingStatus.COMPLETED.value)
                .execute()
            )
            return response.count or 0
        except Exception as e:
            raise RuntimeError(f"Failed to count completed bookings: {e}") from e

    async def update_booking_status(
        self,
        booking_id: str,
        status: BookingStatus,
        cancel_reason: Optional[str] = None,
    ) -> Optional[Booking]:
        """Update booking status; cancellation also stamps cancelled_at."""
        try:
            now = to_iso_string(utc_now())
            update_data = {"status": status.value, "updated_at": now}
            if status == BookingStatus.CANCELLED:
                update_data["cancelled_at"] = now
                update_data["cancel_reason"] = cancel_reason

            response = (
                self.client.table("bookings")
                .update(update_data)
                .eq("id", booking_id)
                .execute()
            )

            if not response.data:
                return None

            return self._parse_booking(response.data[0])
        except Exception as e:
            raise RuntimeError(f"Failed to update booking status: {e}") from e

    async def get_confirmed_bookings_started_before(
        self, cutoff: datetime
    ) -> List[Booking]:
        """Get CONFIRMED bookings whose start is at or before cutoff."""
        try:
            response = (
                self.client.table("bookings")
                .select("*")
                .eq("status", BookingStatus.CONFIRMED.value)
                .lte("scheduled_at", to_iso_string(cutoff))
                .execute()
            )

            return [self._parse_booking(item) for item in response.data]
        except Exception as e:
            raise RuntimeError(f"Failed to get confirmed bookings: {e}") from e

    # ========== Payment Operations ==========

    async def get_payment_by_booking(self, booking_id: str) -> Optional[Payment]:
        """Get the payment attached to a booking."""
        try:
            response = (
                self.client.table("payments")
                .select("*")
                .eq("booking_id", booking_id)
                .execute()
            )

            if response.data:
                return Payment(**self._parse_row(response.data[0]))
            return None
        except Exception as e:
            raise RuntimeError(f"Failed to get payment: {e}") from e

    async def get_payment_by_stripe_id(
        self, stripe_payment_id: str
    ) -> Optional[Payment]:
        """Get payment by Stripe payment intent ID."""
        try:
            response = (
                self.client.table("payments")
                .select("*")
                .eq("stripe_payment_id", stripe_payment_id)
                .execute()
            )

            if response.data:
                return Payment(**self._parse_row(response.data[0]))
            return None
        except Exception as e:
            raise RuntimeError(f"Failed to get payment: {e}") from e

    async def upsert_payment(self, payment_data: PaymentCreate) -> Payment:
        """Create or replace the booking's payment record."""
        try:
            data = payment_data.model_dump(mode="json")
            data["updated_at"] = to_iso_string(utc_now())

            response = (
                self.client.table("payments")
                .upsert(data, on_conflict="booking_id")
                .execute()
            )

            if not response.data:
                raise ValueError("Failed to upsert payment: no data returned")

            return Payment(**self._parse_row(response.data[0]))
        except Exception as e:
            raise RuntimeError(f"Failed to upsert payment: {e}") from e

    async def update_payment_status(
        self, stripe_payment_id: str, status: PaymentStatus
    ) -> Optional[Payment]:
        """Update payment status by Stripe payment intent ID."""
        try:
            now = to_iso_string(utc_now())
            update_data = {"status": status.value, "updated_at": now}
            if status == PaymentStatus.SUCCEEDED:
                update_data["paid_at"] = now

            response = (
                self.client.table("payments")
                .update(update_data)
                .eq("stripe_payment_id", stripe_payment_id)
                .execute()
            )

            if not response.data:
                return None

            return Payment(**self._parse_row(response.data[0]))
        except Exception as e:
            raise RuntimeError(f"Failed to update payment status: {e}") from e

    # ========== Review Operations ==========

    async def get_review_by_booking(self, booking_id: str) -> Optional[Review]:
        try:
            response = (
                self.client.table("reviews")
                .select("*")
                .eq("booking_id", booking_id)
                .execute()
            )

            if response.data:
                return Review(**self._parse_row(response.data[0]))
            return None
        except Exception as e:
            raise RuntimeError(f"Failed to get review: {e}") from e

    async def create_review(self, review_data: ReviewCreate) -> Review:
        try:
            data = review_data.model_dump(mode="json", exclude_none=True)
            response = self.client.table("reviews").insert(data).execute()

            if not response.data:
                raise ValueError("Failed to create review: no data returned")

            return Review(**self._parse_row(response.data[0]))
        except Exception as e:
            raise RuntimeError(f"Failed to create review: {e}") from e

    async def get_visible_ratings(self, diviner_id: str) -> List[int]:
        """Ratings of all visible reviews for a diviner."""
        try:
            response = (
                self.client.table("reviews")
                .select("rating")
                .eq("diviner_id", diviner_id)
                .eq("is_visible", True)
                .execute()
            )

            return [int(item["rating"]) for item in response.data]
        except Exception as e:
            raise RuntimeError(f"Failed to get ratings: {e}") from e

    # ========== Helper Methods ==========

    def _parse_row(self, item: dict) -> dict:
        """Normalize timestamp columns to timezone-aware datetimes."""
        item = item.copy()
        for field in _DATETIME_FIELDS:
            if isinstance(item.get(field), str):
                item[field] = parse_iso_datetime(item[field])
        return item

    def _parse_booking(self, item: dict) -> Booking:
        item = self._parse_row(item)
        # Generated column, derived again from duration on the model
        item.pop("scheduled_end", None)
        return Booking(**item)


# Global database client instance
_db_client: Optional[SupabaseClient] = None


def get_db_client() -> SupabaseClient:
    """Get or create database client instance."""
    global _db_client
    if _db_client is None:
        _db_client = SupabaseClient()
    return _db_client
