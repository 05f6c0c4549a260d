"""Review submission with rating recomputation."""

from typing import Iterable, NamedTuple, Optional

from db import SupabaseClient, get_db_client
from models.booking import BookingStatus
from models.review import Review, ReviewCreate
from utils.constants import MAX_RATING, MAX_REVIEW_COMMENT_LENGTH, MIN_RATING
from utils.exceptions import (
    BookingNotFoundError,
    DuplicateReviewError,
    PermissionDeniedError,
    ReviewNotAllowedError,
    ValidationError,
)
from utils.logging_config import setup_logging
from utils.validation import sanitize_text

logger = setup_logging(name=__name__, log_file="reviews.log")


class RatingSummary(NamedTuple):
    rating_avg: float
    review_count: int


def summarize_ratings(ratings: Iterable[int]) -> RatingSummary:
    """Average and count of ratings; an empty history averages 0.0."""
    ratings = list(ratings)
    if not ratings:
        return RatingSummary(rating_avg=0.0, review_count=0)
    return RatingSummary(
        rating_avg=round(sum(ratings) / len(ratings), 2),
        review_count=len(ratings),
    )


class ReviewService:
    def __init__(self, db: Optional[SupabaseClient] = None):
        self.db = db if db is not None else get_db_client()

    async def submit_review(
        self,
        client_id: str,
        booking_id: str,
        rating: int,
        comment: Optional[str] = None,
    ) -> Review:
        """
        Store a client's review of a completed booking and refresh the
        diviner's rating average and review count.

        Raises:
            ValidationError: Rating outside 1..5
            BookingNotFoundError: Unknown booking
            PermissionDeniedError: Booking belongs to another client
            ReviewNotAllowedError: Booking is not COMPLETED
            DuplicateReviewError: Booking already reviewed
        """
        if not MIN_RATING <= rating <= MAX_RATING:
            raise ValidationError(
                f"Rating must be between {MIN_RATING} and {MAX_RATING}"
            )

        booking = await self.db.get_booking_by_id(booking_id)
        if not booking:
            raise BookingNotFoundError(f"Booking {booking_id} not found")
        if booking.client_id != client_id:
            raise PermissionDeniedError("Not allowed to review this booking")
        if booking.status != BookingStatus.COMPLETED:
            raise ReviewNotAllowedError("Only completed bookings can be reviewed")
        if await self.db.get_review_by_booking(booking_id):
            raise DuplicateReviewError(f"Booking {booking_id} already has a review")

        review = await self.db.create_review(
            ReviewCreate(
                booking_id=booking_id,
                client_id=client_id,
                diviner_id=booking.diviner_id,
                rating=rating,
                comment=sanitize_text(comment, MAX_REVIEW_COMMENT_LENGTH) or None,
            )
        )

        summary = summarize_ratings(await self.db.get_visible_ratings(booking.diviner_id))
        await self.db.update_diviner_rating(
            booking.diviner_id, summary.rating_avg, summary.review_count
        )

        logger.info(
            f"Review {review.id} stored for diviner {booking.diviner_id}: "
            f"avg={summary.rating_avg} over {summary.review_count} reviews"
        )
        return review
