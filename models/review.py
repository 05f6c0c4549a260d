"""Review models for completed consultations."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from utils.constants import MAX_RATING, MAX_REVIEW_COMMENT_LENGTH, MIN_RATING


class Review(BaseModel):
    """Review model."""

    id: Optional[str] = None
    booking_id: str
    client_id: str
    diviner_id: str
    rating: int = Field(..., ge=MIN_RATING, le=MAX_RATING)
    comment: Optional[str] = Field(default=None, max_length=MAX_REVIEW_COMMENT_LENGTH)
    is_visible: bool = True
    created_at: Optional[datetime] = None


class ReviewCreate(BaseModel):
    """Review creation model."""

    booking_id: str
    client_id: str
    diviner_id: str
    rating: int = Field(..., ge=MIN_RATING, le=MAX_RATING)
    comment: Optional[str] = None
