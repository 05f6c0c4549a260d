"""Diviner profile fields used by booking and payouts."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class DivinerStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    SUSPENDED = "suspended"


class Diviner(BaseModel):
    """Diviner model."""

    id: Optional[str] = None
    user_id: Optional[str] = None
    display_name: str
    status: DivinerStatus = DivinerStatus.APPROVED
    stripe_account_id: Optional[str] = None
    booking_count: int = Field(default=0, ge=0)
    rating_avg: float = Field(default=0.0, ge=0, le=5)
    review_count: int = Field(default=0, ge=0)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
