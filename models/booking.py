"""Booking models for consultations."""

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from utils.constants import MAX_PRE_QUESTION_LENGTH


class BookingStatus(str, Enum):
    """Booking status."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class Booking(BaseModel):
    """Booking model. The booked interval is [scheduled_at, scheduled_end)."""

    id: Optional[str] = None
    client_id: str = Field(..., description="Client ID (Supabase UUID)")
    diviner_id: str = Field(..., description="Diviner ID (Supabase UUID)")
    service_id: str = Field(..., description="Service ID (Supabase UUID)")
    scheduled_at: datetime
    duration_minutes: int = Field(..., gt=0)
    total_amount: int = Field(..., ge=0)
    status: BookingStatus = BookingStatus.PENDING
    pre_question: Optional[str] = Field(
        default=None, max_length=MAX_PRE_QUESTION_LENGTH
    )
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def scheduled_end(self) -> datetime:
        return self.scheduled_at + timedelta(minutes=self.duration_minutes)

    class Config:
        json_schema_extra = {
            "example": {
                "client_id": "uuid-here",
                "diviner_id": "uuid-here",
                "service_id": "uuid-here",
                "scheduled_at": "2026-01-12T01:00:00Z",
                "duration_minutes": 30,
                "total_amount": 3000,
                "status": "pending",
            }
        }


class BookingCreate(BaseModel):
    """Booking creation model."""

    client_id: str
    diviner_id: str
    service_id: str
    scheduled_at: datetime
    duration_minutes: int
    total_amount: int
    status: BookingStatus = BookingStatus.PENDING
    pre_question: Optional[str] = None
