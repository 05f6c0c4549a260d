"""Service listings offered by diviners."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from utils.constants import (
    MAX_DURATION_MINUTES,
    MAX_PRICE_JPY,
    MIN_DURATION_MINUTES,
    MIN_PRICE_JPY,
)


class ConsultationType(str, Enum):
    """How a consultation is held."""

    VIDEO_CALL = "video_call"
    VOICE_CALL = "voice_call"
    CHAT = "chat"
    EMAIL = "email"
    IN_PERSON = "in_person"


class Service(BaseModel):
    """Service model. Prices are whole yen."""

    id: Optional[str] = None
    diviner_id: str = Field(..., description="Diviner ID (Supabase UUID)")
    title: str = ""
    description: Optional[str] = None
    consultation_type: ConsultationType = ConsultationType.VIDEO_CALL
    duration_minutes: int = Field(
        ..., ge=MIN_DURATION_MINUTES, le=MAX_DURATION_MINUTES
    )
    price: int = Field(..., ge=MIN_PRICE_JPY, le=MAX_PRICE_JPY)
    first_time_price: Optional[int] = Field(
        default=None, ge=MIN_PRICE_JPY, le=MAX_PRICE_JPY
    )
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "diviner_id": "uuid-here",
                "title": "Tarot reading",
                "consultation_type": "video_call",
                "duration_minutes": 30,
                "price": 5000,
                "first_time_price": 3000,
            }
        }
