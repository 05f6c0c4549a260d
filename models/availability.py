"""Weekly availability windows for diviners."""

from datetime import datetime, time
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class Availability(BaseModel):
    """
    Recurring weekly window during which a diviner accepts bookings.

    Times are marketplace wall-clock times. Several windows may share a day;
    each one is checked on its own and they are never merged.
    """

    id: Optional[str] = None
    diviner_id: str = Field(..., description="Diviner ID (Supabase UUID)")
    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday, 6 = Saturday")
    start_time: time
    end_time: time
    is_available: bool = Field(default=True, description="Active flag")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def check_window_order(self) -> "Availability":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "diviner_id": "uuid-here",
                "day_of_week": 1,
                "start_time": "10:00",
                "end_time": "18:00",
                "is_available": True,
            }
        }
