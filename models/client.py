"""Client models for consultation buyers."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class Client(BaseModel):
    """Client model."""

    id: Optional[str] = None
    user_id: str = Field(..., description="Auth user ID")
    nickname: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "uuid-here",
                "nickname": "hoshimi",
            }
        }
