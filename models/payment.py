"""Payment records attached 1:1 to bookings."""

from datetime import datetime
from enum import Enum
from typing import NamedTuple, Optional

from pydantic import BaseModel, Field


class PaymentStatus(str, Enum):
    """Payment status."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentSplit(NamedTuple):
    """How a charge is divided between the platform and the diviner."""

    platform_fee: int
    diviner_net: int


class Payment(BaseModel):
    """Payment model."""

    id: Optional[str] = None
    booking_id: str
    amount: int = Field(..., ge=0)
    platform_fee: int = Field(..., ge=0)
    stripe_payment_id: Optional[str] = None
    status: PaymentStatus = PaymentStatus.PENDING
    paid_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PaymentCreate(BaseModel):
    """Payment upsert model, keyed by booking_id."""

    booking_id: str
    amount: int
    platform_fee: int
    stripe_payment_id: str
    status: PaymentStatus = PaymentStatus.PENDING
