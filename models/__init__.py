"""Pydantic models for data validation and serialization."""

from .availability import Availability
from .booking import Booking, BookingCreate, BookingStatus
from .client import Client
from .diviner import Diviner, DivinerStatus
from .payment import Payment, PaymentCreate, PaymentSplit, PaymentStatus
from .review import Review, ReviewCreate
from .service import ConsultationType, Service

__all__ = [
    "Availability",
    "Booking",
    "BookingCreate",
    "BookingStatus",
    "Client",
    "ConsultationType",
    "Diviner",
    "DivinerStatus",
    "Payment",
    "PaymentCreate",
    "PaymentSplit",
    "PaymentStatus",
    "Review",
    "ReviewCreate",
    "Service",
]
