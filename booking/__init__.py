"""Booking rules: slot legality, conflict detection, pricing and fee split."""

from .conflicts import find_conflict, intervals_overlap
from .pricing import resolve_price, split_payment
from .slots import generate_time_slots, is_legal_slot

__all__ = [
    "find_conflict",
    "generate_time_slots",
    "intervals_overlap",
    "is_legal_slot",
    "resolve_price",
    "split_payment",
]
