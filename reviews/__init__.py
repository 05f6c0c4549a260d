"""Consultation reviews and diviner rating aggregates."""

from .service import RatingSummary, ReviewService, summarize_ratings

__all__ = ["RatingSummary", "ReviewService", "summarize_ratings"]
