"""
Application-wide constants.
Centralizes magic numbers shared by models, storage queries and handlers.
"""

# Booking statuses that hold a diviner's time
ACTIVE_BOOKING_STATUSES = ("pending", "confirmed")

# Service limits
MIN_DURATION_MINUTES = 10
MAX_DURATION_MINUTES = 240  # Bounds the conflict lookup window
MIN_PRICE_JPY = 0
MAX_PRICE_JPY = 1_000_000

# Text limits
MAX_PRE_QUESTION_LENGTH = 1000
MAX_REVIEW_COMMENT_LENGTH = 1000

# Review ratings
MIN_RATING = 1
MAX_RATING = 5

# Display formatting
BOOKING_ID_DISPLAY_LENGTH = 8

CANCEL_REASON_REFUND = "refund processed"
