"""Shared helpers: configuration-aware logging, datetimes, validation, errors."""
