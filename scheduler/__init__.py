"""Background jobs for the booking lifecycle."""

from .lifecycle import complete_finished_bookings, setup_scheduler, shutdown_scheduler

__all__ = ["complete_finished_bookings", "setup_scheduler", "shutdown_scheduler"]
