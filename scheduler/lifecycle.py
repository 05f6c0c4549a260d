"""
Scheduler for the booking lifecycle using APScheduler.

Consultations are not reported back by the call/chat providers, so a
periodic job moves CONFIRMED bookings whose end has passed to COMPLETED.
A client becomes eligible to review only after this transition, and it is
what ends first-time pricing with that diviner.
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from booking.service import get_booking_service
from config import settings
from utils.exceptions import DatabaseError
from utils.logging_config import setup_logging

logger = setup_logging(name=__name__, log_file="scheduler.log")

scheduler = AsyncIOScheduler(timezone=settings.timezone)


async def complete_finished_bookings() -> int:
    """Run one completion pass. Errors are logged so the job keeps running."""
    try:
        completed = await get_booking_service().complete_finished_bookings()
    except (DatabaseError, RuntimeError) as e:
        logger.error(f"Failed to complete finished bookings: {e}", exc_info=True)
        return 0

    if completed:
        logger.info(f"Marked {completed} finished bookings as completed")
    else:
        logger.debug("No finished bookings to complete")
    return completed


def setup_scheduler() -> None:
    """Register the lifecycle job and start the scheduler."""
    scheduler.add_job(
        complete_finished_bookings,
        trigger=IntervalTrigger(minutes=settings.completion_check_minutes),
        id="complete_finished_bookings",
        name="Mark finished consultations as completed",
        replace_existing=True,
    )

    scheduler.start()
    logger.info("Scheduler started")


def shutdown_scheduler() -> None:
    """Shutdown the scheduler."""
    if scheduler.running:
        scheduler.shutdown()
    logger.info("Scheduler stopped")
