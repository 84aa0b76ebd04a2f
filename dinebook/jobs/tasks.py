"""Background job tasks"""

import asyncio
import structlog
from celery.signals import worker_process_init

from dinebook.jobs.celery_app import celery_app
from dinebook.logging_config import configure_logging

logger = structlog.get_logger()

_loop = None


def run_async(coro):
    """Helper to run async functions in sync context.

    One loop is kept per worker process; the async engine's pooled
    connections are bound to the loop that opened them.
    """
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
        asyncio.set_event_loop(_loop)
    return _loop.run_until_complete(coro)


@worker_process_init.connect
def init_worker_logging(**kwargs):
    configure_logging()


@celery_app.task(name="expire_overdue_reservations")
def expire_overdue_reservations():
    """Force overdue confirmed or booked reservations to expired or no-show"""

    async def _sweep():
        from dinebook.database import SessionLocal
        from dinebook.notifications import get_notification_dispatcher
        from dinebook.services.expiration import ExpirationSweeper
        from dinebook.timeutil import venue_now

        async with SessionLocal() as db:
            sweeper = ExpirationSweeper(db, dispatcher=get_notification_dispatcher())
            return await sweeper.sweep(venue_now())

    forced = run_async(_sweep())
    if forced:
        logger.info(
            "Expiration sweep finished",
            count=len(forced),
            reservation_ids=[item.reservation_id for item in forced],
        )
    return {"expired": len(forced)}


@celery_app.task(name="send_reservation_reminders")
def send_reservation_reminders():
    """Send reminders for upcoming reservations"""
    logger.info("Sending reservation reminders")

    async def _send_reminders():
        from dinebook.database import SessionLocal
        from dinebook.notifications import get_notification_dispatcher
        from dinebook.services.reminders import ReminderScheduler
        from dinebook.timeutil import venue_now

        async with SessionLocal() as db:
            scheduler = ReminderScheduler(db, get_notification_dispatcher())
            return await scheduler.run(venue_now())

    reminded = run_async(_send_reminders())
    return {"reminded": len(reminded)}
