"""Reminders for upcoming reservations"""

from datetime import datetime, timedelta
from typing import List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dinebook.models.reservation import Reservation, ReservationStatus
from dinebook.notifications import NotificationDispatcher, dispatch
from dinebook.services.settings import ExpirationSettingsService
from dinebook.store import ReservationStore, atomic

logger = structlog.get_logger()


class ReminderScheduler:
    """Sends one reminder per confirmed or booked reservation.

    A reservation qualifies once it starts within ``reminder_minutes`` of
    ``now``. The ``reminder_sent`` flag is claimed before the message goes
    out and handed back if delivery fails, so the next pass retries it.
    """

    def __init__(self, db: AsyncSession, dispatcher: Optional[NotificationDispatcher]):
        self.db = db
        self.dispatcher = dispatcher
        self.reservations = ReservationStore(db)

    async def run(self, now: datetime) -> List[str]:
        config = await ExpirationSettingsService(self.db).read()
        window_end = now + timedelta(minutes=config.reminder_minutes)

        result = await self.db.execute(
            select(Reservation).where(
                Reservation.status.in_(sorted(ReservationStatus.HOLDING)),
                Reservation.reminder_sent == False,
                Reservation.is_expired == False,
                Reservation.date >= now.date(),
                Reservation.date <= window_end.date(),
            )
        )
        due = [
            reservation
            for reservation in result.scalars().all()
            if now < reservation.reservation_datetime <= window_end
        ]
        await self.db.commit()

        if self.dispatcher is None:
            return []

        reminded = []
        for reservation in due:
            async with atomic(self.db, "reservation", reservation.id):
                claimed = await self.reservations.set_flags(
                    reservation.id, {"reminder_sent": True}, unless="reminder_sent"
                )
            if not claimed:
                continue

            outcome = await dispatch(self.dispatcher, "reminder", reservation)
            async with atomic(self.db, "reservation", reservation.id):
                if outcome.success:
                    if outcome.channel == "whatsapp":
                        await self.reservations.set_flags(reservation.id, {"whatsapp_sent": True})
                else:
                    await self.reservations.set_flags(reservation.id, {"reminder_sent": False})
            if outcome.success:
                reminded.append(reservation.id)

        if reminded:
            logger.info("Sent reservation reminders", count=len(reminded))
        return reminded
