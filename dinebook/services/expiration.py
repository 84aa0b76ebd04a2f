"""Auto-expiration of unattended reservations

Runs as one scheduled job (see ``dinebook.jobs``). A pass selects confirmed
or booked reservations whose grace period has elapsed and forces each one to
``expired`` or ``no-show`` in its own batch. The ``is_expired`` flag is
written in that batch under the row's version guard, so a reservation is
processed, and its guest notified, at most once even when two passes overlap.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dinebook.errors import ConcurrencyConflictError, ReservationError
from dinebook.models.reservation import Reservation, ReservationStatus
from dinebook.notifications import NotificationDispatcher, dispatch
from dinebook.services.settings import ExpirationSettingsService
from dinebook.services.state_machine import ReservationStateMachine
from dinebook.store import ChangeFeed, NotFound, atomic, publish_change

logger = structlog.get_logger()


@dataclass
class ForcedTransition:
    reservation_id: str
    from_status: str
    to_status: str
    released_table_id: Optional[str] = None
    notified: bool = False


def is_overdue(reservation: Reservation, now: datetime, expiration_minutes: int) -> bool:
    """Selection predicate for the sweep"""
    if reservation.status not in ReservationStatus.HOLDING or reservation.is_expired:
        return False
    deadline = reservation.reservation_datetime + timedelta(minutes=expiration_minutes)
    return now > deadline


class ExpirationSweeper:
    """Forces overdue reservations into a terminal status"""

    def __init__(
        self,
        db: AsyncSession,
        dispatcher: Optional[NotificationDispatcher] = None,
        feed: Optional[ChangeFeed] = None,
    ):
        self.db = db
        self.dispatcher = dispatcher
        self.feed = feed
        self.machine = ReservationStateMachine(db, feed=None, actor="system")

    async def sweep(self, now: datetime) -> List[ForcedTransition]:
        """Run one pass. ``now`` is naive local time at the venue."""
        config = await ExpirationSettingsService(self.db).read()
        if not config.is_enabled:
            logger.debug("Expiration sweep skipped, disabled")
            return []

        # Copy the policy out of the ORM row: a rolled back batch expires every
        # instance held by the session
        grace_minutes = config.expiration_minutes
        target = ReservationStatus.NO_SHOW if config.auto_mark_no_show else ReservationStatus.EXPIRED
        notify = config.send_expiration_notification

        candidate_ids = await self._candidates(now, grace_minutes)
        # The read transaction must not stay open across the per-reservation batches
        await self.db.commit()

        forced: List[ForcedTransition] = []
        for reservation_id in candidate_ids:
            try:
                outcome = await self._expire_one(reservation_id, now, grace_minutes, target, notify)
            except ConcurrencyConflictError:
                logger.info("Reservation changed during sweep, skipped", reservation_id=reservation_id)
                continue
            except ReservationError as e:
                logger.warning(
                    "Could not expire reservation",
                    reservation_id=reservation_id,
                    error=e.message,
                )
                continue
            if outcome is not None:
                forced.append(outcome)

        if forced:
            logger.info(
                "Expired overdue reservations",
                count=len(forced),
                status=forced[0].to_status,
            )
            await publish_change(self.feed)
        return forced

    async def _candidates(self, now: datetime, grace_minutes: int) -> List[str]:
        result = await self.db.execute(
            select(Reservation)
            .where(
                Reservation.status.in_(sorted(ReservationStatus.HOLDING)),
                Reservation.is_expired == False,
                Reservation.date <= now.date(),
            )
            .order_by(Reservation.date, Reservation.time, Reservation.id)
        )
        return [
            reservation.id
            for reservation in result.scalars().all()
            if is_overdue(reservation, now, grace_minutes)
        ]

    async def _expire_one(
        self,
        reservation_id: str,
        now: datetime,
        grace_minutes: int,
        target: str,
        notify: bool,
    ) -> Optional[ForcedTransition]:
        async with atomic(self.db, "reservation", reservation_id):
            lookup = await self.machine.reservations.get(reservation_id, refresh=True)
            if isinstance(lookup, NotFound):
                return None
            reservation = lookup.record
            # Re-check on fresh data: another pass may already have handled it
            if not is_overdue(reservation, now, grace_minutes):
                return None

            source = reservation.status
            released = await self.machine.apply(
                reservation,
                target,
                extra={"is_expired": True},
                action="expire",
            )

        outcome = ForcedTransition(
            reservation_id=reservation_id,
            from_status=source,
            to_status=target,
            released_table_id=released,
        )

        if notify and self.dispatcher is not None:
            result = await dispatch(self.dispatcher, "expired", reservation)
            outcome.notified = result.success
            if result.success and result.channel == "whatsapp":
                await self.machine.write_flags(reservation, {"whatsapp_sent": True})

        return outcome
