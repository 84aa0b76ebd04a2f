"""Bulk administrative actions over many reservations

An action either applies to every target reservation or to none of them:
all ids are resolved and every per-item guard is checked inside one batch,
and any failure rolls the batch back before anything is committed.
"""

from typing import List, Optional

import structlog
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from dinebook.errors import InvalidTransitionError, NotFoundError, ValidationError
from dinebook.models.reservation import Reservation, ReservationStatus
from dinebook.notifications import NotificationDispatcher, dispatch
from dinebook.services.state_machine import ReservationStateMachine
from dinebook.store import ChangeFeed, atomic, publish_change

logger = structlog.get_logger()

BULK_ACTION_TYPES = ("confirm", "cancel", "reject", "assign-table", "delete", "send-reminder")

# Status entered by each transition-style action
ACTION_TARGETS = {
    "confirm": ReservationStatus.CONFIRMED,
    "cancel": ReservationStatus.CANCELLED,
    "reject": ReservationStatus.REJECTED,
    "assign-table": ReservationStatus.BOOKED,
}


class BulkAction(BaseModel):
    """One administrative action applied to a set of reservations"""
    type: str
    reservation_ids: List[str]
    table_id: Optional[str] = None
    notes: Optional[str] = None


class BulkOperationExecutor:
    """Runs a ``BulkAction`` as a single all-or-nothing batch"""

    def __init__(
        self,
        db: AsyncSession,
        dispatcher: Optional[NotificationDispatcher] = None,
        feed: Optional[ChangeFeed] = None,
        actor: str = "system",
    ):
        self.db = db
        self.dispatcher = dispatcher
        self.feed = feed
        self.actor = actor
        self.machine = ReservationStateMachine(db, dispatcher=dispatcher, feed=feed, actor=actor)

    async def execute(self, action: BulkAction) -> int:
        """Apply ``action`` and return how many reservations it affected"""
        if action.type not in BULK_ACTION_TYPES:
            raise ValidationError(f"Unknown bulk action: {action.type}")
        ids = list(dict.fromkeys(action.reservation_ids))
        if not ids:
            raise ValidationError("No reservations selected")
        if action.type == "assign-table" and not action.table_id:
            raise ValidationError("Choose a table to assign")

        if action.type == "send-reminder":
            return await self._send_reminders(ids)

        entered = []
        async with atomic(self.db, "reservation", ",".join(ids)):
            found, missing = await self.machine.reservations.get_many(ids)
            if missing:
                raise NotFoundError("reservation", missing)

            for reservation_id in ids:
                reservation = found[reservation_id]
                if action.type == "delete":
                    await self.machine.stage_delete(reservation)
                    continue

                if action.type == "assign-table" and reservation.status != ReservationStatus.PENDING:
                    raise InvalidTransitionError(reservation.id, reservation.status, ReservationStatus.BOOKED)

                target = ACTION_TARGETS[action.type]
                await self.machine.apply(
                    reservation,
                    target,
                    table_id=action.table_id if action.type == "assign-table" else None,
                    notes=action.notes,
                    strict_table=True,
                    action=f"bulk_{action.type}",
                )
                entered.append((reservation, target))

        logger.info(
            "Bulk action applied",
            action=action.type,
            count=len(ids),
            table_id=action.table_id,
            actor=self.actor,
        )

        await self.machine.after_commit(entered)
        return len(ids)

    async def _send_reminders(self, ids: List[str]) -> int:
        """Dispatch reminders; the only write is the delivery flag"""
        found, missing = await self.machine.reservations.get_many(ids)
        if missing:
            await self.db.rollback()
            raise NotFoundError("reservation", missing)
        await self.db.commit()

        if self.dispatcher is None:
            logger.warning("Reminders requested but no dispatcher configured", count=len(ids))
            return 0

        sent: List[Reservation] = []
        for reservation_id in ids:
            reservation = found[reservation_id]
            result = await dispatch(self.dispatcher, "reminder", reservation)
            if not result.success:
                continue
            flags = {"reminder_sent": True}
            if result.channel == "whatsapp":
                flags["whatsapp_sent"] = True
            await self.machine.write_flags(reservation, flags)
            sent.append(reservation)

        logger.info("Bulk reminders sent", requested=len(ids), sent=len(sent), actor=self.actor)
        await publish_change(self.feed)
        return len(sent)
