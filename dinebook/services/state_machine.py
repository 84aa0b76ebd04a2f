"""Reservation state machine

Validates and applies status transitions, and is the only writer of the
table/reservation coupling: a table is unavailable exactly while a
confirmed or booked reservation holds it, and then
``table.current_reservation_id`` points back at that reservation. Both sides
are always staged in the same ``atomic`` batch.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from dinebook.errors import (
    CapacityError,
    ConcurrencyConflictError,
    InvalidTransitionError,
    NotFoundError,
    TableUnavailableError,
    ValidationError,
)
from dinebook.models.audit import AuditLog
from dinebook.models.reservation import Reservation, ReservationStatus
from dinebook.models.table import DiningTable
from dinebook.notifications import NotificationDispatcher, dispatch
from dinebook.store import ChangeFeed, NotFound, ReservationStore, TableStore, atomic, publish_change

logger = structlog.get_logger()

S = ReservationStatus

# Explicit edges between non-terminal statuses. Every non-terminal status may
# additionally move to any terminal status.
ALLOWED_TRANSITIONS: Dict[str, frozenset] = {
    S.PENDING: frozenset({S.CONFIRMED, S.BOOKED, S.REJECTED, S.CANCELLED}),
    S.CONFIRMED: frozenset({S.BOOKED, S.CANCELLED, S.COMPLETED, S.EXPIRED, S.NO_SHOW}),
    S.BOOKED: frozenset({S.CANCELLED, S.COMPLETED, S.EXPIRED, S.NO_SHOW}),
    S.RESERVED: frozenset({S.CONFIRMED, S.BOOKED}),
}

# Notification fired after entering a status
NOTIFY_ON_ENTER = {
    S.CONFIRMED: "confirmed",
    S.BOOKED: "confirmed",
    S.CANCELLED: "cancelled",
    S.REJECTED: "cancelled",
}


def can_transition(source: str, target: str) -> bool:
    """Check whether ``source -> target`` is a permitted edge"""
    if source in S.TERMINAL or source == target:
        return False
    if target in S.TERMINAL:
        return True
    return target in ALLOWED_TRANSITIONS.get(source, frozenset())


def allowed_targets(source: str) -> List[str]:
    return [target for target in S.ALL if can_transition(source, target)]


def _state(reservation: Reservation) -> dict:
    return {
        "status": reservation.status,
        "table_id": reservation.table_id,
        "is_expired": bool(reservation.is_expired),
    }


class ReservationStateMachine:
    """Applies status transitions and keeps table ownership consistent"""

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
        self.reservations = ReservationStore(db)
        self.tables = TableStore(db)

    # ------------------------------------------------------------------
    # Public operations, each one a single atomic batch
    # ------------------------------------------------------------------

    async def transition(
        self,
        reservation_id: str,
        target_status: str,
        table_id: Optional[str] = None,
        notes: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> Reservation:
        """Move one reservation to ``target_status``.

        A missing table is tolerated here: the status change still commits
        and the reservation is left without a table.
        """
        async with atomic(self.db, "reservation", reservation_id):
            reservation = await self._load(reservation_id, expected_version)
            await self.apply(reservation, target_status, table_id=table_id, notes=notes)

        logger.info(
            "Reservation transitioned",
            reservation_id=reservation_id,
            status=target_status,
            table_id=reservation.table_id,
            actor=self.actor,
        )
        await self.after_commit([(reservation, target_status)])
        return reservation

    async def assign_table(
        self,
        reservation_id: str,
        table_id: str,
        expected_version: Optional[int] = None,
    ) -> Reservation:
        """Attach a table to a reservation that deferred its assignment.

        Pending reservations move to ``booked``; confirmed or booked ones keep
        their status. Unlike ``transition`` the table must exist.
        """
        async with atomic(self.db, "reservation", reservation_id):
            reservation = await self._load(reservation_id, expected_version)
            source = reservation.status
            if source in (S.PENDING, S.RESERVED):
                await self.apply(reservation, S.BOOKED, table_id=table_id, strict_table=True)
                entered = S.BOOKED
            elif source in S.HOLDING:
                before = _state(reservation)
                await self._attach_table(reservation, table_id, strict=True)
                reservation.updated_at = datetime.utcnow()
                self._audit("assign_table", reservation, before, _state(reservation))
                await self.db.flush()
                entered = None
            else:
                raise InvalidTransitionError(reservation_id, source, S.BOOKED)

        logger.info(
            "Table assigned",
            reservation_id=reservation_id,
            table_id=table_id,
            actor=self.actor,
        )
        await self.after_commit([(reservation, entered)] if entered else [])
        return reservation

    async def delete(self, reservation_id: str, expected_version: Optional[int] = None) -> None:
        """Permanently remove a reservation, releasing any table it holds"""
        async with atomic(self.db, "reservation", reservation_id):
            reservation = await self._load(reservation_id, expected_version)
            released = await self.stage_delete(reservation)

        logger.info(
            "Reservation deleted",
            reservation_id=reservation_id,
            released_table_id=released,
            actor=self.actor,
        )
        await publish_change(self.feed)

    # ------------------------------------------------------------------
    # Staging helpers shared with the bulk executor and the sweeper.
    # They validate and mutate inside the caller's batch, never commit.
    # ------------------------------------------------------------------

    async def apply(
        self,
        reservation: Reservation,
        target_status: str,
        table_id: Optional[str] = None,
        notes: Optional[str] = None,
        strict_table: bool = False,
        extra: Optional[dict] = None,
        action: str = "transition",
    ) -> Optional[str]:
        """Validate one transition and stage its writes.

        Returns the id of the table released by the transition, if any.
        """
        if target_status not in S.ALL:
            raise ValidationError(f"Unknown reservation status: {target_status}")

        source = reservation.status
        if not can_transition(source, target_status):
            raise InvalidTransitionError(reservation.id, source, target_status)

        before = _state(reservation)
        released = None

        if target_status in S.HOLDING and table_id:
            await self._attach_table(reservation, table_id, strict=strict_table)
        elif target_status in S.TERMINAL and reservation.table_id:
            released = await self._release_table(reservation)

        reservation.status = target_status
        reservation.updated_at = datetime.utcnow()
        if notes:
            reservation.admin_notes = notes
        for name, value in (extra or {}).items():
            setattr(reservation, name, value)

        self._audit(action, reservation, before, _state(reservation))
        await self.db.flush()
        return released

    async def stage_delete(self, reservation: Reservation) -> Optional[str]:
        """Stage removal of a reservation and the release of its table"""
        released = None
        if reservation.table_id:
            released = await self._release_table(reservation)
        self._audit("delete", reservation, _state(reservation), None)
        await self.reservations.delete(reservation)
        return released

    async def after_commit(self, entered: Iterable[Tuple[Reservation, Optional[str]]]) -> None:
        """Fire notifications for committed transitions, then publish.

        Failures are logged and never undo the transition. Delivery flags are
        written back in a follow-up batch.
        """
        for reservation, status in entered:
            kind = NOTIFY_ON_ENTER.get(status)
            if kind is None or self.dispatcher is None:
                continue

            result = await dispatch(self.dispatcher, kind, reservation)
            if not result.success:
                continue

            flags = {}
            if kind == "confirmed":
                flags["confirmation_sent"] = True
            if result.channel == "whatsapp":
                flags["whatsapp_sent"] = True
            if flags:
                await self.write_flags(reservation, flags)

        await publish_change(self.feed)

    # ------------------------------------------------------------------
    # Table coupling
    # ------------------------------------------------------------------

    async def _attach_table(self, reservation: Reservation, table_id: str, strict: bool) -> bool:
        lookup = await self.tables.get(table_id, refresh=True)
        if isinstance(lookup, NotFound):
            if strict:
                raise NotFoundError("table", [table_id])
            logger.warning(
                "Table not found, status updated without a table",
                reservation_id=reservation.id,
                table_id=table_id,
            )
            return False

        table: DiningTable = lookup.record
        held_by_other = not table.is_available and table.current_reservation_id != reservation.id
        if held_by_other:
            raise TableUnavailableError(table.id, table.current_reservation_id)
        if table.capacity < reservation.party_size:
            raise CapacityError(table.id, table.capacity, reservation.party_size)

        if reservation.table_id and reservation.table_id != table.id:
            await self._release_table(reservation)

        table.is_available = False
        table.current_reservation_id = reservation.id
        table.updated_at = datetime.utcnow()
        reservation.table_id = table.id
        return True

    async def _release_table(self, reservation: Reservation) -> Optional[str]:
        """Free the reservation's table. A missing table is only logged."""
        table_id = reservation.table_id
        lookup = await self.tables.get(table_id, refresh=True)
        if isinstance(lookup, NotFound):
            logger.warning(
                "Table not found when releasing",
                reservation_id=reservation.id,
                table_id=table_id,
            )
            return None

        table: DiningTable = lookup.record
        if table.current_reservation_id not in (None, reservation.id):
            logger.warning(
                "Table held by another reservation, left untouched",
                reservation_id=reservation.id,
                table_id=table_id,
                held_by=table.current_reservation_id,
            )
            return None

        table.is_available = True
        table.current_reservation_id = None
        table.updated_at = datetime.utcnow()
        return table.id

    # ------------------------------------------------------------------

    async def _load(self, reservation_id: str, expected_version: Optional[int]) -> Reservation:
        lookup = await self.reservations.get(reservation_id, refresh=True)
        if isinstance(lookup, NotFound):
            raise NotFoundError("reservation", [reservation_id])
        reservation = lookup.record
        if expected_version is not None and reservation.version != expected_version:
            raise ConcurrencyConflictError(
                "reservation", reservation_id, expected_version, reservation.version
            )
        return reservation

    async def write_flags(self, reservation: Reservation, flags: dict) -> None:
        """Record delivery flags. They only ever go from False to True, so
        they are written without bumping the row version."""
        async with atomic(self.db, "reservation", reservation.id):
            await self.reservations.set_flags(reservation.id, flags)

    def _audit(self, action: str, reservation: Reservation, before: dict, after: Optional[dict]) -> None:
        self.db.add(AuditLog(
            actor_type="system" if self.actor == "system" else "user",
            actor_name=self.actor,
            action=action,
            resource_type="reservation",
            resource_id=reservation.id,
            data_json={"before": before, "after": after},
        ))
