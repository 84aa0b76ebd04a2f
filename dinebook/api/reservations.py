"""Reservation management API endpoints"""

from datetime import date, datetime
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dinebook.api.auth import StaffPrincipal, StaffRole, principal_from_token, require_role
from dinebook.api.deps import get_dispatcher, get_feed, get_session_factory
from dinebook.config import settings
from dinebook.database import get_db
from dinebook.errors import NotFoundError
from dinebook.logging_config import mask_phone
from dinebook.models.audit import AuditLog
from dinebook.models.reservation import Reservation, ReservationStatus, new_id
from dinebook.notifications import NotificationDispatcher
from dinebook.schemas.reservation import (
    AssignTableRequest,
    AuditEntryResponse,
    BulkActionRequest,
    BulkActionResponse,
    ReservationCreate,
    ReservationListResponse,
    ReservationResponse,
    ReservationUpdate,
    TransitionRequest,
)
from dinebook.schemas.table import TableResponse
from dinebook.services import query as query_engine
from dinebook.services import stats as stats_engine
from dinebook.services.bulk import BulkAction, BulkOperationExecutor
from dinebook.services.state_machine import ReservationStateMachine
from dinebook.store import ChangeFeed, NotFound, ReservationStore, TableStore, atomic, publish_change
from dinebook.timeutil import venue_now

logger = structlog.get_logger()

router = APIRouter()


def _machine(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    feed: ChangeFeed,
    staff: StaffPrincipal,
) -> ReservationStateMachine:
    return ReservationStateMachine(db, dispatcher=dispatcher, feed=feed, actor=staff.actor)


@router.get("", response_model=ReservationListResponse)
async def list_reservations(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.page_size, ge=1, le=100),
    status: str = "all",
    table_id: str = "all",
    source: str = "all",
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    search: str = "",
    sort: str = "date",
    direction: str = "asc",
    current_staff: StaffPrincipal = Depends(require_role(StaffRole.VIEWER)),
    db: AsyncSession = Depends(get_db),
):
    """List reservations with filters, sorting and pagination"""
    snapshot = await ReservationStore(db).snapshot()
    result = query_engine.query(
        snapshot,
        query_engine.ReservationFilters(
            status=status,
            table_id=table_id,
            source=source,
            date_from=date_from,
            date_to=date_to,
            search_term=search,
        ),
        query_engine.ReservationSort(field=sort, direction=direction),
        page=page,
        page_size=page_size,
    )

    return ReservationListResponse(
        items=result.items,
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
    )


@router.post("", response_model=ReservationResponse, status_code=201)
async def create_reservation(
    reservation_data: ReservationCreate,
    current_staff: StaffPrincipal = Depends(require_role(StaffRole.HOST)),
    db: AsyncSession = Depends(get_db),
    feed: ChangeFeed = Depends(get_feed),
):
    """Take a new booking; it always starts out pending"""
    store = ReservationStore(db)
    reservation_id = reservation_data.id or new_id()

    async with atomic(db, "reservation", reservation_id):
        if not isinstance(await store.get(reservation_id), NotFound):
            raise HTTPException(status_code=409, detail="Reservation already exists")

        reservation = Reservation(
            id=reservation_id,
            name=reservation_data.name,
            phone=reservation_data.phone,
            date=reservation_data.date,
            time=reservation_data.time,
            party_size=reservation_data.party_size,
            special_requests=reservation_data.special_requests,
            source=reservation_data.source,
            status=ReservationStatus.PENDING,
        )
        await store.create(reservation)
        db.add(AuditLog(
            actor_type="user",
            actor_name=current_staff.actor,
            action="create",
            resource_type="reservation",
            resource_id=reservation.id,
            data_json={"before": None, "after": {"status": reservation.status, "table_id": None}},
        ))

    logger.info(
        "Reservation created",
        reservation_id=reservation.id,
        phone=mask_phone(reservation.phone),
        party_size=reservation.party_size,
        source=reservation.source,
    )
    await publish_change(feed)
    return reservation


@router.get("/stats", response_model=stats_engine.ReservationStats)
async def reservation_stats(
    current_staff: StaffPrincipal = Depends(require_role(StaffRole.VIEWER)),
    db: AsyncSession = Depends(get_db),
):
    """Dashboard counters as of the venue's current time"""
    reservations = await ReservationStore(db).snapshot()
    tables = await TableStore(db).list()
    return stats_engine.compute(reservations, tables, venue_now())


@router.post("/bulk", response_model=BulkActionResponse)
async def bulk_action(
    request: BulkActionRequest,
    current_staff: StaffPrincipal = Depends(require_role(StaffRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    feed: ChangeFeed = Depends(get_feed),
):
    """Apply one action to many reservations, all or nothing"""
    if request.type == "delete" and not request.confirm:
        raise HTTPException(status_code=400, detail="Bulk delete requires confirm=true")

    executor = BulkOperationExecutor(db, dispatcher=dispatcher, feed=feed, actor=current_staff.actor)
    count = await executor.execute(BulkAction(
        type=request.type,
        reservation_ids=request.reservation_ids,
        table_id=request.table_id,
        notes=request.notes,
    ))

    return BulkActionResponse(
        type=request.type,
        count=count,
        message=f"{request.type} applied to {count} reservation(s)",
    )


@router.websocket("/stream")
async def reservation_stream(
    websocket: WebSocket,
    token: Optional[str] = None,
    session_factory=Depends(get_session_factory),
    feed: ChangeFeed = Depends(get_feed),
):
    """Push a full snapshot on connect and after every change"""
    principal = principal_from_token(token) if token else None
    if principal is None:
        await websocket.close(code=1008)
        return

    await websocket.accept()
    logger.info("Reservation stream opened", staff=principal.actor)
    try:
        async for snapshot in ReservationStore.subscribe(session_factory, feed, settings.feed_refresh_seconds):
            await websocket.send_json({
                "revision": snapshot.revision,
                "reservations": [
                    ReservationResponse.model_validate(r).model_dump(mode="json")
                    for r in snapshot.reservations
                ],
                "tables": [
                    TableResponse.model_validate(t).model_dump(mode="json")
                    for t in snapshot.tables
                ],
            })
    except WebSocketDisconnect:
        logger.info("Reservation stream closed", staff=principal.actor)


@router.get("/{reservation_id}", response_model=ReservationResponse)
async def get_reservation(
    reservation_id: str,
    current_staff: StaffPrincipal = Depends(require_role(StaffRole.VIEWER)),
    db: AsyncSession = Depends(get_db),
):
    """Get reservation by ID"""
    lookup = await ReservationStore(db).get(reservation_id)
    if isinstance(lookup, NotFound):
        raise HTTPException(status_code=404, detail="Reservation not found")
    return lookup.record


@router.patch("/{reservation_id}", response_model=ReservationResponse)
async def update_reservation(
    reservation_id: str,
    update_data: ReservationUpdate,
    current_staff: StaffPrincipal = Depends(require_role(StaffRole.HOST)),
    db: AsyncSession = Depends(get_db),
    feed: ChangeFeed = Depends(get_feed),
):
    """Update guest details and staff notes"""
    store = ReservationStore(db)
    changes = update_data.model_dump(exclude_unset=True, exclude={"expected_version"})

    async with atomic(db, "reservation", reservation_id):
        lookup = await store.get(reservation_id, refresh=True)
        if isinstance(lookup, NotFound):
            raise NotFoundError("reservation", [reservation_id])
        reservation = lookup.record

        before = {name: getattr(reservation, name) for name in changes}
        changes["updated_at"] = datetime.utcnow()
        await store.update(reservation, changes, update_data.expected_version)
        db.add(AuditLog(
            actor_type="user",
            actor_name=current_staff.actor,
            action="update",
            resource_type="reservation",
            resource_id=reservation_id,
            data_json={
                "before": before,
                "after": {name: getattr(reservation, name) for name in before},
            },
        ))

    logger.info("Reservation updated", reservation_id=reservation_id, fields=sorted(before))
    await publish_change(feed)
    return reservation


@router.post("/{reservation_id}/transition", response_model=ReservationResponse)
async def transition_reservation(
    reservation_id: str,
    request: TransitionRequest,
    current_staff: StaffPrincipal = Depends(require_role(StaffRole.HOST)),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    feed: ChangeFeed = Depends(get_feed),
):
    """Move a reservation to another status"""
    machine = _machine(db, dispatcher, feed, current_staff)
    return await machine.transition(
        reservation_id,
        request.status,
        table_id=request.table_id,
        notes=request.notes,
        expected_version=request.expected_version,
    )


@router.post("/{reservation_id}/assign-table", response_model=ReservationResponse)
async def assign_table(
    reservation_id: str,
    request: AssignTableRequest,
    current_staff: StaffPrincipal = Depends(require_role(StaffRole.HOST)),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    feed: ChangeFeed = Depends(get_feed),
):
    """Seat a reservation at a table"""
    machine = _machine(db, dispatcher, feed, current_staff)
    return await machine.assign_table(
        reservation_id,
        request.table_id,
        expected_version=request.expected_version,
    )


@router.delete("/{reservation_id}", status_code=204)
async def delete_reservation(
    reservation_id: str,
    confirm: bool = False,
    expected_version: Optional[int] = None,
    current_staff: StaffPrincipal = Depends(require_role(StaffRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    feed: ChangeFeed = Depends(get_feed),
):
    """Permanently delete a reservation"""
    if not confirm:
        raise HTTPException(status_code=400, detail="Deleting a reservation requires confirm=true")

    machine = _machine(db, dispatcher, feed, current_staff)
    await machine.delete(reservation_id, expected_version=expected_version)


@router.get("/{reservation_id}/history", response_model=List[AuditEntryResponse])
async def reservation_history(
    reservation_id: str,
    current_staff: StaffPrincipal = Depends(require_role(StaffRole.VIEWER)),
    db: AsyncSession = Depends(get_db),
):
    """Audit trail for one reservation, oldest first"""
    result = await db.execute(
        select(AuditLog)
        .where(AuditLog.resource_type == "reservation", AuditLog.resource_id == reservation_id)
        .order_by(AuditLog.created_at, AuditLog.id)
    )
    entries = result.scalars().all()
    if not entries:
        lookup = await ReservationStore(db).get(reservation_id)
        if isinstance(lookup, NotFound):
            raise HTTPException(status_code=404, detail="Reservation not found")
    return entries
