"""Dining table management API endpoints"""

from datetime import datetime
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dinebook.api.auth import StaffPrincipal, StaffRole, require_role
from dinebook.api.deps import get_feed
from dinebook.database import get_db
from dinebook.errors import CapacityError, NotFoundError, TableUnavailableError
from dinebook.models.reservation import Reservation, ReservationStatus
from dinebook.models.table import DiningTable
from dinebook.schemas.table import TableCreate, TableResponse, TableUpdate
from dinebook.store import ChangeFeed, Found, NotFound, ReservationStore, TableStore, atomic, publish_change

logger = structlog.get_logger()

router = APIRouter()


async def _holding_reservation(db: AsyncSession, table_id: str) -> Optional[str]:
    """Id of a confirmed or booked reservation pointing at ``table_id``, if any"""
    result = await db.execute(
        select(Reservation.id)
        .where(Reservation.table_id == table_id)
        .where(Reservation.status.in_(sorted(ReservationStatus.HOLDING)))
        .limit(1)
    )
    return result.scalar_one_or_none()


@router.get("", response_model=List[TableResponse])
async def list_tables(
    available: Optional[bool] = None,
    current_staff: StaffPrincipal = Depends(require_role(StaffRole.VIEWER)),
    db: AsyncSession = Depends(get_db),
):
    """List dining tables"""
    tables = await TableStore(db).list()
    if available is not None:
        tables = [table for table in tables if table.is_available == available]
    return tables


@router.post("", response_model=TableResponse, status_code=201)
async def create_table(
    table_data: TableCreate,
    current_staff: StaffPrincipal = Depends(require_role(StaffRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
    feed: ChangeFeed = Depends(get_feed),
):
    """Create a new dining table"""
    store = TableStore(db)
    async with atomic(db, "table", table_data.id or ""):
        if table_data.id and not isinstance(await store.get(table_data.id), NotFound):
            raise HTTPException(status_code=409, detail="Table already exists")
        if table_data.id:
            held_by = await _holding_reservation(db, table_data.id)
            if held_by:
                raise TableUnavailableError(table_data.id, held_by)
        table = DiningTable(**table_data.model_dump(exclude_none=True))
        await store.create(table)

    logger.info("Table created", table_id=table.id, capacity=table.capacity)
    await publish_change(feed)
    return table


@router.get("/{table_id}", response_model=TableResponse)
async def get_table(
    table_id: str,
    current_staff: StaffPrincipal = Depends(require_role(StaffRole.VIEWER)),
    db: AsyncSession = Depends(get_db),
):
    """Get table by ID"""
    lookup = await TableStore(db).get(table_id)
    if isinstance(lookup, NotFound):
        raise HTTPException(status_code=404, detail="Table not found")
    return lookup.record


@router.put("/{table_id}", response_model=TableResponse)
async def update_table(
    table_id: str,
    update_data: TableUpdate,
    current_staff: StaffPrincipal = Depends(require_role(StaffRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
    feed: ChangeFeed = Depends(get_feed),
):
    """Update a table's descriptive fields and capacity"""
    store = TableStore(db)
    changes = update_data.model_dump(exclude_unset=True, exclude={"expected_version"})

    async with atomic(db, "table", table_id):
        lookup = await store.get(table_id, refresh=True)
        if isinstance(lookup, NotFound):
            raise NotFoundError("table", [table_id])
        table = lookup.record

        # A held table cannot shrink below the party it is seating
        new_capacity = changes.get("capacity")
        if new_capacity is not None and table.current_reservation_id:
            holder = await ReservationStore(db).get(table.current_reservation_id)
            if isinstance(holder, Found) and holder.record.party_size > new_capacity:
                raise CapacityError(table.id, new_capacity, holder.record.party_size)

        changes["updated_at"] = datetime.utcnow()
        await store.update(table, changes, update_data.expected_version)

    logger.info("Table updated", table_id=table_id, fields=sorted(changes))
    await publish_change(feed)
    return table


@router.delete("/{table_id}", status_code=204)
async def delete_table(
    table_id: str,
    current_staff: StaffPrincipal = Depends(require_role(StaffRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
    feed: ChangeFeed = Depends(get_feed),
):
    """Delete a table.

    A table that a confirmed or booked reservation still holds is refused;
    release or move the reservation first.
    """
    store = TableStore(db)
    async with atomic(db, "table", table_id):
        lookup = await store.get(table_id, refresh=True)
        if isinstance(lookup, NotFound):
            raise HTTPException(status_code=404, detail="Table not found")
        table = lookup.record
        held_by = table.current_reservation_id or await _holding_reservation(db, table_id)
        if held_by:
            raise TableUnavailableError(table_id, held_by)
        await store.delete(table)

    logger.info("Table deleted", table_id=table_id)
    await publish_change(feed)
