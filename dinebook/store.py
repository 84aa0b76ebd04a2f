"""Reservation and table data access

Thin wrappers over an ``AsyncSession``. Lookups return ``Found`` or
``NotFound`` instead of raising, writes are grouped with ``atomic`` so the
reservation and table sides of an assignment commit together, and
``ChangeFeed`` pushes full snapshots to subscribers after each commit.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, Generic, Iterable, List, Optional, Tuple, TypeVar, Union

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from dinebook.errors import ConcurrencyConflictError
from dinebook.models.reservation import Reservation
from dinebook.models.table import DiningTable

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class Found(Generic[T]):
    record: T


@dataclass(frozen=True)
class NotFound:
    kind: str
    id: str


Lookup = Union[Found, NotFound]


@dataclass
class Snapshot:
    """Full-collection view of reservations and tables at one point in time"""
    reservations: List[Reservation] = field(default_factory=list)
    tables: List[DiningTable] = field(default_factory=list)
    revision: int = 0


@asynccontextmanager
async def atomic(db: AsyncSession, kind: str = "reservation", record_id: str = ""):
    """Commit everything written inside the block as one batch.

    Any exception rolls the whole batch back. A version mismatch detected at
    flush time is reported as ``ConcurrencyConflictError``.
    """
    try:
        yield db
        await db.commit()
    except StaleDataError:
        await db.rollback()
        logger.warning("Stale write rejected", kind=kind, record_id=record_id)
        raise ConcurrencyConflictError(kind, record_id)
    except BaseException:
        await db.rollback()
        raise


class _Store:
    model = None
    kind = ""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, record_id: str, refresh: bool = False) -> Lookup:
        """Resolve one id to ``Found`` or ``NotFound``"""
        record = await self.db.get(self.model, record_id, populate_existing=refresh)
        if record is None:
            return NotFound(self.kind, record_id)
        return Found(record)

    async def get_many(self, record_ids: Iterable[str]) -> Tuple[Dict[str, Any], List[str]]:
        """Resolve many ids at once, returning (found by id, missing ids)"""
        ids = list(dict.fromkeys(record_ids))
        if not ids:
            return {}, []
        result = await self.db.execute(select(self.model).where(self.model.id.in_(ids)))
        found = {record.id: record for record in result.scalars().all()}
        missing = [record_id for record_id in ids if record_id not in found]
        return found, missing

    async def list(self) -> List[Any]:
        result = await self.db.execute(select(self.model).order_by(self.model.id))
        return list(result.scalars().all())

    async def create(self, record):
        self.db.add(record)
        await self.db.flush()
        return record

    async def update(self, record, fields: Dict[str, Any], expected_version: Optional[int] = None):
        """Apply a partial update, refusing it when the caller's copy is stale"""
        if expected_version is not None and record.version != expected_version:
            raise ConcurrencyConflictError(self.kind, record.id, expected_version, record.version)
        for name, value in fields.items():
            setattr(record, name, value)
        await self.db.flush()
        return record

    async def delete(self, record) -> None:
        await self.db.delete(record)
        await self.db.flush()


class ReservationStore(_Store):
    model = Reservation
    kind = "reservation"

    async def set_flags(self, reservation_id: str, flags: Dict[str, bool], unless: Optional[str] = None) -> bool:
        """Write core-owned boolean flags in place.

        With ``unless`` the write only happens while that flag is still
        False, which lets one caller claim a one-off action such as a
        reminder. Returns whether a row was written.
        """
        statement = update(Reservation).where(Reservation.id == reservation_id)
        if unless is not None:
            statement = statement.where(getattr(Reservation, unless) == False)
        result = await self.db.execute(
            statement.values(**flags).execution_options(synchronize_session="evaluate")
        )
        return result.rowcount == 1

    async def snapshot(self) -> List[Reservation]:
        result = await self.db.execute(select(Reservation))
        return list(result.scalars().all())

    @staticmethod
    async def subscribe(
        session_factory: Callable[[], AsyncSession],
        feed: "ChangeFeed",
        refresh_seconds: float = 30.0,
    ) -> AsyncIterator[Snapshot]:
        """Yield a full snapshot now and again after every published change.

        A snapshot is also re-read every ``refresh_seconds`` so writes made
        by other processes (the Celery worker) show up without a publish.
        """
        seen = feed.revision
        while True:
            async with session_factory() as db:
                reservations = await ReservationStore(db).snapshot()
                tables = await TableStore(db).list()
            yield Snapshot(reservations=reservations, tables=tables, revision=seen)
            seen = await feed.wait_for_change(seen, timeout=refresh_seconds)


class TableStore(_Store):
    model = DiningTable
    kind = "table"


class ChangeFeed:
    """In-process broadcast of "something changed" signals"""

    def __init__(self):
        self._revision = 0
        self._condition: Optional[asyncio.Condition] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def revision(self) -> int:
        return self._revision

    def _get_condition(self) -> asyncio.Condition:
        # asyncio primitives are bound to the loop that first uses them
        loop = asyncio.get_running_loop()
        if self._condition is None or self._loop is not loop:
            self._condition = asyncio.Condition()
            self._loop = loop
        return self._condition

    async def publish(self) -> int:
        condition = self._get_condition()
        async with condition:
            self._revision += 1
            condition.notify_all()
        return self._revision

    async def wait_for_change(self, seen: int, timeout: Optional[float] = None) -> int:
        """Block until the revision moves past ``seen`` or the timeout passes"""
        condition = self._get_condition()
        async with condition:
            try:
                await asyncio.wait_for(
                    condition.wait_for(lambda: self._revision > seen),
                    timeout=timeout,
                )
            except asyncio.TimeoutError:
                pass
            return self._revision


change_feed = ChangeFeed()


async def publish_change(feed: Optional[ChangeFeed]) -> None:
    if feed is not None:
        await feed.publish()
