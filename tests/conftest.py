"""Test configuration and fixtures"""

import os

# The engine in dinebook.database is built at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("LOG_FORMAT", "console")
os.environ["TWILIO_ACCOUNT_SID"] = ""
os.environ["TWILIO_AUTH_TOKEN"] = ""

from datetime import date, time
from typing import List, Optional, Set, Tuple

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from dinebook.api.auth import StaffRole, create_access_token
from dinebook.api.deps import get_dispatcher, get_feed, get_session_factory
from dinebook.database import Base, get_db
from dinebook.errors import ExternalServiceError
from dinebook.main import app
from dinebook.models import DiningTable, ExpirationSettings, Reservation, ReservationStatus
from dinebook.models.settings import EXPIRATION_SETTINGS_ID
from dinebook.notifications.base import DispatchResult, NotificationDispatcher
from dinebook.store import ChangeFeed


class RecordingDispatcher(NotificationDispatcher):
    """Dispatcher fake that remembers every call"""

    def __init__(self, channel: str = "sms", fail_kinds: Optional[Set[str]] = None):
        self.channel = channel
        self.fail_kinds = fail_kinds or set()
        self.calls: List[Tuple[str, str]] = []

    async def _record(self, kind: str, reservation: Reservation) -> DispatchResult:
        self.calls.append((kind, reservation.id))
        if kind in self.fail_kinds:
            raise ExternalServiceError(f"{kind} delivery failed")
        return DispatchResult(success=True, channel=self.channel, message_sid=f"SM{len(self.calls)}")

    async def notify_confirmed(self, reservation):
        return await self._record("confirmed", reservation)

    async def notify_cancelled(self, reservation):
        return await self._record("cancelled", reservation)

    async def notify_expired(self, reservation):
        return await self._record("expired", reservation)

    async def notify_reminder(self, reservation):
        return await self._record("reminder", reservation)

    def kinds_for(self, reservation_id: str) -> List[str]:
        return [kind for kind, rid in self.calls if rid == reservation_id]


@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite database, fresh for each test"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'dinebook.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def test_db(session_factory):
    """Create test database session"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def failing_dispatcher():
    """Dispatcher whose every delivery raises"""
    return RecordingDispatcher(fail_kinds={"confirmed", "cancelled", "expired", "reminder"})


@pytest.fixture
def whatsapp_dispatcher():
    return RecordingDispatcher(channel="whatsapp")


@pytest.fixture
def feed():
    return ChangeFeed()


@pytest.fixture
def make_table(session_factory):
    """Insert a dining table in its own session"""
    async def _make(table_id: str = "T1", capacity: int = 4, **fields) -> DiningTable:
        async with session_factory() as session:
            table = DiningTable(id=table_id, name=fields.pop("name", f"Table {table_id}"), capacity=capacity, **fields)
            session.add(table)
            await session.commit()
            return table
    return _make


@pytest.fixture
def make_reservation(session_factory):
    """Insert a reservation in its own session"""
    async def _make(
        reservation_id: str = "R1",
        party_size: int = 4,
        status: str = ReservationStatus.PENDING,
        on: date = date(2025, 1, 1),
        at: time = time(19, 0),
        **fields,
    ) -> Reservation:
        async with session_factory() as session:
            reservation = Reservation(
                id=reservation_id,
                name=fields.pop("name", "Guest " + reservation_id),
                phone=fields.pop("phone", "+1 212 000 0000"),
                date=on,
                time=at,
                party_size=party_size,
                status=status,
                **fields,
            )
            session.add(reservation)
            await session.commit()
            return reservation
    return _make


@pytest.fixture
def configure_expiration(session_factory):
    """Write the expiration settings row"""
    async def _configure(**fields) -> ExpirationSettings:
        values = {
            "is_enabled": True,
            "expiration_minutes": 30,
            "reminder_minutes": 60,
            "auto_mark_no_show": False,
            "send_expiration_notification": True,
        }
        values.update(fields)
        async with session_factory() as session:
            row = ExpirationSettings(id=EXPIRATION_SETTINGS_ID, **values)
            session.add(row)
            await session.commit()
            return row
    return _configure


@pytest.fixture
def fetch(session_factory):
    """Re-read a row from a fresh session"""
    async def _fetch(model, record_id):
        async with session_factory() as session:
            return await session.get(model, record_id)
    return _fetch


@pytest.fixture
async def client(session_factory, dispatcher, feed):
    """Create test client with overridden database"""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_feed] = lambda: feed
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def auth_headers(role: StaffRole) -> dict:
    token = create_access_token(f"{role.value}-1", role, name=f"Test {role.value}")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers():
    return auth_headers(StaffRole.ADMIN)


@pytest.fixture
def host_headers():
    return auth_headers(StaffRole.HOST)


@pytest.fixture
def viewer_headers():
    return auth_headers(StaffRole.VIEWER)
