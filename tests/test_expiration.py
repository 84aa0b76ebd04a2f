"""Tests for the auto-expiration sweep"""

from datetime import datetime

import pytest

from dinebook.models import DiningTable, Reservation, ReservationStatus
from dinebook.services.expiration import ExpirationSweeper, is_overdue
from dinebook.services.state_machine import ReservationStateMachine


@pytest.fixture
async def booked_at_t1(test_db, make_table, make_reservation):
    """R1 booked at T1 for 2025-01-01 19:00"""
    await make_table("T1", capacity=4)
    await make_reservation("R1", party_size=4)
    await ReservationStateMachine(test_db).transition("R1", "booked", table_id="T1")


async def test_overdue_reservation_expires(test_db, booked_at_t1, configure_expiration, dispatcher, feed, fetch):
    await configure_expiration(expiration_minutes=30, auto_mark_no_show=False)

    forced = await ExpirationSweeper(test_db, dispatcher, feed).sweep(datetime(2025, 1, 1, 19, 31))

    assert [(f.reservation_id, f.from_status, f.to_status) for f in forced] == [("R1", "booked", "expired")]
    assert forced[0].released_table_id == "T1"
    assert forced[0].notified is True

    stored = await fetch(Reservation, "R1")
    assert stored.status == "expired"
    assert stored.is_expired is True
    table = await fetch(DiningTable, "T1")
    assert table.is_available is True
    assert table.current_reservation_id is None
    assert dispatcher.calls == [("expired", "R1")]
    assert feed.revision == 1


async def test_overdue_reservation_marked_no_show(test_db, booked_at_t1, configure_expiration, fetch):
    await configure_expiration(auto_mark_no_show=True)

    await ExpirationSweeper(test_db).sweep(datetime(2025, 1, 1, 19, 31))

    assert (await fetch(Reservation, "R1")).status == ReservationStatus.NO_SHOW


async def test_second_sweep_changes_nothing(test_db, booked_at_t1, configure_expiration, dispatcher, fetch):
    await configure_expiration()
    sweeper = ExpirationSweeper(test_db, dispatcher)
    await sweeper.sweep(datetime(2025, 1, 1, 19, 31))
    first = await fetch(Reservation, "R1")

    forced = await sweeper.sweep(datetime(2025, 1, 1, 19, 45))

    assert forced == []
    again = await fetch(Reservation, "R1")
    assert again.status == first.status
    assert again.version == first.version
    assert dispatcher.calls == [("expired", "R1")]


async def test_sweeps_from_two_workers_notify_once(session_factory, booked_at_t1, configure_expiration, dispatcher):
    await configure_expiration()
    now = datetime(2025, 1, 1, 19, 31)

    async with session_factory() as first, session_factory() as second:
        await ExpirationSweeper(first, dispatcher).sweep(now)
        await ExpirationSweeper(second, dispatcher).sweep(now)

    assert dispatcher.calls == [("expired", "R1")]


async def test_within_grace_period_untouched(test_db, booked_at_t1, configure_expiration, dispatcher, fetch):
    await configure_expiration(expiration_minutes=30)

    forced = await ExpirationSweeper(test_db, dispatcher).sweep(datetime(2025, 1, 1, 19, 30))

    assert forced == []
    assert (await fetch(Reservation, "R1")).status == "booked"
    assert dispatcher.calls == []


async def test_disabled_sweep_does_nothing(test_db, booked_at_t1, configure_expiration, fetch):
    await configure_expiration(is_enabled=False)

    forced = await ExpirationSweeper(test_db).sweep(datetime(2025, 1, 2, 12, 0))

    assert forced == []
    assert (await fetch(Reservation, "R1")).status == "booked"


async def test_missing_settings_row_means_disabled(test_db, booked_at_t1):
    assert await ExpirationSweeper(test_db).sweep(datetime(2025, 1, 2, 12, 0)) == []


async def test_pending_reservations_are_not_expired(test_db, make_reservation, configure_expiration, fetch):
    await configure_expiration()
    await make_reservation("R2", status=ReservationStatus.PENDING)

    forced = await ExpirationSweeper(test_db).sweep(datetime(2025, 1, 2, 12, 0))

    assert forced == []
    assert (await fetch(Reservation, "R2")).status == "pending"


async def test_notification_can_be_switched_off(test_db, booked_at_t1, configure_expiration, dispatcher):
    await configure_expiration(send_expiration_notification=False)

    forced = await ExpirationSweeper(test_db, dispatcher).sweep(datetime(2025, 1, 1, 20, 0))

    assert len(forced) == 1
    assert forced[0].notified is False
    assert dispatcher.calls == []


async def test_failed_notification_does_not_undo_expiry(
    test_db, booked_at_t1, configure_expiration, failing_dispatcher, fetch
):
    await configure_expiration()

    forced = await ExpirationSweeper(test_db, failing_dispatcher).sweep(datetime(2025, 1, 1, 20, 0))

    assert forced[0].notified is False
    assert (await fetch(Reservation, "R1")).is_expired is True


async def test_release_of_deleted_table_is_logged_only(
    test_db, make_reservation, configure_expiration, fetch
):
    await configure_expiration()
    await make_reservation("R1", status=ReservationStatus.CONFIRMED, table_id="T-gone")

    forced = await ExpirationSweeper(test_db).sweep(datetime(2025, 1, 1, 20, 0))

    assert forced[0].released_table_id is None
    assert (await fetch(Reservation, "R1")).status == "expired"


def test_is_overdue_predicate():
    reservation = Reservation(
        id="R1",
        date=datetime(2025, 1, 1).date(),
        time=datetime(2025, 1, 1, 19, 0).time(),
        status="confirmed",
        is_expired=False,
    )
    assert not is_overdue(reservation, datetime(2025, 1, 1, 19, 30), 30)
    assert is_overdue(reservation, datetime(2025, 1, 1, 19, 31), 30)

    reservation.is_expired = True
    assert not is_overdue(reservation, datetime(2025, 1, 1, 23, 0), 30)

    reservation.is_expired = False
    reservation.status = "pending"
    assert not is_overdue(reservation, datetime(2025, 1, 1, 23, 0), 30)
