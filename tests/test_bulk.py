"""Tests for all-or-nothing bulk actions"""

import pytest

from dinebook.errors import (
    InvalidTransitionError,
    NotFoundError,
    TableUnavailableError,
    ValidationError,
)
from dinebook.models import DiningTable, Reservation, ReservationStatus
from dinebook.services.bulk import BulkAction, BulkOperationExecutor
from dinebook.services.state_machine import ReservationStateMachine


async def test_missing_id_fails_whole_batch(test_db, make_reservation, dispatcher, fetch):
    await make_reservation("R2")

    with pytest.raises(NotFoundError) as excinfo:
        await BulkOperationExecutor(test_db, dispatcher).execute(
            BulkAction(type="confirm", reservation_ids=["R2", "R_missing"])
        )

    assert excinfo.value.ids == ["R_missing"]
    assert (await fetch(Reservation, "R2")).status == "pending"
    assert dispatcher.calls == []


async def test_one_illegal_transition_fails_whole_batch(test_db, make_reservation, fetch):
    await make_reservation("R1")
    await make_reservation("R2", status=ReservationStatus.COMPLETED)

    with pytest.raises(InvalidTransitionError):
        await BulkOperationExecutor(test_db).execute(
            BulkAction(type="cancel", reservation_ids=["R1", "R2"])
        )

    assert (await fetch(Reservation, "R1")).status == "pending"
    assert (await fetch(Reservation, "R2")).status == "completed"


async def test_bulk_confirm(test_db, make_reservation, dispatcher, feed, fetch):
    await make_reservation("R1")
    await make_reservation("R2")

    count = await BulkOperationExecutor(test_db, dispatcher, feed).execute(
        BulkAction(type="confirm", reservation_ids=["R1", "R2"], notes="VIP night")
    )

    assert count == 2
    for reservation_id in ("R1", "R2"):
        stored = await fetch(Reservation, reservation_id)
        assert stored.status == "confirmed"
        assert stored.admin_notes == "VIP night"
        assert stored.confirmation_sent is True
    assert sorted(dispatcher.calls) == [("confirmed", "R1"), ("confirmed", "R2")]
    assert feed.revision == 1


async def test_bulk_reject_notifies_cancellation(test_db, make_reservation, dispatcher, fetch):
    await make_reservation("R1")

    await BulkOperationExecutor(test_db, dispatcher).execute(BulkAction(type="reject", reservation_ids=["R1"]))

    assert (await fetch(Reservation, "R1")).status == "rejected"
    assert dispatcher.calls == [("cancelled", "R1")]


async def test_bulk_delete_releases_tables(test_db, make_table, make_reservation, fetch):
    await make_table("T1")
    await make_table("T2")
    await make_reservation("R1")
    await make_reservation("R2")
    machine = ReservationStateMachine(test_db)
    await machine.transition("R1", "booked", table_id="T1")
    await machine.transition("R2", "confirmed", table_id="T2")

    count = await BulkOperationExecutor(test_db).execute(BulkAction(type="delete", reservation_ids=["R1", "R2"]))

    assert count == 2
    for reservation_id in ("R1", "R2"):
        assert await fetch(Reservation, reservation_id) is None
    for table_id in ("T1", "T2"):
        table = await fetch(DiningTable, table_id)
        assert table.is_available is True
        assert table.current_reservation_id is None


async def test_bulk_delete_matches_single_delete(session_factory, make_table, make_reservation, fetch):
    for n in (1, 2):
        await make_table(f"T{n}")
        await make_reservation(f"R{n}")
        async with session_factory() as session:
            await ReservationStateMachine(session).transition(f"R{n}", "booked", table_id=f"T{n}")

    async with session_factory() as session:
        await ReservationStateMachine(session).delete("R1")
    async with session_factory() as session:
        await BulkOperationExecutor(session).execute(BulkAction(type="delete", reservation_ids=["R2"]))

    single = await fetch(DiningTable, "T1")
    bulk = await fetch(DiningTable, "T2")
    assert (single.is_available, single.current_reservation_id) == (bulk.is_available, bulk.current_reservation_id)


async def test_bulk_assign_table(test_db, make_table, make_reservation, dispatcher, fetch):
    await make_table("T1", capacity=6)
    await make_reservation("R1", party_size=4)

    await BulkOperationExecutor(test_db, dispatcher).execute(
        BulkAction(type="assign-table", reservation_ids=["R1"], table_id="T1")
    )

    stored = await fetch(Reservation, "R1")
    assert stored.status == "booked"
    assert stored.table_id == "T1"
    assert (await fetch(DiningTable, "T1")).current_reservation_id == "R1"


async def test_bulk_assign_missing_table_is_fail_hard(test_db, make_reservation, fetch):
    await make_reservation("R1")

    with pytest.raises(NotFoundError):
        await BulkOperationExecutor(test_db).execute(
            BulkAction(type="assign-table", reservation_ids=["R1"], table_id="gone")
        )

    assert (await fetch(Reservation, "R1")).status == "pending"


async def test_bulk_assign_one_table_to_two_reservations(test_db, make_table, make_reservation, fetch):
    await make_table("T1", capacity=8)
    await make_reservation("R1", party_size=2)
    await make_reservation("R2", party_size=2)

    with pytest.raises(TableUnavailableError):
        await BulkOperationExecutor(test_db).execute(
            BulkAction(type="assign-table", reservation_ids=["R1", "R2"], table_id="T1")
        )

    assert (await fetch(Reservation, "R1")).status == "pending"
    assert (await fetch(DiningTable, "T1")).is_available is True


async def test_bulk_assign_requires_pending(test_db, make_table, make_reservation):
    await make_table("T1")
    await make_reservation("R1", status=ReservationStatus.CONFIRMED)

    with pytest.raises(InvalidTransitionError):
        await BulkOperationExecutor(test_db).execute(
            BulkAction(type="assign-table", reservation_ids=["R1"], table_id="T1")
        )


async def test_bulk_send_reminder(test_db, make_reservation, dispatcher, fetch):
    await make_reservation("R1", status=ReservationStatus.CONFIRMED)
    await make_reservation("R2", status=ReservationStatus.BOOKED)

    sent = await BulkOperationExecutor(test_db, dispatcher).execute(
        BulkAction(type="send-reminder", reservation_ids=["R1", "R2"])
    )

    assert sent == 2
    assert (await fetch(Reservation, "R1")).reminder_sent is True
    assert (await fetch(Reservation, "R1")).version == 1
    assert [kind for kind, _ in dispatcher.calls] == ["reminder", "reminder"]


async def test_bulk_send_reminder_counts_only_delivered(test_db, make_reservation, failing_dispatcher, fetch):
    await make_reservation("R1", status=ReservationStatus.CONFIRMED)

    sent = await BulkOperationExecutor(test_db, failing_dispatcher).execute(
        BulkAction(type="send-reminder", reservation_ids=["R1"])
    )

    assert sent == 0
    assert (await fetch(Reservation, "R1")).reminder_sent is False


@pytest.mark.parametrize(
    "action",
    [
        BulkAction(type="archive", reservation_ids=["R1"]),
        BulkAction(type="confirm", reservation_ids=[]),
        BulkAction(type="assign-table", reservation_ids=["R1"]),
    ],
)
async def test_bulk_rejects_malformed_actions(test_db, action):
    with pytest.raises(ValidationError):
        await BulkOperationExecutor(test_db).execute(action)
