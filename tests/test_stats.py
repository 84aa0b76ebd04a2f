"""Tests for dashboard statistics"""

from datetime import date, datetime, time

from dinebook.models import DiningTable, Reservation
from dinebook.services.stats import compute

NOW = datetime(2025, 1, 1, 18, 0)


def make(reservation_id, status, on=date(2025, 1, 1), at=time(19, 0), party_size=2):
    return Reservation(id=reservation_id, status=status, date=on, time=at, party_size=party_size)


def test_counts_by_status_and_today():
    reservations = [
        make("R1", "pending"),
        make("R2", "confirmed", at=time(20, 0), party_size=4),
        make("R3", "booked", at=time(12, 0)),
        make("R4", "cancelled", on=date(2025, 1, 2)),
        make("R5", "expired", on=date(2024, 12, 31), party_size=6),
    ]
    tables = [
        DiningTable(id="T1", capacity=2, is_available=False),
        DiningTable(id="T2", capacity=4, is_available=True),
    ]

    stats = compute(reservations, tables, NOW)

    assert stats.total == 5
    assert stats.pending == 1
    assert stats.confirmed == 1
    assert stats.booked == 1
    assert stats.cancelled == 1
    assert stats.expired == 1
    assert stats.completed == 0
    assert stats.by_status["no-show"] == 0
    assert stats.today_total == 3
    assert stats.today_pending == 1
    # R3 was at noon, only R2 is still ahead
    assert stats.upcoming_today == 1
    assert stats.occupancy_rate == 50.0
    assert stats.average_party_size == 16 / 5


def test_empty_inputs():
    stats = compute([], [], NOW)

    assert stats.total == 0
    assert stats.occupancy_rate == 0.0
    assert stats.average_party_size == 0.0
