"""Dashboard statistics derived from the current snapshot"""

from datetime import datetime
from typing import Dict, Sequence

from pydantic import BaseModel

from dinebook.models.reservation import Reservation, ReservationStatus
from dinebook.models.table import DiningTable


class ReservationStats(BaseModel):
    total: int = 0
    by_status: Dict[str, int] = {}
    pending: int = 0
    confirmed: int = 0
    booked: int = 0
    cancelled: int = 0
    expired: int = 0
    completed: int = 0
    today_total: int = 0
    today_pending: int = 0
    upcoming_today: int = 0
    occupancy_rate: float = 0.0
    average_party_size: float = 0.0


def compute(
    reservations: Sequence[Reservation],
    tables: Sequence[DiningTable],
    now: datetime,
) -> ReservationStats:
    """Count reservations and table usage as of ``now`` (venue local time)"""
    by_status = {status: 0 for status in ReservationStatus.ALL}
    for reservation in reservations:
        by_status[reservation.status] = by_status.get(reservation.status, 0) + 1

    today = [r for r in reservations if r.date == now.date()]
    upcoming = [
        r for r in today
        if r.status in ReservationStatus.HOLDING and r.reservation_datetime > now
    ]

    occupied = sum(1 for table in tables if not table.is_available)
    occupancy_rate = occupied / len(tables) * 100 if tables else 0.0

    total_guests = sum(r.party_size for r in reservations)
    average_party_size = total_guests / len(reservations) if reservations else 0.0

    return ReservationStats(
        total=len(reservations),
        by_status=by_status,
        pending=by_status[ReservationStatus.PENDING],
        confirmed=by_status[ReservationStatus.CONFIRMED],
        booked=by_status[ReservationStatus.BOOKED],
        cancelled=by_status[ReservationStatus.CANCELLED],
        expired=by_status[ReservationStatus.EXPIRED],
        completed=by_status[ReservationStatus.COMPLETED],
        today_total=len(today),
        today_pending=sum(1 for r in today if r.status == ReservationStatus.PENDING),
        upcoming_today=len(upcoming),
        occupancy_rate=occupancy_rate,
        average_party_size=average_party_size,
    )
