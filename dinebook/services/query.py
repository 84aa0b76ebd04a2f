"""Filtering, sorting and pagination over a reservation snapshot"""

import math
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel

from dinebook.errors import ValidationError
from dinebook.models.reservation import Reservation

DEFAULT_PAGE_SIZE = 10


class ReservationFilters(BaseModel):
    """Admin list filters; ``all`` disables a field"""
    status: str = "all"
    table_id: str = "all"
    source: str = "all"
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    search_term: str = ""


class ReservationSort(BaseModel):
    field: str = "date"
    direction: str = "asc"


class ReservationPage(BaseModel):
    items: List[Any]
    total: int
    page: int
    page_size: int
    total_pages: int


def _created(reservation: Reservation) -> datetime:
    return reservation.created_at or datetime.min


SORT_KEYS: Dict[str, Callable[[Reservation], Any]] = {
    "date": lambda r: (r.date, r.time),
    "time": lambda r: r.time,
    "name": lambda r: (r.name or "").lower(),
    "createdAt": _created,
    "created_at": _created,
    "guests": lambda r: r.party_size,
    "partySize": lambda r: r.party_size,
    "party_size": lambda r: r.party_size,
    "status": lambda r: r.status,
}


def matches(reservation: Reservation, filters: ReservationFilters) -> bool:
    if filters.status != "all" and reservation.status != filters.status:
        return False
    if filters.table_id != "all" and reservation.table_id != filters.table_id:
        return False
    if filters.source != "all" and reservation.source != filters.source:
        return False
    if filters.date_from and reservation.date < filters.date_from:
        return False
    if filters.date_to and reservation.date > filters.date_to:
        return False

    term = filters.search_term.strip().lower()
    if term:
        haystacks = (reservation.name or "", reservation.phone or "", reservation.id or "")
        if not any(term in value.lower() for value in haystacks):
            return False
    return True


def sort_reservations(reservations: Sequence[Reservation], sort: ReservationSort) -> List[Reservation]:
    key = SORT_KEYS.get(sort.field)
    if key is None:
        raise ValidationError(f"Cannot sort by {sort.field}")
    if sort.direction not in ("asc", "desc"):
        raise ValidationError(f"Unknown sort direction: {sort.direction}")

    # Two stable passes: id ascending first, then the requested key, so ties
    # keep id order whichever way the key runs.
    ordered = sorted(reservations, key=lambda r: r.id)
    return sorted(ordered, key=key, reverse=sort.direction == "desc")


def query(
    snapshot: Sequence[Reservation],
    filters: Optional[ReservationFilters] = None,
    sort: Optional[ReservationSort] = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> ReservationPage:
    """Return one page of the filtered and sorted snapshot"""
    filters = filters or ReservationFilters()
    sort = sort or ReservationSort()
    if page < 1 or page_size < 1:
        raise ValidationError("Page and page size must be positive")

    filtered = [reservation for reservation in snapshot if matches(reservation, filters)]
    ordered = sort_reservations(filtered, sort)

    start = (page - 1) * page_size
    return ReservationPage(
        items=ordered[start:start + page_size],
        total=len(ordered),
        page=page,
        page_size=page_size,
        total_pages=math.ceil(len(ordered) / page_size),
    )
