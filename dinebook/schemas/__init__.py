"""Pydantic schemas for request/response validation"""

from dinebook.schemas.reservation import (
    ReservationCreate,
    ReservationUpdate,
    ReservationResponse,
    ReservationListResponse,
    TransitionRequest,
    AssignTableRequest,
    BulkActionRequest,
    BulkActionResponse,
    AuditEntryResponse,
)
from dinebook.schemas.table import (
    TableCreate,
    TableUpdate,
    TableResponse,
)
from dinebook.schemas.settings import (
    ExpirationSettingsUpdate,
    ExpirationSettingsResponse,
)

__all__ = [
    "ReservationCreate",
    "ReservationUpdate",
    "ReservationResponse",
    "ReservationListResponse",
    "TransitionRequest",
    "AssignTableRequest",
    "BulkActionRequest",
    "BulkActionResponse",
    "AuditEntryResponse",
    "TableCreate",
    "TableUpdate",
    "TableResponse",
    "ExpirationSettingsUpdate",
    "ExpirationSettingsResponse",
]
