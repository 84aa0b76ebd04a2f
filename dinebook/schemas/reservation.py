"""Reservation schemas"""

import re
from datetime import date as date_type, datetime, time as time_type
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator

from dinebook.models.reservation import RESERVATION_SOURCES, ReservationStatus

PHONE_PATTERN = re.compile(r"^[+]?[\d\s\-()]{10,15}$")
OPENING_HOUR = 11
CLOSING_HOUR = 22


def _check_name(value: str) -> str:
    value = value.strip()
    if len(value) < 2:
        raise ValueError("Please enter the guest's full name (at least 2 characters)")
    if len(value) > 50:
        raise ValueError("Name is too long (maximum 50 characters)")
    return value


def _check_phone(value: str) -> str:
    digits = re.sub(r"\D", "", value)
    if len(digits) < 10:
        raise ValueError("Please enter a valid phone number (at least 10 digits)")
    if not PHONE_PATTERN.match(value):
        raise ValueError("Please enter a valid phone number format")
    return value


class ReservationCreate(BaseModel):
    """Create reservation request (booking intake)"""
    id: Optional[str] = None
    name: str
    phone: str
    date: date_type
    time: time_type
    party_size: int = Field(..., ge=1, validation_alias="guests")
    special_requests: Optional[str] = None
    source: str = "web"

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _check_name(value)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: str) -> str:
        return _check_phone(value)

    @field_validator("time")
    @classmethod
    def validate_time(cls, value: time_type) -> time_type:
        if value.hour < OPENING_HOUR or (value.hour, value.minute) > (CLOSING_HOUR, 0):
            raise ValueError("Please select a time during our operating hours (11:00 AM - 10:00 PM)")
        return value

    @field_validator("source")
    @classmethod
    def validate_source(cls, value: str) -> str:
        if value not in RESERVATION_SOURCES:
            raise ValueError(f"source must be one of {', '.join(RESERVATION_SOURCES)}")
        return value

    class Config:
        populate_by_name = True


class ReservationUpdate(BaseModel):
    """Update guest details and staff notes; status goes through transitions"""
    name: Optional[str] = None
    phone: Optional[str] = None
    special_requests: Optional[str] = None
    admin_notes: Optional[str] = None
    expected_version: Optional[int] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        return _check_name(value) if value is not None else value

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: Optional[str]) -> Optional[str]:
        return _check_phone(value) if value is not None else value


class TransitionRequest(BaseModel):
    """Move a reservation to another status"""
    status: str
    table_id: Optional[str] = None
    notes: Optional[str] = None
    expected_version: Optional[int] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, value: str) -> str:
        if value not in ReservationStatus.ALL:
            raise ValueError(f"Unknown status: {value}")
        return value


class AssignTableRequest(BaseModel):
    table_id: str
    expected_version: Optional[int] = None


class ReservationResponse(BaseModel):
    """Reservation response"""
    id: str
    name: str
    phone: str
    date: date_type
    time: time_type
    party_size: int
    status: str
    table_id: Optional[str]
    special_requests: Optional[str]
    admin_notes: Optional[str]
    source: Optional[str]
    confirmation_sent: bool
    reminder_sent: bool
    whatsapp_sent: bool
    is_expired: bool
    version: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ReservationListResponse(BaseModel):
    """Paginated reservation list"""
    items: List[ReservationResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class BulkActionRequest(BaseModel):
    """Bulk action request; destructive actions need ``confirm``"""
    type: str
    reservation_ids: List[str]
    table_id: Optional[str] = None
    notes: Optional[str] = None
    confirm: bool = False


class BulkActionResponse(BaseModel):
    type: str
    count: int
    message: str


class AuditEntryResponse(BaseModel):
    id: str
    action: str
    actor_type: Optional[str]
    actor_name: Optional[str]
    data_json: Optional[dict]
    created_at: datetime

    class Config:
        from_attributes = True
