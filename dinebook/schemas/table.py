"""Dining table schemas"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from dinebook.models.table import TABLE_LOCATIONS, TABLE_TYPES


def _check_choice(value: Optional[str], choices, label: str) -> Optional[str]:
    if value is not None and value not in choices:
        raise ValueError(f"{label} must be one of {', '.join(choices)}")
    return value


class TableCreate(BaseModel):
    """Create table request"""
    id: Optional[str] = None
    name: str
    capacity: int = Field(..., ge=1)
    type: str = "regular"
    location: str = "interior"
    description: Optional[str] = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, value: str) -> str:
        return _check_choice(value, TABLE_TYPES, "type")

    @field_validator("location")
    @classmethod
    def validate_location(cls, value: str) -> str:
        return _check_choice(value, TABLE_LOCATIONS, "location")


class TableUpdate(BaseModel):
    """Update table request; availability is owned by reservations"""
    name: Optional[str] = None
    capacity: Optional[int] = Field(default=None, ge=1)
    type: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    expected_version: Optional[int] = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, value: Optional[str]) -> Optional[str]:
        return _check_choice(value, TABLE_TYPES, "type")

    @field_validator("location")
    @classmethod
    def validate_location(cls, value: Optional[str]) -> Optional[str]:
        return _check_choice(value, TABLE_LOCATIONS, "location")


class TableResponse(BaseModel):
    """Table response"""
    id: str
    name: str
    capacity: int
    type: Optional[str]
    location: Optional[str]
    description: Optional[str]
    is_available: bool
    current_reservation_id: Optional[str]
    version: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
