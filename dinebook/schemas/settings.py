"""Expiration settings schemas"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class ExpirationSettingsUpdate(BaseModel):
    """Partial update of the expiration settings"""
    is_enabled: Optional[bool] = None
    expiration_minutes: Optional[int] = Field(default=None, ge=0)
    reminder_minutes: Optional[int] = Field(default=None, ge=0)
    auto_mark_no_show: Optional[bool] = None
    send_expiration_notification: Optional[bool] = None


class ExpirationSettingsResponse(BaseModel):
    is_enabled: bool
    expiration_minutes: int
    reminder_minutes: int
    auto_mark_no_show: bool
    send_expiration_notification: bool
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
