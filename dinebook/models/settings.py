"""Expiration settings model"""

from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Boolean

from dinebook.database import Base


EXPIRATION_SETTINGS_ID = "expiration"


class ExpirationSettings(Base):
    """Singleton row controlling auto-expiration and reminders"""
    __tablename__ = "expiration_settings"

    id = Column(String(32), primary_key=True, default=EXPIRATION_SETTINGS_ID)
    is_enabled = Column(Boolean, nullable=False, default=False)
    expiration_minutes = Column(Integer, nullable=False, default=30)  # Grace period after reservation time
    reminder_minutes = Column(Integer, nullable=False, default=60)  # Lead time before reservation time
    auto_mark_no_show = Column(Boolean, nullable=False, default=True)
    send_expiration_notification = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
