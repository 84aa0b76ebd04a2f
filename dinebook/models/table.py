"""Dining table model"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Boolean, Text

from dinebook.database import Base


TABLE_TYPES = ("regular", "booth", "counter", "private", "outdoor")
TABLE_LOCATIONS = ("window", "interior", "bar", "outdoor_patio", "private_room")


class DiningTable(Base):
    """Physical seating unit"""
    __tablename__ = "dining_tables"

    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    capacity = Column(Integer, nullable=False)
    type = Column(String(20), default="regular")
    location = Column(String(20), default="interior")
    description = Column(Text)

    # Availability, only written by the state machine together with the
    # reservation that holds the table
    is_available = Column(Boolean, nullable=False, default=True)
    current_reservation_id = Column(String(64))

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<DiningTable {self.id} cap={self.capacity} available={self.is_available}>"
