"""Reservation model"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, Date, Time, DateTime, Boolean, Text

from dinebook.database import Base


class ReservationStatus:
    """Reservation status values"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    BOOKED = "booked"          # Table assigned and confirmed
    RESERVED = "reserved"      # Table temporarily held
    CANCELLED = "cancelled"
    REJECTED = "rejected"
    EXPIRED = "expired"        # Forced by the expiration sweeper
    COMPLETED = "completed"
    NO_SHOW = "no-show"

    ALL = (
        PENDING, CONFIRMED, BOOKED, RESERVED,
        CANCELLED, REJECTED, EXPIRED, COMPLETED, NO_SHOW,
    )
    TERMINAL = frozenset({CANCELLED, REJECTED, EXPIRED, COMPLETED, NO_SHOW})
    # Statuses bound to a table by the table/reservation coupling rule
    HOLDING = frozenset({CONFIRMED, BOOKED})


RESERVATION_SOURCES = ("web", "phone", "walk-in", "admin")


def new_id() -> str:
    return str(uuid.uuid4())


class Reservation(Base):
    """Dining reservation for the venue"""
    __tablename__ = "reservations"

    id = Column(String(64), primary_key=True, default=new_id)

    # Guest information
    name = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=False)

    # Reservation details
    date = Column(Date, nullable=False, index=True)
    time = Column(Time, nullable=False)
    party_size = Column(Integer, nullable=False)
    special_requests = Column(Text)
    source = Column(String(20), default="web")

    # Status
    status = Column(String(20), nullable=False, default=ReservationStatus.PENDING, index=True)

    # Table coupling, only written by the state machine.
    # No foreign key: a deleted table leaves a dangling id behind.
    table_id = Column(String(64), index=True)

    # Staff notes
    admin_notes = Column(Text)

    # Flags owned by the reservation core
    confirmation_sent = Column(Boolean, nullable=False, default=False)
    reminder_sent = Column(Boolean, nullable=False, default=False)
    whatsapp_sent = Column(Boolean, nullable=False, default=False)
    is_expired = Column(Boolean, nullable=False, default=False)

    # Optimistic concurrency token
    version = Column(Integer, nullable=False)

    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version}

    @property
    def reservation_datetime(self) -> datetime:
        """Local date and time the party is expected"""
        return datetime.combine(self.date, self.time)

    @property
    def is_terminal(self) -> bool:
        return self.status in ReservationStatus.TERMINAL

    def __repr__(self) -> str:
        return f"<Reservation {self.id} {self.status}>"
