"""Audit log model"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, JSON

from dinebook.database import Base


class AuditLog(Base):
    """Audit trail for reservation and table changes"""
    __tablename__ = "audit_logs"

    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Actor information
    actor_type = Column(String(50))  # user, system
    actor_name = Column(String(255))

    # Action details
    action = Column(String(100), nullable=False)  # transition, delete, expire, create
    resource_type = Column(String(50))  # reservation, table
    resource_id = Column(String(64), index=True)

    # Change data
    data_json = Column(JSON)  # {"before": {...}, "after": {...}}

    created_at = Column(DateTime, default=datetime.utcnow)
