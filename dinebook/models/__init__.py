"""Database models"""

from dinebook.models.reservation import Reservation, ReservationStatus, RESERVATION_SOURCES
from dinebook.models.table import DiningTable, TABLE_TYPES, TABLE_LOCATIONS
from dinebook.models.settings import ExpirationSettings, EXPIRATION_SETTINGS_ID
from dinebook.models.audit import AuditLog

__all__ = [
    "Reservation",
    "ReservationStatus",
    "RESERVATION_SOURCES",
    "DiningTable",
    "TABLE_TYPES",
    "TABLE_LOCATIONS",
    "ExpirationSettings",
    "EXPIRATION_SETTINGS_ID",
    "AuditLog",
]
