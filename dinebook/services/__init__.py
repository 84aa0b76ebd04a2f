"""Reservation core services"""

from dinebook.services.state_machine import ReservationStateMachine, can_transition, allowed_targets
from dinebook.services.expiration import ExpirationSweeper, ForcedTransition
from dinebook.services.reminders import ReminderScheduler
from dinebook.services.bulk import BulkAction, BulkOperationExecutor
from dinebook.services.settings import ExpirationSettingsService
from dinebook.services import query, stats

__all__ = [
    "ReservationStateMachine",
    "can_transition",
    "allowed_targets",
    "ExpirationSweeper",
    "ForcedTransition",
    "ReminderScheduler",
    "BulkAction",
    "BulkOperationExecutor",
    "ExpirationSettingsService",
    "query",
    "stats",
]
