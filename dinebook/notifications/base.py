"""Base notification dispatcher interface"""

from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel

from dinebook.models.reservation import Reservation


class DispatchResult(BaseModel):
    """Outcome of one guest-facing message"""
    success: bool
    channel: str
    message_sid: Optional[str] = None
    error: Optional[str] = None


class NotificationDispatcher(ABC):
    """Abstract base class for guest notification channels.

    Implementations report failures through ``DispatchResult`` or by raising
    ``ExternalServiceError``; the reservation core never blocks on either
    beyond logging.
    """

    channel = "none"

    @abstractmethod
    async def notify_confirmed(self, reservation: Reservation) -> DispatchResult:
        """Tell the guest the reservation is confirmed"""
        pass

    @abstractmethod
    async def notify_cancelled(self, reservation: Reservation) -> DispatchResult:
        """Tell the guest the reservation was cancelled or rejected"""
        pass

    @abstractmethod
    async def notify_expired(self, reservation: Reservation) -> DispatchResult:
        """Tell the guest the reservation lapsed after the grace period"""
        pass

    @abstractmethod
    async def notify_reminder(self, reservation: Reservation) -> DispatchResult:
        """Remind the guest of an upcoming reservation"""
        pass
