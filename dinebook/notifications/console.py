"""Dispatcher used when no message channel is configured"""

import structlog

from dinebook.models.reservation import Reservation
from dinebook.notifications.base import DispatchResult, NotificationDispatcher

logger = structlog.get_logger()


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Writes each notification to the log instead of sending it"""

    channel = "log"

    async def _log(self, reservation: Reservation, kind: str) -> DispatchResult:
        logger.info("Guest notification (not sent)", kind=kind, reservation_id=reservation.id)
        return DispatchResult(success=True, channel=self.channel)

    async def notify_confirmed(self, reservation: Reservation) -> DispatchResult:
        return await self._log(reservation, "confirmation")

    async def notify_cancelled(self, reservation: Reservation) -> DispatchResult:
        return await self._log(reservation, "cancellation")

    async def notify_expired(self, reservation: Reservation) -> DispatchResult:
        return await self._log(reservation, "expiration")

    async def notify_reminder(self, reservation: Reservation) -> DispatchResult:
        return await self._log(reservation, "reminder")
