"""Guest notification dispatchers"""

import structlog

from dinebook.config import settings
from dinebook.errors import ReservationError
from dinebook.notifications.base import DispatchResult, NotificationDispatcher
from dinebook.notifications.console import LoggingNotificationDispatcher
from dinebook.notifications.twilio import TwilioNotificationDispatcher

logger = structlog.get_logger()


def get_notification_dispatcher() -> NotificationDispatcher:
    """Pick the configured channel, falling back to log-only delivery"""
    if settings.twilio_configured:
        return TwilioNotificationDispatcher()
    return LoggingNotificationDispatcher()


async def dispatch(dispatcher: NotificationDispatcher, kind: str, reservation) -> DispatchResult:
    """Fire one notification and report, never raise.

    ``kind`` is one of confirmed, cancelled, expired, reminder.
    """
    handler = getattr(dispatcher, f"notify_{kind}")
    try:
        result = await handler(reservation)
    except ReservationError as e:
        logger.error(
            "Notification dispatch failed",
            kind=kind,
            reservation_id=reservation.id,
            error=e.message,
        )
        return DispatchResult(success=False, channel=dispatcher.channel, error=e.message)
    except Exception as e:
        logger.exception(
            "Notification dispatcher crashed",
            kind=kind,
            reservation_id=reservation.id,
        )
        return DispatchResult(success=False, channel=dispatcher.channel, error=str(e))

    if not result.success:
        logger.warning(
            "Notification not delivered",
            kind=kind,
            reservation_id=reservation.id,
            error=result.error,
        )
    return result


__all__ = [
    "DispatchResult",
    "NotificationDispatcher",
    "LoggingNotificationDispatcher",
    "TwilioNotificationDispatcher",
    "get_notification_dispatcher",
    "dispatch",
]
