"""Shared API dependencies"""

from dinebook.notifications import NotificationDispatcher, get_notification_dispatcher
from dinebook.store import ChangeFeed, change_feed


def get_dispatcher() -> NotificationDispatcher:
    """Notification channel used by request handlers"""
    return get_notification_dispatcher()


def get_feed() -> ChangeFeed:
    """Change feed that request handlers publish to"""
    return change_feed


def get_session_factory():
    """Session factory for handlers that outlive a single request session"""
    from dinebook.database import SessionLocal
    return SessionLocal
