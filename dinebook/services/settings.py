"""Expiration settings read/write"""

from datetime import datetime
from typing import Any, Dict

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from dinebook.errors import ValidationError
from dinebook.models.settings import EXPIRATION_SETTINGS_ID, ExpirationSettings
from dinebook.store import atomic

logger = structlog.get_logger()

WRITABLE_FIELDS = (
    "is_enabled",
    "expiration_minutes",
    "reminder_minutes",
    "auto_mark_no_show",
    "send_expiration_notification",
)


class ExpirationSettingsService:
    """Access to the singleton expiration settings row"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def read(self) -> ExpirationSettings:
        """Return the current settings, falling back to defaults when unset"""
        settings_obj = await self.db.get(ExpirationSettings, EXPIRATION_SETTINGS_ID, populate_existing=True)
        if settings_obj is None:
            settings_obj = ExpirationSettings(
                id=EXPIRATION_SETTINGS_ID,
                is_enabled=False,
                expiration_minutes=30,
                reminder_minutes=60,
                auto_mark_no_show=True,
                send_expiration_notification=True,
            )
        return settings_obj

    async def write(self, changes: Dict[str, Any]) -> ExpirationSettings:
        """Apply a partial update and persist it"""
        unknown = set(changes) - set(WRITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown settings: {', '.join(sorted(unknown))}")
        for name in ("expiration_minutes", "reminder_minutes"):
            if name in changes and changes[name] is not None and changes[name] < 0:
                raise ValidationError(f"{name} cannot be negative")

        async with atomic(self.db, "settings", EXPIRATION_SETTINGS_ID):
            settings_obj = await self.read()
            for name, value in changes.items():
                if value is not None:
                    setattr(settings_obj, name, value)
            settings_obj.updated_at = datetime.utcnow()
            self.db.add(settings_obj)

        logger.info("Expiration settings updated", changes=changes)
        return settings_obj
