"""Twilio SMS / WhatsApp notification dispatcher"""

from typing import Optional

from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client as TwilioClient
import structlog

from dinebook.config import Settings, settings as default_settings
from dinebook.errors import ExternalServiceError
from dinebook.logging_config import mask_phone
from dinebook.models.reservation import Reservation
from dinebook.notifications.base import DispatchResult, NotificationDispatcher

logger = structlog.get_logger()


def _when(reservation: Reservation) -> str:
    return reservation.reservation_datetime.strftime("%A, %B %d at %I:%M %p")


class TwilioNotificationDispatcher(NotificationDispatcher):
    """Sends guest messages through Twilio, as SMS or WhatsApp"""

    def __init__(self, config: Optional[Settings] = None, client: Optional[TwilioClient] = None):
        self.config = config or default_settings
        self.channel = "whatsapp" if self.config.notification_channel == "whatsapp" else "sms"
        self.client = client or TwilioClient(
            self.config.twilio_account_sid,
            self.config.twilio_auth_token,
        )

    def _addresses(self, phone: str):
        if self.channel == "whatsapp":
            sender = self.config.twilio_whatsapp_number or self.config.twilio_phone_number
            return f"whatsapp:{sender}", f"whatsapp:{phone}"
        return self.config.twilio_phone_number, phone

    async def _send(self, reservation: Reservation, body: str, kind: str) -> DispatchResult:
        from_, to = self._addresses(reservation.phone)
        try:
            message = self.client.messages.create(body=body, from_=from_, to=to)
        except TwilioRestException as e:
            logger.error(
                "Twilio rejected message",
                kind=kind,
                reservation_id=reservation.id,
                to=mask_phone(reservation.phone),
                error=str(e),
            )
            raise ExternalServiceError(f"Could not send {kind} message to guest") from e

        logger.info(
            "Sent guest message",
            kind=kind,
            channel=self.channel,
            reservation_id=reservation.id,
            to=mask_phone(reservation.phone),
        )
        return DispatchResult(success=True, channel=self.channel, message_sid=message.sid)

    async def notify_confirmed(self, reservation: Reservation) -> DispatchResult:
        message = f"Your reservation at {self.config.venue_name} is confirmed! "
        message += f"{reservation.party_size} guests on {_when(reservation)}. "
        message += "Reply to modify or cancel."
        return await self._send(reservation, message, "confirmation")

    async def notify_cancelled(self, reservation: Reservation) -> DispatchResult:
        message = f"Your reservation at {self.config.venue_name} for "
        message += f"{_when(reservation)} has been cancelled. "
        message += "Contact us if you would like to rebook."
        return await self._send(reservation, message, "cancellation")

    async def notify_expired(self, reservation: Reservation) -> DispatchResult:
        message = f"We missed you at {self.config.venue_name}! "
        message += f"Your reservation for {_when(reservation)} has been released. "
        message += "We hope to see you another time."
        return await self._send(reservation, message, "expiration")

    async def notify_reminder(self, reservation: Reservation) -> DispatchResult:
        message = f"Reminder: Your reservation at {self.config.venue_name} is coming up! "
        message += f"{reservation.party_size} guests at "
        message += f"{reservation.reservation_datetime.strftime('%I:%M %p')}. "
        message += "See you soon!"
        return await self._send(reservation, message, "reminder")
