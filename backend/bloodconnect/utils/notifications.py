from __future__ import annotations

import asyncio
import re
from typing import Optional, Protocol
from uuid import uuid4

from loguru import logger
from twilio.base.exceptions import TwilioException
from twilio.rest import Client
from twilio.twiml.voice_response import VoiceResponse

from ..database import Settings, settings
from ..errors import NotificationError

EMERGENCY_NOTICE = "This is an emergency blood donation request. Please respond as soon as possible."
CLOSING_NOTICE = "Thank you for your support."


class Notifier(Protocol):
    async def send_sms(self, phone: str, message: str) -> str: ...

    async def place_call(self, phone: str, message: str) -> str: ...


def normalize_phone_number(phone: str) -> str:
    """
    Normalize a phone number to E.164 for Twilio.

    Examples:
        "+1-555-0199" -> "+15550199"
        "+1 (555) 123-4567" -> "+15551234567"
        "44 20 7946 0958" -> "+442079460958"
    """
    if not phone:
        return phone
    normalized = "+" + re.sub(r"\D", "", phone)
    logger.debug("Normalized phone number: {} -> {}", phone, normalized)
    return normalized


def voice_script(message: str, emergency: bool = True) -> str:
    response = VoiceResponse()
    response.say(message)
    if emergency:
        response.pause(length=1)
        response.say(EMERGENCY_NOTICE)
    response.pause(length=1)
    response.say(CLOSING_NOTICE)
    return str(response)


class TwilioNotifier:
    """SMS and voice delivery through Twilio.

    Without credentials every delivery is logged and given a mock id so the
    rest of the dispatch flow behaves the same in development.
    """

    def __init__(self, config: Settings = settings) -> None:
        if not config.twilio_sid or not config.twilio_token:
            logger.warning("Twilio credentials missing; SMS and voice notifications will be mocked.")
            self.client: Optional[Client] = None
        else:
            self.client = Client(config.twilio_sid, config.twilio_token)
            if not config.twilio_phone:
                logger.warning("TWILIO_PHONE is not set; deliveries will fail until a sender number is configured.")
        self.sender_phone = config.twilio_phone

    @property
    def mocked(self) -> bool:
        return self.client is None

    async def send_sms(self, phone: str, message: str) -> str:
        to = self._recipient(phone)
        if self.client is None:
            logger.info("Mock SMS: {} -> {}", to, message)
            return f"mock-sms-{uuid4().hex[:12]}"
        sender = self._sender()
        result = await self._submit(
            "SMS",
            to,
            lambda: self.client.messages.create(to=to, from_=sender, body=message),
        )
        return result.sid

    async def place_call(self, phone: str, message: str) -> str:
        to = self._recipient(phone)
        twiml = voice_script(message)
        if self.client is None:
            logger.info("Mock call: {} -> {}", to, message)
            return f"mock-call-{uuid4().hex[:12]}"
        sender = self._sender()
        result = await self._submit(
            "Call",
            to,
            lambda: self.client.calls.create(to=to, from_=sender, twiml=twiml),
        )
        return result.sid

    def _sender(self) -> str:
        if not self.sender_phone:
            raise NotificationError("No Twilio sender number configured")
        return self.sender_phone

    @staticmethod
    def _recipient(phone: str) -> str:
        normalized = normalize_phone_number(phone)
        if not normalized or len(normalized) < 8:
            raise NotificationError(f"Invalid phone number: {phone!r}")
        return normalized

    async def _submit(self, kind: str, to: str, send):
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(None, send)
        except TwilioException as exc:
            raise NotificationError(f"{kind} delivery to {to} failed: {exc}") from exc
        logger.info("{} sent to {} (sid {})", kind, to, result.sid)
        return result


notification_service = TwilioNotifier()
