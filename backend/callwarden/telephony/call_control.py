"""
CallWarden - Call Control Providers

Outbound side of the relay: instructs the telephony provider to end a live
call with a spoken announcement.

Supported backends:
- twilio: Twilio Voice REST API (live call update with TwiML)
- dummy: records requests and logs them, for development and tests
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import List, Tuple

from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client
from twilio.twiml.voice_response import VoiceResponse

from callwarden.config import Settings
from callwarden.core.exceptions import CallControlError, ConfigurationError
from .privacy import mask_call_id

logger = logging.getLogger(__name__)


def build_end_call_twiml(message: str, pause_seconds: int = 2) -> str:
    """
    Response program for a forced hang-up: short pause, announcement, hangup.

    The message is XML-escaped by the TwiML builder.
    """
    response = VoiceResponse()
    response.pause(length=pause_seconds)
    response.say(message)
    response.hangup()
    return str(response)


class CallController(ABC):
    """
    Abstract base class for call-control providers.

    Implementations must raise CallControlError when the provider rejects
    the request or cannot be reached.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""
        ...

    @abstractmethod
    async def end_call(self, provider_call_id: str, message: str) -> None:
        """
        Speak ``message`` on the live call, then disconnect it.

        Args:
            provider_call_id: Provider's handle for the call
            message: Sentence to speak before hanging up

        Raises:
            CallControlError: If the provider request fails
        """
        ...


class TwilioCallController(CallController):
    """Ends calls by redirecting them to an inline TwiML program."""

    def __init__(self, client: Client, pause_seconds: int = 2):
        self._client = client
        self._pause_seconds = pause_seconds

    @property
    def name(self) -> str:
        return "twilio"

    async def end_call(self, provider_call_id: str, message: str) -> None:
        twiml = build_end_call_twiml(message, self._pause_seconds)
        logger.debug("Sending TwiML to call %s: %s", mask_call_id(provider_call_id), twiml)

        try:
            # The Twilio SDK is blocking; keep the event loop free for other callers.
            await asyncio.to_thread(
                self._client.calls(provider_call_id).update,
                twiml=twiml,
            )
        except TwilioRestException as e:
            raise CallControlError(
                f"Twilio rejected call update: {e.msg}",
                details={"status": e.status, "twilio_code": e.code},
            ) from e
        except (TwilioException, OSError) as e:
            raise CallControlError(
                f"Twilio call update failed: {e}",
                details={"error_type": type(e).__name__},
            ) from e


class DummyCallController(CallController):
    """
    Log-only controller.

    Keeps every request in ``requests`` so tests can assert on them.
    """

    def __init__(self) -> None:
        self.requests: List[Tuple[str, str]] = []

    @property
    def name(self) -> str:
        return "dummy"

    async def end_call(self, provider_call_id: str, message: str) -> None:
        self.requests.append((provider_call_id, message))
        logger.info("Dummy call control: would end call %s", mask_call_id(provider_call_id))


def create_call_controller(settings: Settings) -> CallController:
    """
    Create a call controller based on settings.

    Raises:
        ConfigurationError: Unknown backend, or Twilio credentials missing
    """
    backend = settings.call_control_backend.lower()

    if backend == "dummy":
        logger.info("Using dummy call controller (calls will not really end)")
        return DummyCallController()

    if backend == "twilio":
        missing = [
            name
            for name, value in [
                ("TWILIO_ACCOUNT_SID", settings.twilio_account_sid),
                ("TWILIO_AUTH_TOKEN", settings.twilio_auth_token),
            ]
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}",
                details={"missing": missing},
            )

        http_client = TwilioHttpClient(timeout=settings.call_control_timeout_seconds)
        client = Client(
            settings.twilio_account_sid,
            settings.twilio_auth_token,
            http_client=http_client,
        )
        logger.info("Twilio client initialized successfully")
        return TwilioCallController(client, pause_seconds=settings.end_call_pause_seconds)

    raise ConfigurationError(f"Unknown call control backend: {settings.call_control_backend}")
