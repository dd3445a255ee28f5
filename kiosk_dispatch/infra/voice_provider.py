# kiosk_dispatch/infra/voice_provider.py
"""
Twilio voice integration: outbound call placement and the TwiML prompt
Twilio plays once the staff phone picks up.
"""
from __future__ import annotations

import asyncio

from twilio.base.exceptions import TwilioException
from twilio.twiml.voice_response import VoiceResponse

from kiosk_dispatch.config import settings
from kiosk_dispatch.core.errors import VoiceProviderError
from kiosk_dispatch.infra.logging_config import get_logger, mask_phone

logger = get_logger(__name__)


class TwilioVoiceProvider:
    """
    Places outbound calls through the Twilio REST API.

    The Twilio client is synchronous, so each call is executed in a worker
    thread to keep the event loop free while Twilio responds.
    """

    def __init__(
        self,
        account_sid: str | None = None,
        auth_token: str | None = None,
        from_number: str | None = None,
        client=None,
    ) -> None:
        self._account_sid = account_sid or settings.twilio_account_sid
        self._auth_token = auth_token or settings.twilio_auth_token
        self._from_number = from_number or settings.twilio_phone_number
        self._client = client

    def _get_client(self):
        if self._client is None:
            if not self._account_sid or not self._auth_token:
                raise VoiceProviderError("Twilio credentials not configured")
            from twilio.rest import Client
            self._client = Client(self._account_sid, self._auth_token)
        return self._client

    async def place_call(self, to: str, callback_url: str) -> str:
        if not self._from_number:
            raise VoiceProviderError("Twilio phone number not configured")

        client = self._get_client()
        try:
            call = await asyncio.to_thread(
                client.calls.create,
                to=to,
                from_=self._from_number,
                url=callback_url,
            )
        except TwilioException as exc:
            logger.error(f"Twilio call to {mask_phone(to)} failed: {exc}")
            raise VoiceProviderError(str(getattr(exc, "msg", None) or exc)) from exc
        except Exception as exc:
            logger.error(
                f"Twilio call to {mask_phone(to)} failed: {type(exc).__name__}: {exc}",
                exc_info=True,
            )
            raise VoiceProviderError(str(exc)) from exc

        logger.info(f"Twilio call created: to={mask_phone(to)}", extra={"call_sid": call.sid})
        return call.sid


def render_voice_prompt(text: str | None = None) -> str:
    """TwiML document instructing Twilio to speak the kiosk prompt."""
    response = VoiceResponse()
    response.say(text or settings.voice_prompt)
    return str(response)
