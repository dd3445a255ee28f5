# kiosk_dispatch/infra/push_notifiers.py
"""
Push notification providers for waking up staff devices on a new call.

Supports:
- Expo push service - one message per registered device token
- OneSignal - one notification addressed to a segment
- Disabled - no-op

Usage:
    notifier = get_push_notifier(tokens)
    await notifier.send_incoming_call("Sidney Kiosk")

Delivery is best-effort: ``send_incoming_call`` never raises and failed
deliveries are not retried.
"""
from __future__ import annotations

import abc
from typing import Any, Callable

import aiohttp

from kiosk_dispatch.config import settings
from kiosk_dispatch.infra.http_client import get_push_session
from kiosk_dispatch.infra.logging_config import get_logger
from kiosk_dispatch.infra.metrics import DispatchMetrics
from kiosk_dispatch.infra.push_tokens import PushTokenRegistry

logger = get_logger(__name__)

NOTIFICATION_TITLE = "Incoming Call"


def incoming_call_body(source: str) -> str:
    return f"{source} is calling for support."


class PushProvider(abc.ABC):
    """Abstract base class for push providers"""

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Provider name for logging/metrics"""

    @abc.abstractmethod
    def is_configured(self) -> bool:
        """Check if provider is properly configured"""

    async def send_incoming_call(self, source: str) -> bool:
        if not self.is_configured():
            logger.warning(f"Push provider '{self.name}' not configured, skipping notification")
            return False

        try:
            sent = await self._send(source)
        except Exception as exc:
            logger.error(
                f"Push notification failed ({self.name}): {type(exc).__name__}: {exc}",
                extra={"provider": self.name},
                exc_info=True,
            )
            DispatchMetrics.push_failed(self.name)
            return False

        if sent:
            DispatchMetrics.push_sent(self.name)
        else:
            DispatchMetrics.push_failed(self.name)
        return sent

    @abc.abstractmethod
    async def _send(self, source: str) -> bool:
        """Provider-specific delivery; may raise."""


class ExpoPushNotifier(PushProvider):
    """Expo push service; fans out to every registered device token."""

    def __init__(
        self,
        tokens: PushTokenRegistry,
        *,
        url: str | None = None,
        session_factory: Callable[[], aiohttp.ClientSession] = get_push_session,
    ) -> None:
        self._tokens = tokens
        self._url = url or settings.expo_push_url
        self._session_factory = session_factory

    @property
    def name(self) -> str:
        return "expo"

    def is_configured(self) -> bool:
        return bool(self._url)

    def build_messages(self, tokens: list[str], source: str) -> list[dict[str, Any]]:
        return [
            {
                "to": token,
                "sound": "default",
                "title": NOTIFICATION_TITLE,
                "body": incoming_call_body(source),
                "data": {"type": "incoming_call"},
            }
            for token in tokens
        ]

    async def _send(self, source: str) -> bool:
        tokens = await self._tokens.list()
        if not tokens:
            logger.warning("No Expo push tokens registered.")
            return False

        messages = self.build_messages(tokens, source)
        session = self._session_factory()
        async with session.post(
            self._url,
            json=messages,
            headers={"Accept": "application/json"},
        ) as resp:
            if resp.status != 200:
                logger.error(f"Expo push API error: status={resp.status}", extra={"provider": self.name})
                return False
            result = await resp.json(content_type=None)

        tickets = result.get("data", []) if isinstance(result, dict) else []
        errors = [t for t in tickets if isinstance(t, dict) and t.get("status") == "error"]
        if errors:
            logger.warning(
                f"Expo push: {len(errors)}/{len(tickets)} tickets failed "
                f"(first: {errors[0].get('message')})",
                extra={"provider": self.name},
            )
        logger.info(f"Expo push sent to {len(messages)} device(s)", extra={"provider": self.name})
        return len(errors) < len(messages)


class OneSignalPushNotifier(PushProvider):
    """OneSignal REST API; notifies every device in a segment."""

    def __init__(
        self,
        *,
        app_id: str | None = None,
        api_key: str | None = None,
        segment: str | None = None,
        url: str | None = None,
        session_factory: Callable[[], aiohttp.ClientSession] = get_push_session,
    ) -> None:
        self._app_id = app_id or settings.onesignal_app_id
        self._api_key = api_key or settings.onesignal_api_key
        self._segment = segment or settings.onesignal_segment
        self._url = url or settings.onesignal_api_url
        self._session_factory = session_factory

    @property
    def name(self) -> str:
        return "onesignal"

    def is_configured(self) -> bool:
        return bool(self._app_id and self._api_key)

    def build_payload(self, source: str) -> dict[str, Any]:
        return {
            "app_id": self._app_id,
            "included_segments": [self._segment],
            "headings": {"en": NOTIFICATION_TITLE},
            "contents": {"en": incoming_call_body(source)},
            "data": {"type": "incoming_call"},
        }

    async def _send(self, source: str) -> bool:
        session = self._session_factory()
        async with session.post(
            self._url,
            json=self.build_payload(source),
            headers={"Authorization": f"Basic {self._api_key}"},
        ) as resp:
            if resp.status != 200:
                logger.error(f"OneSignal API error: status={resp.status}", extra={"provider": self.name})
                return False
            result = await resp.json(content_type=None)

        if isinstance(result, dict) and result.get("errors"):
            logger.warning(f"OneSignal rejected notification: {result['errors']}", extra={"provider": self.name})
            return False

        logger.info(
            f"OneSignal notification sent: id={result.get('id') if isinstance(result, dict) else None}",
            extra={"provider": self.name},
        )
        return True


class DisabledPushNotifier(PushProvider):
    """Dummy provider when push notifications are disabled"""

    @property
    def name(self) -> str:
        return "disabled"

    def is_configured(self) -> bool:
        return True

    async def _send(self, source: str) -> bool:
        logger.debug("Push notifications disabled, skipping")
        return True


def get_push_notifier(tokens: PushTokenRegistry, provider: str | None = None) -> PushProvider:
    """Build the configured push provider."""
    provider = provider or settings.push_provider

    if provider == "expo":
        notifier: PushProvider = ExpoPushNotifier(tokens)
    elif provider == "onesignal":
        notifier = OneSignalPushNotifier()
    else:
        logger.info("Push notifications disabled")
        return DisabledPushNotifier()

    if not notifier.is_configured():
        logger.warning(f"Push provider '{provider}' not configured, notifications will fail")

    return notifier
