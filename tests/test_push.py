# tests/test_push.py
"""
Tests for the push notification providers.

All tests mock the HTTP layer — no actual Expo or OneSignal calls.
"""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from kiosk_dispatch.infra.push_notifiers import (
    DisabledPushNotifier,
    ExpoPushNotifier,
    OneSignalPushNotifier,
    get_push_notifier,
)

EXPO_URL = "https://exp.host/--/api/v2/push/send"


def _make_mock_response(status=200, json_data=None):
    """Create a mock aiohttp response."""
    resp = AsyncMock()
    resp.status = status
    resp.json = AsyncMock(return_value=json_data if json_data is not None else {})
    return resp


def _make_mock_session(response=None, post_exc=None):
    """Create a mock session whose .post() returns the given response."""
    ctx = AsyncMock()
    ctx.__aenter__ = AsyncMock(return_value=response)
    ctx.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    if post_exc:
        session.post = MagicMock(side_effect=post_exc)
    else:
        session.post = MagicMock(return_value=ctx)
    return session


# ============================================================================
# Expo
# ============================================================================

class TestExpoPushNotifier:
    def test_message_shape(self, push_tokens):
        notifier = ExpoPushNotifier(push_tokens, url=EXPO_URL)
        messages = notifier.build_messages(["ExponentPushToken[a]"], "Sidney Kiosk")

        assert messages == [{
            "to": "ExponentPushToken[a]",
            "sound": "default",
            "title": "Incoming Call",
            "body": "Sidney Kiosk is calling for support.",
            "data": {"type": "incoming_call"},
        }]

    @pytest.mark.asyncio
    async def test_sends_one_message_per_token(self, push_tokens):
        await push_tokens.register("ExponentPushToken[a]")
        await push_tokens.register("ExponentPushToken[b]")
        session = _make_mock_session(_make_mock_response(200, {"data": [{"status": "ok"}, {"status": "ok"}]}))
        notifier = ExpoPushNotifier(push_tokens, url=EXPO_URL, session_factory=lambda: session)

        assert await notifier.send_incoming_call("Sidney Kiosk") is True

        args, kwargs = session.post.call_args
        assert args[0] == EXPO_URL
        assert [m["to"] for m in kwargs["json"]] == ["ExponentPushToken[a]", "ExponentPushToken[b]"]

    @pytest.mark.asyncio
    async def test_no_tokens_skips_http(self, push_tokens):
        session = _make_mock_session(_make_mock_response())
        notifier = ExpoPushNotifier(push_tokens, url=EXPO_URL, session_factory=lambda: session)

        assert await notifier.send_incoming_call("Sidney Kiosk") is False
        session.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_http_error_returns_false(self, push_tokens):
        await push_tokens.register("ExponentPushToken[a]")
        session = _make_mock_session(_make_mock_response(500))
        notifier = ExpoPushNotifier(push_tokens, url=EXPO_URL, session_factory=lambda: session)

        assert await notifier.send_incoming_call("Sidney Kiosk") is False

    @pytest.mark.asyncio
    async def test_all_tickets_failed_returns_false(self, push_tokens):
        await push_tokens.register("ExponentPushToken[a]")
        tickets = {"data": [{"status": "error", "message": "DeviceNotRegistered"}]}
        session = _make_mock_session(_make_mock_response(200, tickets))
        notifier = ExpoPushNotifier(push_tokens, url=EXPO_URL, session_factory=lambda: session)

        assert await notifier.send_incoming_call("Sidney Kiosk") is False

    @pytest.mark.asyncio
    async def test_partial_ticket_failure_still_succeeds(self, push_tokens):
        await push_tokens.register("ExponentPushToken[a]")
        await push_tokens.register("ExponentPushToken[b]")
        tickets = {"data": [{"status": "ok"}, {"status": "error", "message": "DeviceNotRegistered"}]}
        session = _make_mock_session(_make_mock_response(200, tickets))
        notifier = ExpoPushNotifier(push_tokens, url=EXPO_URL, session_factory=lambda: session)

        assert await notifier.send_incoming_call("Sidney Kiosk") is True

    @pytest.mark.asyncio
    async def test_network_error_never_raises(self, push_tokens):
        await push_tokens.register("ExponentPushToken[a]")
        session = _make_mock_session(post_exc=aiohttp.ClientError("connection refused"))
        notifier = ExpoPushNotifier(push_tokens, url=EXPO_URL, session_factory=lambda: session)

        assert await notifier.send_incoming_call("Sidney Kiosk") is False


# ============================================================================
# OneSignal
# ============================================================================

class TestOneSignalPushNotifier:
    def _notifier(self, session=None, **kwargs):
        params = {
            "app_id": "app-123",
            "api_key": "key-abc",
            "segment": "Subscribed Users",
            "url": "https://onesignal.com/api/v1/notifications",
        }
        params.update(kwargs)
        return OneSignalPushNotifier(session_factory=lambda: session, **params)

    def test_payload_shape(self):
        payload = self._notifier().build_payload("Sidney Kiosk")

        assert payload["app_id"] == "app-123"
        assert payload["included_segments"] == ["Subscribed Users"]
        assert payload["headings"] == {"en": "Incoming Call"}
        assert payload["contents"] == {"en": "Sidney Kiosk is calling for support."}
        assert payload["data"] == {"type": "incoming_call"}

    @pytest.mark.asyncio
    async def test_sends_with_basic_auth(self):
        session = _make_mock_session(_make_mock_response(200, {"id": "notif-1"}))

        assert await self._notifier(session).send_incoming_call("Sidney Kiosk") is True

        _, kwargs = session.post.call_args
        assert kwargs["headers"]["Authorization"] == "Basic key-abc"

    @pytest.mark.asyncio
    async def test_api_errors_return_false(self):
        session = _make_mock_session(_make_mock_response(200, {"errors": ["All included players are not subscribed"]}))
        assert await self._notifier(session).send_incoming_call("Sidney Kiosk") is False

    @pytest.mark.asyncio
    async def test_http_error_returns_false(self):
        session = _make_mock_session(_make_mock_response(400))
        assert await self._notifier(session).send_incoming_call("Sidney Kiosk") is False

    def test_is_configured_requires_credentials(self, monkeypatch):
        from kiosk_dispatch.config import settings
        monkeypatch.setattr(settings, "onesignal_app_id", None)
        monkeypatch.setattr(settings, "onesignal_api_key", None)

        assert OneSignalPushNotifier().is_configured() is False

    @pytest.mark.asyncio
    async def test_unconfigured_skips_http(self, monkeypatch):
        from kiosk_dispatch.config import settings
        monkeypatch.setattr(settings, "onesignal_app_id", None)
        monkeypatch.setattr(settings, "onesignal_api_key", None)
        session = _make_mock_session(_make_mock_response())

        notifier = OneSignalPushNotifier(session_factory=lambda: session)

        assert await notifier.send_incoming_call("Sidney Kiosk") is False
        session.post.assert_not_called()


# ============================================================================
# Factory
# ============================================================================

class TestGetPushNotifier:
    def test_expo(self, push_tokens):
        assert isinstance(get_push_notifier(push_tokens, "expo"), ExpoPushNotifier)

    def test_onesignal(self, push_tokens):
        assert isinstance(get_push_notifier(push_tokens, "onesignal"), OneSignalPushNotifier)

    def test_none_is_disabled(self, push_tokens):
        assert isinstance(get_push_notifier(push_tokens, "none"), DisabledPushNotifier)

    @pytest.mark.asyncio
    async def test_disabled_reports_success(self):
        assert await DisabledPushNotifier().send_incoming_call("Sidney Kiosk") is True
