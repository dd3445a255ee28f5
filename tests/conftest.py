# tests/conftest.py
"""Pytest configuration and fixtures"""
import sys
from pathlib import Path

import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from kiosk_dispatch.core.call_log import CallLog
from kiosk_dispatch.core.connection_registry import ConnectionRegistry
from kiosk_dispatch.core.coordinator import DispatchCoordinator
from kiosk_dispatch.core.resolution_tracker import CallResolutionTracker
from kiosk_dispatch.infra.json_store import InMemoryStore
from kiosk_dispatch.infra.push_tokens import PushTokenRegistry
from tests.fakes import KIOSK_SOURCE, FakePushNotifier, FakeVoiceProvider


@pytest.fixture
def log_store():
    return InMemoryStore(name="call_logs")


@pytest.fixture
def call_log(log_store):
    return CallLog(log_store, max_entries=100, default_source=KIOSK_SOURCE)


@pytest.fixture
def registry():
    return ConnectionRegistry(send_timeout=1.0)


@pytest.fixture
def tracker():
    return CallResolutionTracker()


@pytest.fixture
def voice():
    return FakeVoiceProvider()


@pytest.fixture
def push():
    return FakePushNotifier()


@pytest.fixture
def push_tokens():
    return PushTokenRegistry(InMemoryStore(name="push_tokens"))


@pytest.fixture
def coordinator(registry, tracker, call_log, voice, push):
    return DispatchCoordinator(
        registry=registry,
        tracker=tracker,
        call_log=call_log,
        voice=voice,
        push=push,
        source=KIOSK_SOURCE,
        callback_url="https://dispatch.example.com/voice",
    )
