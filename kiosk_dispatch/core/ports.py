# kiosk_dispatch/core/ports.py
from __future__ import annotations
from typing import Any, Protocol


class RecordStore(Protocol):
    """Backing medium for a JSON-serializable sequence (call log, push tokens)."""

    name: str

    def read(self) -> list[Any]:
        """Raises StorageError when the medium is unreadable or corrupt."""
        ...

    def write(self, records: list[Any]) -> None:
        """Raises StorageError when the medium is unwritable."""
        ...


class StaffConnection(Protocol):
    async def send(self, event: dict[str, Any]) -> None: ...


class VoiceProvider(Protocol):
    async def place_call(self, to: str, callback_url: str) -> str:
        """Return the provider call sid; raise VoiceProviderError on failure."""
        ...


class PushNotifier(Protocol):
    @property
    def name(self) -> str: ...

    async def send_incoming_call(self, source: str) -> bool:
        """
        True  => provider accepted the notification
        False => nothing sent or provider rejected it (never raises)
        """
        ...
