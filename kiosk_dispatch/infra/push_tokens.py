# kiosk_dispatch/infra/push_tokens.py
"""Registered device push tokens, persisted as a JSON array of strings."""
from __future__ import annotations

import asyncio

from kiosk_dispatch.core.errors import StorageError
from kiosk_dispatch.core.ports import RecordStore
from kiosk_dispatch.infra.logging_config import get_logger

logger = get_logger(__name__)


def _mask_token(token: str) -> str:
    if len(token) <= 12:
        return "***"
    return f"{token[:8]}***{token[-4:]}"


class PushTokenRegistry:
    def __init__(self, store: RecordStore) -> None:
        self._store = store
        self._lock = asyncio.Lock()

    async def register(self, token: str | None) -> bool:
        """Add ``token``. Returns True if it was not registered before."""
        if not token or not token.strip():
            return False
        token = token.strip()
        async with self._lock:
            tokens = await self._read()
            if token in tokens:
                return False
            tokens.append(token)
            await self._write(tokens)
        logger.info(f"Registered push token: {_mask_token(token)}")
        return True

    async def unregister(self, token: str | None) -> bool:
        """Remove ``token``. Returns True if it was registered."""
        if not token:
            return False
        token = token.strip()
        async with self._lock:
            tokens = await self._read()
            if token not in tokens:
                return False
            await self._write([t for t in tokens if t != token])
        logger.info(f"Unregistered push token: {_mask_token(token)}")
        return True

    async def list(self) -> list[str]:
        async with self._lock:
            return await self._read()

    async def _read(self) -> list[str]:
        try:
            raw = await asyncio.to_thread(self._store.read)
        except StorageError as exc:
            logger.warning(f"Push token store unreadable, treating as empty: {exc}")
            return []
        return [t for t in raw if isinstance(t, str) and t]

    async def _write(self, tokens: list[str]) -> None:
        try:
            await asyncio.to_thread(self._store.write, tokens)
        except StorageError as exc:
            logger.error(f"Push token write lost: {exc}")
