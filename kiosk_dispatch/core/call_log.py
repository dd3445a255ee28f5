# kiosk_dispatch/core/call_log.py
"""
Bounded, newest-first history of dispatched calls.

Every mutation is a read-modify-write cycle against the backing store,
serialized by a single asyncio lock so concurrent appends are neither
lost nor duplicated.  Store I/O runs in a worker thread.

Failure policy:
- unreadable or corrupt store -> treated as empty
- unwritable store            -> the write is dropped and logged
"""
from __future__ import annotations

import asyncio
from typing import Any

from kiosk_dispatch.core.domain import CallRecord
from kiosk_dispatch.core.errors import StorageError
from kiosk_dispatch.core.ports import RecordStore
from kiosk_dispatch.infra.logging_config import get_logger
from kiosk_dispatch.infra.metrics import DispatchMetrics

logger = get_logger(__name__)

DEFAULT_MAX_ENTRIES = 100


class CallLog:
    def __init__(
        self,
        store: RecordStore,
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        default_source: str = "",
    ) -> None:
        self._store = store
        self._max_entries = max(0, max_entries)
        self._default_source = default_source
        self._lock = asyncio.Lock()

    @property
    def max_entries(self) -> int:
        return self._max_entries

    async def append(self, entry: CallRecord | dict[str, Any]) -> None:
        record = entry.to_dict() if isinstance(entry, CallRecord) else dict(entry)
        async with self._lock:
            entries = await self._read()
            entries.insert(0, record)
            await self._write(entries[: self._max_entries])

    async def update(self, call_id: str, fields: dict[str, Any]) -> bool:
        """
        Apply ``fields`` to the most recent entry for ``call_id``.

        Returns True when an existing entry was updated, False when a new
        entry had to be appended because the call was never logged.
        """
        async with self._lock:
            entries = await self._read()
            for entry in entries:
                if isinstance(entry, dict) and entry.get("sid") == call_id:
                    entry.update(fields)
                    await self._write(entries[: self._max_entries])
                    return True

            logger.info(
                "No log entry for call, appending reconciled entry",
                extra={"call_sid": call_id},
            )
            record = CallRecord(sid=call_id, source=self._default_source).to_dict()
            record.update(fields)
            entries.insert(0, record)
            await self._write(entries[: self._max_entries])
            return False

    async def list(self) -> list[dict[str, Any]]:
        async with self._lock:
            entries = await self._read()
        return entries[: self._max_entries]

    async def _read(self) -> list[dict[str, Any]]:
        try:
            entries = await asyncio.to_thread(self._store.read)
        except StorageError as exc:
            logger.warning(f"Call log unreadable, treating as empty: {exc}")
            DispatchMetrics.storage_read_failed(self._store.name)
            return []
        # Older entries only carry {sid, accepted, time, source}
        return [CallRecord.from_dict(e).to_dict() for e in entries if isinstance(e, dict)]

    async def _write(self, entries: list[dict[str, Any]]) -> None:
        try:
            await asyncio.to_thread(self._store.write, entries)
        except StorageError as exc:
            logger.error(f"Call log write lost: {exc}")
            DispatchMetrics.storage_write_failed(self._store.name)
