# kiosk_dispatch/core/connection_registry.py
"""
Registry of live staff channels with best-effort fan-out.

Fan-outs are serialized by a send lock, so staff clients observe events
in the order the coordinator issued them.  Each fan-out works on a
snapshot of the registry taken when the broadcast starts and sends to
all of it concurrently, each send bounded by ``send_timeout``.
"""
from __future__ import annotations

import asyncio
from threading import Lock
from typing import Any

from kiosk_dispatch.core.ports import StaffConnection
from kiosk_dispatch.infra.logging_config import get_logger
from kiosk_dispatch.infra.metrics import DispatchMetrics

logger = get_logger(__name__)


class ConnectionRegistry:
    def __init__(self, send_timeout: float | None = 5.0) -> None:
        self._connections: list[StaffConnection] = []
        self._lock = Lock()
        self._send_lock = asyncio.Lock()
        self._send_timeout = send_timeout

    def register(self, connection: StaffConnection) -> None:
        with self._lock:
            if connection in self._connections:
                return
            self._connections.append(connection)
            total = len(self._connections)
        logger.info(f"Staff connected. Total clients: {total}", extra={"clients": total})

    def unregister(self, connection: StaffConnection) -> None:
        with self._lock:
            if connection not in self._connections:
                return
            self._connections.remove(connection)
            total = len(self._connections)
        logger.info(f"Staff disconnected. Total clients: {total}", extra={"clients": total})

    def count(self) -> int:
        with self._lock:
            return len(self._connections)

    def snapshot(self) -> list[StaffConnection]:
        with self._lock:
            return list(self._connections)

    async def broadcast(self, event: dict[str, Any]) -> int:
        """
        Send ``event`` to every registered connection.

        Returns the number of successful deliveries.  Failed connections
        are unregistered; nothing is raised to the caller.
        """
        async with self._send_lock:
            targets = self.snapshot()
            if not targets:
                logger.debug(f"No staff connected, skipping {event.get('type')} broadcast")
                return 0

            results = await asyncio.gather(*(self._send_one(c, event) for c in targets))
            failed = [c for c, ok in zip(targets, results) if not ok]
            delivered = len(targets) - len(failed)

            for connection in failed:
                self.unregister(connection)

        logger.info(
            f"Broadcast {event.get('type')}: delivered={delivered}, failed={len(failed)}",
            extra={"call_sid": event.get("sid")} if event.get("sid") else None,
        )
        return delivered

    async def _send_one(self, connection: StaffConnection, event: dict[str, Any]) -> bool:
        try:
            if self._send_timeout:
                await asyncio.wait_for(connection.send(event), timeout=self._send_timeout)
            else:
                await connection.send(event)
        except Exception as exc:
            logger.warning(
                f"Failed to send {event.get('type')} to staff client: {type(exc).__name__}: {exc}"
            )
            DispatchMetrics.broadcast_send_failed()
            return False
        return True
