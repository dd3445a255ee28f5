# kiosk_dispatch/transport/staff_socket.py
"""
WebSocket channel for staff clients.

Staff clients only listen: every event is a JSON object tagged with
``type`` (``incoming_call``, ``call_resolved``).  Right after the
handshake the client receives a ``connected`` event, which also marks
the moment it starts receiving broadcasts.
"""
from __future__ import annotations

from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

from kiosk_dispatch.core.connection_registry import ConnectionRegistry
from kiosk_dispatch.core.domain import connected_event
from kiosk_dispatch.infra.logging_config import get_logger

logger = get_logger(__name__)


class WebSocketStaffConnection:
    """Adapts a FastAPI WebSocket to the registry's connection interface."""

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket

    async def send(self, event: dict[str, Any]) -> None:
        await self.websocket.send_json(event)


async def staff_socket_handler(websocket: WebSocket, registry: ConnectionRegistry) -> None:
    await websocket.accept()
    connection = WebSocketStaffConnection(websocket)
    registry.register(connection)

    try:
        await connection.send(connected_event(registry.count()))

        # Keep the socket open; inbound frames are only keep-alives
        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_text("pong")

    except WebSocketDisconnect:
        logger.info("Staff WebSocket disconnected")
    except Exception as e:
        logger.error(f"Staff WebSocket error: {type(e).__name__}: {e}")
    finally:
        registry.unregister(connection)
