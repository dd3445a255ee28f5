# kiosk_dispatch/core/coordinator.py
"""
Dispatch coordinator: the single orchestration point for kiosk calls.

Per call sid:

    (none) --placed--> pending --first valid response--> accepted | declined
                               \\--duplicate/late response--> rejected (409)

Placement:  voice provider -> log pending -> broadcast incoming_call -> push (detached)
Resolution: claim -> log update -> broadcast call_resolved

The log is written before each broadcast: a staff member may answer as
soon as the first socket receives incoming_call, and a client that
reloads the log right after an event must see it.
"""
from __future__ import annotations

import asyncio
from typing import Any

from kiosk_dispatch.core.call_log import CallLog
from kiosk_dispatch.core.connection_registry import ConnectionRegistry
from kiosk_dispatch.core.domain import (
    CallRecord,
    ClaimResult,
    call_resolved_event,
    incoming_call_event,
    resolution_fields,
)
from kiosk_dispatch.core.errors import (
    ConflictError,
    ExternalServiceError,
    ValidationError,
    VoiceProviderError,
)
from kiosk_dispatch.core.ports import PushNotifier, VoiceProvider
from kiosk_dispatch.core.resolution_tracker import CallResolutionTracker
from kiosk_dispatch.infra.logging_config import LogContext, get_logger, mask_phone
from kiosk_dispatch.infra.metrics import DispatchMetrics

logger = get_logger(__name__)

MISSING_TO_MESSAGE = 'Missing "to" field in body'
MISSING_RESPONSE_FIELDS_MESSAGE = "Missing sid or accepted flag."
ALREADY_HANDLED_MESSAGE = "Call already handled by another staff."


class DispatchCoordinator:
    def __init__(
        self,
        *,
        registry: ConnectionRegistry,
        tracker: CallResolutionTracker,
        call_log: CallLog,
        voice: VoiceProvider,
        push: PushNotifier,
        source: str,
        callback_url: str,
    ) -> None:
        self.registry = registry
        self.tracker = tracker
        self.call_log = call_log
        self._voice = voice
        self._push = push
        self._source = source
        self._callback_url = callback_url
        self._push_tasks: set[asyncio.Task] = set()

    @property
    def source(self) -> str:
        return self._source

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------

    async def place_call(self, to: Any) -> str:
        """Ring the staff line and notify staff clients. Returns the call sid."""
        if not isinstance(to, str) or not to.strip():
            logger.error("Missing phone number in request")
            raise ValidationError(MISSING_TO_MESSAGE)
        to = to.strip()

        try:
            with DispatchMetrics.track_call_placement():
                sid = await self._voice.place_call(to, self._callback_url)
        except VoiceProviderError as exc:
            DispatchMetrics.call_placement_failed()
            logger.error(f"Call to {mask_phone(to)} failed: {exc}")
            raise ExternalServiceError("Call failed", error=str(exc)) from exc

        LogContext(logger, call_sid=sid).info("Call initiated successfully")
        await self.on_call_placed(sid, self._source)
        return sid

    async def on_call_placed(self, call_id: str, source: str) -> None:
        DispatchMetrics.call_placed()
        await self.call_log.append(CallRecord.pending(call_id, source))
        await self.registry.broadcast(incoming_call_event(call_id, source))
        self._start_push(source, call_id)

    def _start_push(self, source: str, call_id: str) -> None:
        task = asyncio.create_task(self._push.send_incoming_call(source))
        self._push_tasks.add(task)
        task.add_done_callback(lambda t: self._on_push_done(t, call_id))

    def _on_push_done(self, task: asyncio.Task, call_id: str) -> None:
        self._push_tasks.discard(task)
        log_ctx = LogContext(logger, call_sid=call_id)
        if task.cancelled():
            log_ctx.warning("Push notification cancelled")
            return
        exc = task.exception()
        if exc is not None:
            log_ctx.error(f"Push notification crashed: {type(exc).__name__}: {exc}")
        elif task.result():
            log_ctx.info(f"Push notification delivered via {self._push.name}")
        else:
            log_ctx.warning(f"Push notification not delivered via {self._push.name}")

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def on_call_response(self, call_id: Any, accepted: Any) -> None:
        """
        Record a staff decision for ``call_id``.

        Raises:
            ValidationError: sid or accepted missing/malformed (no state change)
            ConflictError: call already resolved (no state change)
        """
        if not isinstance(call_id, str) or not call_id or not isinstance(accepted, bool):
            raise ValidationError(MISSING_RESPONSE_FIELDS_MESSAGE)

        log_ctx = LogContext(logger, call_sid=call_id)

        if self.tracker.claim(call_id) is ClaimResult.ALREADY_RESOLVED:
            DispatchMetrics.call_conflict()
            log_ctx.info("Duplicate response rejected, call already handled")
            raise ConflictError(ALREADY_HANDLED_MESSAGE)

        await self.call_log.update(call_id, resolution_fields(accepted))
        await self.registry.broadcast(call_resolved_event(call_id, accepted))

        DispatchMetrics.call_response(accepted)
        log_ctx.info(f"Staff responded to call: {'accepted' if accepted else 'declined'}")

    # ------------------------------------------------------------------
    # Queries / lifecycle
    # ------------------------------------------------------------------

    async def list_logs(self) -> list[dict[str, Any]]:
        return await self.call_log.list()

    @property
    def pending_push_count(self) -> int:
        return len(self._push_tasks)

    async def drain(self, timeout: float = 5.0) -> None:
        """Wait for in-flight push notifications (used at shutdown)."""
        if not self._push_tasks:
            return
        pending = list(self._push_tasks)
        _, not_done = await asyncio.wait(pending, timeout=timeout)
        if not_done:
            for task in not_done:
                task.cancel()
            await asyncio.gather(*not_done, return_exceptions=True)
            logger.warning(f"Cancelled {len(not_done)} push notification(s) at shutdown")
