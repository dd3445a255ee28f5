# kiosk_dispatch/core/resolution_tracker.py
from __future__ import annotations

from threading import Lock

from kiosk_dispatch.core.domain import ClaimResult


class CallResolutionTracker:
    """
    At-most-one resolution per call sid.

    Claimed sids are kept for the life of the process and never pruned.
    Not shared across processes: after a restart every sid is claimable again.
    """

    def __init__(self) -> None:
        self._resolved: set[str] = set()
        self._lock = Lock()

    def claim(self, call_id: str) -> ClaimResult:
        with self._lock:
            if call_id in self._resolved:
                return ClaimResult.ALREADY_RESOLVED
            self._resolved.add(call_id)
            return ClaimResult.CLAIMED

    def is_resolved(self, call_id: str) -> bool:
        with self._lock:
            return call_id in self._resolved

    def __len__(self) -> int:
        with self._lock:
            return len(self._resolved)
