# kiosk_dispatch/core/domain.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Resolution(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"

    @classmethod
    def from_accepted(cls, accepted: bool) -> "Resolution":
        return cls.ACCEPTED if accepted else cls.DECLINED


class ClaimResult(str, Enum):
    CLAIMED = "claimed"
    ALREADY_RESOLVED = "already_resolved"


class EventType(str, Enum):
    INCOMING_CALL = "incoming_call"
    CALL_RESOLVED = "call_resolved"
    CONNECTED = "connected"


# ============================================================================
# CALL RECORD (one entry of the persisted call log)
# ============================================================================

@dataclass
class CallRecord:
    """
    One dispatched call as stored in the call log.

    ``accepted`` stays ``None`` until a staff member resolves the call;
    the stored JSON keeps the ``{sid, accepted, time, source}`` shape
    that staff clients already read.
    """
    sid: str
    source: str
    time: str = field(default_factory=utc_now_iso)
    resolution: Resolution = Resolution.PENDING
    accepted: Optional[bool] = None
    resolved_at: Optional[str] = None

    @classmethod
    def pending(cls, sid: str, source: str) -> "CallRecord":
        return cls(sid=sid, source=source)

    @classmethod
    def resolved(cls, sid: str, source: str, accepted: bool) -> "CallRecord":
        now = utc_now_iso()
        return cls(
            sid=sid,
            source=source,
            time=now,
            resolution=Resolution.from_accepted(accepted),
            accepted=accepted,
            resolved_at=now,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sid": self.sid,
            "accepted": self.accepted,
            "time": self.time,
            "source": self.source,
            "resolution": self.resolution.value,
            "resolved_at": self.resolved_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CallRecord":
        accepted = data.get("accepted")
        raw_resolution = data.get("resolution")
        if raw_resolution in {r.value for r in Resolution}:
            resolution = Resolution(raw_resolution)
        elif accepted is None:
            resolution = Resolution.PENDING
        else:
            # Entries written before resolutions were tracked only carry "accepted"
            resolution = Resolution.from_accepted(bool(accepted))
        return cls(
            sid=str(data.get("sid", "")),
            source=str(data.get("source", "")),
            time=str(data.get("time", "")),
            resolution=resolution,
            accepted=accepted,
            resolved_at=data.get("resolved_at"),
        )


def resolution_fields(accepted: bool) -> Dict[str, Any]:
    """Fields written onto a log entry when its call is resolved."""
    return {
        "accepted": accepted,
        "resolution": Resolution.from_accepted(accepted).value,
        "resolved_at": utc_now_iso(),
    }


# ============================================================================
# STAFF EVENTS
# ============================================================================

def incoming_call_event(sid: str, source: str) -> Dict[str, Any]:
    return {"type": EventType.INCOMING_CALL.value, "from": source, "sid": sid}


def call_resolved_event(sid: str, accepted: bool) -> Dict[str, Any]:
    return {"type": EventType.CALL_RESOLVED.value, "sid": sid, "accepted": accepted}


def connected_event(clients: int) -> Dict[str, Any]:
    return {"type": EventType.CONNECTED.value, "clients": clients}
