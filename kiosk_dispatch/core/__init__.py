from kiosk_dispatch.core.call_log import CallLog
from kiosk_dispatch.core.connection_registry import ConnectionRegistry
from kiosk_dispatch.core.coordinator import DispatchCoordinator
from kiosk_dispatch.core.domain import CallRecord, ClaimResult, Resolution
from kiosk_dispatch.core.resolution_tracker import CallResolutionTracker

__all__ = [
    "CallLog",
    "CallRecord",
    "CallResolutionTracker",
    "ClaimResult",
    "ConnectionRegistry",
    "DispatchCoordinator",
    "Resolution",
]
