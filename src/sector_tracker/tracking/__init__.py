"""Sector tracking: state machine, estimation, alert rules and continuity.

Public API
----------
SectorTracker        - the IDLE ⇄ IN_SECTOR reducer over location fixes
TrackingState        - mutable state owned by the tracker
TrackingSnapshot     - read-only copy for consumers
SectorHistoryEntry   - completed sector pass
ContinuityBridge     - persist / restore / reconcile tracker state
NotificationComposer - notification content for events
TrackingEngine       - wires stream, tracker and collaborators
"""

from sector_tracker.tracking.continuity import ContinuityBridge, JsonStateStore
from sector_tracker.tracking.engine import TrackingEngine
from sector_tracker.tracking.models import (
    AverageViolation,
    SectorApproaching,
    SectorEntered,
    SectorExited,
    SectorHistoryEntry,
    SectorProgress,
    SpeedViolation,
    TrackingEvent,
    TrackingSnapshot,
    TrackingState,
)
from sector_tracker.tracking.notifications import Notification, NotificationComposer
from sector_tracker.tracking.state_machine import SectorTracker
from sector_tracker.tracking.stream import FixStream

__all__ = [
    "AverageViolation",
    "ContinuityBridge",
    "FixStream",
    "JsonStateStore",
    "Notification",
    "NotificationComposer",
    "SectorApproaching",
    "SectorEntered",
    "SectorExited",
    "SectorHistoryEntry",
    "SectorProgress",
    "SectorTracker",
    "SpeedViolation",
    "TrackingEngine",
    "TrackingEvent",
    "TrackingSnapshot",
    "TrackingState",
]
