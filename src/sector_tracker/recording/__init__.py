"""Recording of completed sector passes.

Public API
----------
ViolationRecord   - schema of a recorded pass
ViolationRecorder - best-effort HTTP upload
ViolationStorage  - SQLite persistence and statistics
"""

from sector_tracker.recording.models import RecordLocation, ViolationRecord
from sector_tracker.recording.recorder import ViolationRecorder
from sector_tracker.recording.storage import ViolationStorage

__all__ = ["RecordLocation", "ViolationRecord", "ViolationRecorder", "ViolationStorage"]
