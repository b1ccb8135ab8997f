"""ViolationRecorder — best-effort upload of completed sector passes.

Recording never affects tracking: every failure is logged and swallowed, and
:meth:`ViolationRecorder.record_in_background` returns immediately.  There is
no retry queue here; an offline buffer, if any, lives outside the tracker.
"""

from __future__ import annotations

import logging
import threading

import httpx
from pydantic import ValidationError

from sector_tracker.geo.models import GeoPoint
from sector_tracker.recording.models import ViolationRecord
from sector_tracker.tracking.models import SectorHistoryEntry

_logger = logging.getLogger(__name__)


class ViolationRecorder:
    """Posts :class:`ViolationRecord` JSON to the violations endpoint.

    Args:
        endpoint: Full URL of the ``POST`` endpoint (e.g. ``.../api/violations``).
            An empty endpoint disables uploading.
        timeout: Request timeout in seconds.
        client: Optional pre-built :class:`httpx.Client` for injection in tests.
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._client = client or httpx.Client(timeout=timeout)
        self._threads: list[threading.Thread] = []

    def record(
        self,
        entry: SectorHistoryEntry,
        last_position: GeoPoint | None,
        actor_id: str,
    ) -> bool:
        """Upload one pass; returns True on success.  Never raises."""
        if not actor_id:
            _logger.debug("No device id; not recording pass through %s", entry.sector_id)
            return False
        if not self._endpoint:
            _logger.debug("No recorder endpoint configured")
            return False
        if last_position is None:
            _logger.warning("No position for pass through %s; not recorded", entry.sector_id)
            return False

        try:
            record = ViolationRecord.from_history(entry, last_position, actor_id)
            response = self._client.post(self._endpoint, json=record.model_dump(mode="json"))
            response.raise_for_status()
        except (httpx.HTTPError, ValidationError, ValueError) as exc:
            _logger.warning("Failed to record pass through %s: %s", entry.sector_id, exc)
            return False
        except Exception:
            _logger.exception("Unexpected error recording pass through %s", entry.sector_id)
            return False

        _logger.info(
            "Recorded %s pass through %s",
            record.violation_type,
            entry.sector_id,
        )
        return True

    def record_in_background(
        self,
        entry: SectorHistoryEntry,
        last_position: GeoPoint | None,
        actor_id: str,
    ) -> threading.Thread:
        """Run :meth:`record` on a daemon thread and return immediately."""
        thread = threading.Thread(
            target=self.record,
            args=(entry, last_position, actor_id),
            daemon=True,
            name=f"ViolationRecorder-{entry.sector_id}",
        )
        thread.start()
        self._threads = [t for t in self._threads if t.is_alive()]
        self._threads.append(thread)
        return thread

    def wait(self, timeout: float | None = None) -> None:
        """Join in-flight background uploads (used at shutdown and in tests)."""
        for thread in list(self._threads):
            thread.join(timeout=timeout)

    def close(self) -> None:
        self._client.close()
