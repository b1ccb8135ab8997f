"""FixStream — background polling of a location source with drop-oldest overflow."""

from __future__ import annotations

import contextlib
import json
import logging
import queue
import threading
import time
from typing import IO

from sector_tracker.geo.models import LocationFix

_logger = logging.getLogger(__name__)


class JsonLinesSource:
    """Location source reading one JSON object per line from a text stream.

    ``read_fix()`` returns None on blank lines and at end of input.
    """

    def __init__(self, stream: IO[str]) -> None:
        self._stream = stream
        self.exhausted = False

    def read_fix(self) -> dict | None:
        line = self._stream.readline()
        if not line:
            self.exhausted = True
            return None
        line = line.strip()
        if not line:
            return None
        return json.loads(line)


class FixStream:
    """Polls a location source at *target_hz* and queues :class:`LocationFix` objects.

    When the queue is full the *oldest* fix is discarded so the tracker always
    sees the most recent position.

    Parameters
    ----------
    source:
        Object with ``read_fix() -> LocationFix | dict | None``.
    target_hz:
        Polling frequency in Hz.
    queue_maxsize:
        Maximum number of fixes buffered before drop-oldest kicks in.
    """

    def __init__(self, source, target_hz: float = 5.0, queue_maxsize: int = 64) -> None:
        self._source = source
        self._interval = 1.0 / target_hz
        self._queue: queue.Queue[LocationFix] = queue.Queue(maxsize=queue_maxsize)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the background polling thread."""
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="FixStream")
        self._thread.start()

    def stop(self) -> None:
        """Signal the polling thread to stop and join it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def get_fix(self, timeout: float = 0.1) -> LocationFix | None:
        """Return the next queued fix, or None if none arrives within *timeout* s."""
        try:
            if timeout <= 0:
                return self._queue.get_nowait()
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def queue_size(self) -> int:
        return self._queue.qsize()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _run(self) -> None:
        while not self._stop_event.is_set():
            t0 = time.monotonic()
            try:
                raw = self._source.read_fix()
            except Exception:
                _logger.exception("Location source failed")
                raw = None
            if raw is not None:
                try:
                    fix = raw if isinstance(raw, LocationFix) else LocationFix.from_dict(raw)
                except ValueError as exc:
                    _logger.warning("Discarding fix: %s", exc)
                else:
                    self._enqueue(fix)
            if getattr(self._source, "exhausted", False):
                break
            wait = self._interval - (time.monotonic() - t0)
            if wait > 0:
                self._stop_event.wait(wait)

    def _enqueue(self, fix: LocationFix) -> None:
        try:
            self._queue.put_nowait(fix)
        except queue.Full:
            with contextlib.suppress(queue.Empty):
                self._queue.get_nowait()
            with contextlib.suppress(queue.Full):
                self._queue.put_nowait(fix)
