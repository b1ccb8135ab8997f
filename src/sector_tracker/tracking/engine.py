"""TrackingEngine — connects the fix stream to the tracker and its collaborators."""

from __future__ import annotations

import logging
from collections.abc import Callable

from sector_tracker.geo.models import GeoPoint, LocationFix
from sector_tracker.tracking.models import SectorExited, TrackingEvent
from sector_tracker.tracking.notifications import Notification, NotificationComposer

_logger = logging.getLogger(__name__)


class TrackingEngine:
    """Feeds fixes to a :class:`~sector_tracker.tracking.state_machine.SectorTracker`
    and fans its events out.

    Every collaborator is fault-contained: a failing listener, notifier or
    recorder is logged and never stalls fix processing.

    Parameters
    ----------
    stream:
        A :class:`~sector_tracker.tracking.stream.FixStream`.
    tracker:
        The sector tracker (the only writer of tracking state).
    composer:
        Builds notification content; defaults to a :class:`NotificationComposer`
        sharing the tracker's settings.
    notifier:
        Callable delivering a :class:`Notification` (platform glue).
    recorder:
        A :class:`~sector_tracker.recording.recorder.ViolationRecorder`; completed
        passes are handed to it in the background.
    device_id:
        Opaque identifier attached to recorded passes.
    bridge:
        Optional :class:`~sector_tracker.tracking.continuity.ContinuityBridge`.
    route_loader:
        Optional :class:`~sector_tracker.sectors.routing.RouteLoader` started with the engine.
    """

    def __init__(
        self,
        stream,
        tracker,
        composer: NotificationComposer | None = None,
        notifier: Callable[[Notification], None] | None = None,
        recorder=None,
        device_id: str = "",
        bridge=None,
        route_loader=None,
    ) -> None:
        self._stream = stream
        self._tracker = tracker
        self._composer = composer or NotificationComposer(tracker.settings)
        self._notifier = notifier
        self._recorder = recorder
        self._device_id = device_id
        self._bridge = bridge
        self._route_loader = route_loader
        self._listeners: list[Callable[[TrackingEvent], None]] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin route loading, reconcile persisted state and start the fix stream."""
        if self._route_loader is not None:
            self._route_loader.start()
        self.resume()
        self._stream.start()

    def stop(self) -> None:
        """Stop fix delivery and persist state; in-flight I/O is left to finish."""
        self._stream.stop()
        self.suspend()

    def suspend(self) -> None:
        """Persist tracking state before the host may suspend this context."""
        if self._bridge is None:
            return
        try:
            self._bridge.persist()
        except OSError as exc:
            _logger.warning("Could not persist tracker state: %s", exc)

    def resume(self) -> None:
        """Reconcile with state persisted by another context."""
        if self._bridge is not None:
            result = self._bridge.sync()
            _logger.debug("Continuity sync: %s", result.value)

    def add_listener(self, callback: Callable[[TrackingEvent], None]) -> None:
        """Register *callback* to receive every emitted event."""
        self._listeners.append(callback)

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def poll(self, timeout: float = 0.0) -> list[TrackingEvent] | None:
        """Process one queued fix and return its events; None when no fix was queued."""
        fix = self._stream.get_fix(timeout=timeout)
        if fix is None:
            return None
        return self.process_fix(fix)

    def tick(self, timeout: float = 0.0) -> int:
        """Process one queued fix; returns the number of events it produced."""
        return len(self.poll(timeout) or [])

    def process_fix(self, fix: LocationFix) -> list[TrackingEvent]:
        events = self._tracker.process(fix)
        for event in events:
            self._dispatch(event)
        return events

    def _dispatch(self, event: TrackingEvent) -> None:
        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                _logger.exception("Listener failed on %s", event.type)

        if self._notifier is not None:
            notification = self._composer.compose(event)
            if notification is not None:
                try:
                    self._notifier(notification)
                except Exception:
                    _logger.exception("Notifier failed on %s", event.type)

        if isinstance(event, SectorExited) and event.entry is not None:
            self._record(event)

    def _record(self, event: SectorExited) -> None:
        if self._recorder is None:
            return
        position = (
            GeoPoint(event.last_latitude, event.last_longitude)
            if event.last_latitude is not None and event.last_longitude is not None
            else None
        )
        self._recorder.record_in_background(event.entry, position, self._device_id)
