"""SectorTracker — the IDLE ⇄ IN_SECTOR state machine driven by location fixes.

Each accepted fix runs, in order:

1. debounce gate (fixes closer than ``debounce_ms`` to the last accepted fix are dropped)
2. membership test (tight entry threshold while idle, looser exit threshold inside)
3. entry confirmation (``entry_confirmations`` consecutive matches of one candidate)
4. exit confirmation (``exit_confirmations`` consecutive misses of the current sector)
5. speed update (session average, predicted average, will-exceed flag)
6. recommended speed
7. progress along the sector route and progress-threshold events

The tracker is a sequential reducer: :meth:`SectorTracker.process` mutates the
owned :class:`TrackingState` and returns the events produced by that fix.  It
never raises; a fix that cannot be processed is logged and dropped.
"""

from __future__ import annotations

import logging
from collections import deque

from sector_tracker.config import NotificationSettings, TrackerConfig
from sector_tracker.geo.distance import distance_along_m
from sector_tracker.geo.models import LocationFix
from sector_tracker.sectors.catalog import SectorCatalog, is_near_sector
from sector_tracker.sectors.models import Sector
from sector_tracker.tracking.estimation import mean, predicted_average, recommended_speed
from sector_tracker.tracking.models import (
    SectorEntered,
    SectorExited,
    SectorHistoryEntry,
    SectorProgress,
    TrackingEvent,
    TrackingSnapshot,
    TrackingState,
)
from sector_tracker.tracking.rules import (
    AverageViolationRule,
    EarlyWarningRule,
    SpeedViolationRule,
)

_logger = logging.getLogger(__name__)


class SectorTracker:
    """Tracks which sector, if any, the vehicle is in and how it is doing there.

    Parameters
    ----------
    catalog:
        The :class:`SectorCatalog` used for membership tests.
    config:
        Thresholds, confirmation counts and cooldowns.
    settings:
        User notification settings (early-warning toggle and distances).
    """

    def __init__(
        self,
        catalog: SectorCatalog,
        config: TrackerConfig | None = None,
        settings: NotificationSettings | None = None,
    ) -> None:
        self.catalog = catalog
        self.config = config or TrackerConfig()
        self.state = TrackingState()
        self._history: deque[SectorHistoryEntry] = deque(maxlen=self.config.history_size)
        self._last_fix: LocationFix | None = None
        self._speed_rule = SpeedViolationRule(
            self.config.speed_margin_kmh, self.config.speed_violation_cooldown_ms
        )
        self._average_rule = AverageViolationRule(self.config.average_violation_cooldown_ms)
        self._warning_rule = EarlyWarningRule(
            settings or NotificationSettings(),
            self.config.warning_cooldown_ms,
            self.config.warning_clear_margin_m,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def settings(self) -> NotificationSettings:
        return self._warning_rule.settings

    @settings.setter
    def settings(self, value: NotificationSettings) -> None:
        self._warning_rule.settings = value

    @property
    def history(self) -> list[SectorHistoryEntry]:
        """Completed sector passes, most recent first."""
        return list(self._history)

    @property
    def last_fix(self) -> LocationFix | None:
        """Most recent fix accepted by the debounce gate."""
        return self._last_fix

    def snapshot(self) -> TrackingSnapshot:
        return TrackingSnapshot.of(self.state)

    def replace_state(self, state: TrackingState) -> None:
        """Install *state* wholesale (used when restoring persisted state)."""
        self.state = state

    def reset(self) -> None:
        """Forget the current session and debounce state; history is kept."""
        self.state = TrackingState()
        self._last_fix = None

    def process(self, fix: LocationFix) -> list[TrackingEvent]:
        """Feed one location fix through the state machine.

        Returns the events produced by this fix (possibly none).
        """
        try:
            return self._process(fix)
        except Exception:
            _logger.exception("Dropping fix at %s after unexpected error", fix.timestamp_ms)
            return []

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _process(self, fix: LocationFix) -> list[TrackingEvent]:
        if not fix.is_valid():
            _logger.warning("Ignoring malformed fix: %r", fix)
            return []

        state = self.state
        now = fix.timestamp_ms
        if state.last_check_time_ms is not None and now - state.last_check_time_ms < self.config.debounce_ms:
            return []
        state.last_check_time_ms = now
        self._last_fix = fix

        events: list[TrackingEvent] = []
        if state.sector is None:
            events.extend(self._warning_rule.check(self.catalog.active(), fix))
            entered = self._check_entry(fix)
            if entered is not None:
                events.append(entered)
        else:
            exited = self._check_exit(fix)
            if exited is not None:
                events.append(exited)
                return events

        if state.sector is not None:
            events.extend(self._update_speed(fix))
            events.extend(self._update_progress(fix))
        return events

    def _check_entry(self, fix: LocationFix) -> SectorEntered | None:
        state = self.state
        candidate = self.catalog.find_containing(fix.point, self.config.entry_threshold_m)
        if candidate is None:
            state.entry_candidate_id = None
            state.entry_confirmation_count = 0
            return None

        if candidate.id == state.entry_candidate_id:
            state.entry_confirmation_count += 1
        else:
            state.entry_candidate_id = candidate.id
            state.entry_confirmation_count = 1

        if state.entry_confirmation_count < self.config.entry_confirmations:
            return None

        self._enter(candidate, fix.timestamp_ms)
        _logger.info("Entered sector %s (%s)", candidate.id, candidate.name)
        return SectorEntered(
            sector_id=candidate.id,
            sector_name=candidate.name,
            speed_limit=candidate.speed_limit,
            current_speed=fix.speed_kmh,
        )

    def _enter(self, sector: Sector, now_ms: int) -> None:
        state = self.state
        state.clear_session()
        state.sector = sector
        state.entry_time_ms = now_ms
        state.total_distance_m = sector.total_distance_m()

    def _check_exit(self, fix: LocationFix) -> SectorExited | None:
        state = self.state
        sector = state.sector
        if is_near_sector(fix.point, sector, self.config.exit_threshold_m):
            state.exit_confirmation_count = 0
            return None

        state.exit_confirmation_count += 1
        if state.exit_confirmation_count < self.config.exit_confirmations:
            return None

        average = state.current_average_speed
        entry = SectorHistoryEntry(
            sector_id=sector.id,
            sector_name=sector.name,
            timestamp_ms=fix.timestamp_ms,
            average_speed=average,
            speed_limit=sector.speed_limit,
            exceeded=average > sector.speed_limit,
            duration_ms=fix.timestamp_ms - (state.entry_time_ms or fix.timestamp_ms),
        )
        self._history.appendleft(entry)
        state.clear_session()
        _logger.info(
            "Exited sector %s with average %.1f km/h (limit %g)",
            sector.id,
            average,
            sector.speed_limit,
        )
        return SectorExited(
            sector_id=sector.id,
            sector_name=sector.name,
            average_speed=average,
            exceeded=entry.exceeded,
            entry=entry,
            last_latitude=fix.latitude,
            last_longitude=fix.longitude,
        )

    def _update_speed(self, fix: LocationFix) -> list[TrackingEvent]:
        state = self.state
        sector = state.sector
        cfg = self.config

        state.speed_readings.append(fix.speed_kmh)
        state.current_average_speed = mean(state.speed_readings)
        state.predicted_average_speed = predicted_average(
            state.speed_readings, cfg.recent_window, cfg.session_weight
        )
        state.will_exceed_limit = state.predicted_average_speed > sector.speed_limit
        state.recommended_speed_kmh = recommended_speed(
            sector.speed_limit,
            state.current_average_speed,
            state.total_distance_m,
            state.distance_traveled_m,
            cfg.min_remaining_m,
            cfg.recovery_band_kmh,
        )

        events: list[TrackingEvent] = []
        speeding = self._speed_rule.check(sector, fix, state.current_average_speed)
        if speeding is not None:
            events.append(speeding)
        over_average = self._average_rule.check(
            sector, fix.timestamp_ms, state.current_average_speed, state.recommended_speed_kmh
        )
        if over_average is not None:
            events.append(over_average)
        return events

    def _update_progress(self, fix: LocationFix) -> list[TrackingEvent]:
        state = self.state
        sector = state.sector
        total = state.total_distance_m
        if total <= 0:
            return []

        along = distance_along_m(fix.point, sector.geometry())
        state.distance_traveled_m = min(along, total)
        state.progress = min(1.0, max(0.0, along / total))

        events: list[TrackingEvent] = []
        for threshold in sorted(self.config.progress_thresholds):
            if state.progress >= threshold and state.last_progress_threshold_notified < threshold:
                state.last_progress_threshold_notified = threshold
                events.append(
                    SectorProgress(
                        sector_id=sector.id,
                        threshold_crossed=threshold,
                        average_speed=state.current_average_speed,
                        exceeding=state.current_average_speed > sector.speed_limit,
                        recommended_speed=state.recommended_speed_kmh,
                        sector_name=sector.name,
                        speed_limit=sector.speed_limit,
                    )
                )
        return events
