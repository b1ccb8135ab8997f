"""Alert rules evaluated alongside the sector state machine.

Every rule is driven by fix timestamps (epoch ms), never by the wall clock,
so replayed fix streams produce the same alerts as live ones.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sector_tracker.config import NotificationSettings, parse_warning_distances
from sector_tracker.geo.distance import haversine_m
from sector_tracker.geo.models import LocationFix
from sector_tracker.sectors.models import Sector
from sector_tracker.tracking.models import AverageViolation, SectorApproaching, SpeedViolation


@dataclass
class CooldownTracker:
    """Prevents a keyed alert from firing more than once per *cooldown_ms*."""

    cooldown_ms: int
    _last_fire: dict[str, int] = field(default_factory=dict, init=False, repr=False)

    def can_fire(self, key: str, now_ms: int) -> bool:
        """Return True if *key* never fired or its cooldown has elapsed."""
        last = self._last_fire.get(key)
        return last is None or (now_ms - last) >= self.cooldown_ms

    def mark_fired(self, key: str, now_ms: int) -> None:
        self._last_fire[key] = now_ms

    def clear(self, key: str) -> None:
        self._last_fire.pop(key, None)


class SpeedViolationRule:
    """Instantaneous speed above ``limit + margin_kmh``, at most once per sector per cooldown.

    Parameters
    ----------
    margin_kmh:
        Tolerance above the posted limit.
    cooldown_ms:
        Minimum time between two alerts for the same sector.
    """

    def __init__(self, margin_kmh: float = 5.0, cooldown_ms: int = 30_000) -> None:
        self._margin = margin_kmh
        self._cooldown = CooldownTracker(cooldown_ms)

    def check(self, sector: Sector, fix: LocationFix, average: float) -> SpeedViolation | None:
        if fix.speed_kmh <= sector.speed_limit + self._margin:
            return None
        if not self._cooldown.can_fire(sector.id, fix.timestamp_ms):
            return None
        self._cooldown.mark_fired(sector.id, fix.timestamp_ms)
        return SpeedViolation(
            sector_id=sector.id,
            current_speed=fix.speed_kmh,
            average_speed=average,
            speed_limit=sector.speed_limit,
        )


class AverageViolationRule:
    """Session average above the limit, at most once per sector per cooldown."""

    def __init__(self, cooldown_ms: int = 60_000) -> None:
        self._cooldown = CooldownTracker(cooldown_ms)

    def check(
        self,
        sector: Sector,
        now_ms: int,
        average: float,
        recommended: int | None,
    ) -> AverageViolation | None:
        if average <= sector.speed_limit:
            return None
        if not self._cooldown.can_fire(sector.id, now_ms):
            return None
        self._cooldown.mark_fired(sector.id, now_ms)
        return AverageViolation(
            sector_id=sector.id,
            average_speed=average,
            recommended_speed=recommended,
            speed_limit=sector.speed_limit,
        )


class EarlyWarningRule:
    """Warns before a sector's start camera at each configured distance.

    Fires ``sector-approaching`` once per (sector, distance) within
    *cooldown_ms*.  Once the vehicle is farther than
    ``max(distances) + clear_margin_m`` from a sector's start, that sector's
    warning records are forgotten so the next approach warns again.

    Parameters
    ----------
    settings:
        User settings supplying ``early_warning_enabled`` and ``warning_distances``.
    cooldown_ms:
        Minimum time between repeated warnings for the same key.
    clear_margin_m:
        Extra distance beyond the largest warning distance before resetting.
    """

    def __init__(
        self,
        settings: NotificationSettings,
        cooldown_ms: int = 120_000,
        clear_margin_m: float = 500.0,
    ) -> None:
        self.settings = settings
        self._cooldown = CooldownTracker(cooldown_ms)
        self._clear_margin_m = clear_margin_m
        self._warned: dict[str, set[float]] = {}

    def check(self, sectors: list[Sector], fix: LocationFix) -> list[SectorApproaching]:
        if not self.settings.early_warning_enabled:
            return []

        distances = parse_warning_distances(self.settings.warning_distances)
        clear_beyond = max(distances) + self._clear_margin_m
        events: list[SectorApproaching] = []

        for sector in sectors:
            dist = haversine_m(fix.latitude, fix.longitude, sector.start.lat, sector.start.lng)
            if dist > clear_beyond:
                for d in self._warned.pop(sector.id, set()):
                    self._cooldown.clear(_key(sector.id, d))
                continue

            for d in distances:
                if dist > d:
                    continue
                key = _key(sector.id, d)
                if not self._cooldown.can_fire(key, fix.timestamp_ms):
                    continue
                self._cooldown.mark_fired(key, fix.timestamp_ms)
                self._warned.setdefault(sector.id, set()).add(d)
                events.append(
                    SectorApproaching(
                        sector_id=sector.id,
                        sector_name=sector.name,
                        speed_limit=sector.speed_limit,
                        distance=d,
                    )
                )
        return events


def _key(sector_id: str, distance: float) -> str:
    return f"warning-{sector_id}-{distance:g}"
