"""Notification content for tracker events.

Builds what the driver is told and how urgently; delivery, permissions and
haptics belong to the host platform.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sector_tracker.config import NotificationSettings
from sector_tracker.tracking.models import (
    AverageViolation,
    SectorApproaching,
    SectorEntered,
    SectorExited,
    SectorProgress,
    SpeedViolation,
    TrackingEvent,
)

_VIBRATION_PATTERN = (0, 250, 250, 250)


@dataclass(frozen=True)
class Notification:
    """Platform-neutral notification content."""

    title: str
    body: str
    data: dict = field(default_factory=dict)
    sound: bool = True
    vibrate: tuple[int, ...] | None = None
    priority: str = "high"
    """``'default'``, ``'high'`` or ``'max'``."""


def _distance_text(meters: float) -> str:
    if meters >= 1000:
        return f"{meters / 1000:g} км"
    return f"{meters:.0f} м"


class NotificationComposer:
    """Turns :class:`TrackingEvent` objects into :class:`Notification` content.

    Returns None for every event while notifications are disabled, and for
    approach warnings while early warnings are disabled.
    """

    def __init__(self, settings: NotificationSettings | None = None) -> None:
        self.settings = settings or NotificationSettings()

    def compose(self, event: TrackingEvent) -> Notification | None:
        if not self.settings.notifications_enabled:
            return None

        if isinstance(event, SectorEntered):
            return self._make(
                f"Влязохте в сектор: {event.sector_name}",
                f"Ограничение: {event.speed_limit:g} км/ч\n"
                f"Текуща скорост: {event.current_speed:.0f} км/ч",
                event,
            )

        if isinstance(event, SectorProgress):
            pct = round(event.threshold_crossed * 100)
            if event.exceeding:
                advice = (
                    f"Препоръчителна скорост: ≤{event.recommended_speed} км/ч"
                    if event.recommended_speed is not None
                    else "Намалете! Средната скорост не може да падне под лимита."
                )
                body = (
                    f"Средна скорост: {event.average_speed:.1f} км/ч\n"
                    f"Превишавате с {event.average_speed - event.speed_limit:.1f} км/ч!\n"
                    f"{advice}"
                )
            else:
                body = (
                    f"Средна скорост: {event.average_speed:.1f} км/ч\n"
                    "Всичко е наред - под лимита сте"
                )
            return self._make(f"{pct}% от сектор {event.sector_name}", body, event)

        if isinstance(event, SectorExited):
            verdict = "Превишена средна скорост!" if event.exceeded else "В рамките на ограничението"
            return self._make(
                f"Излязохте от сектор: {event.sector_name}",
                f"Средна скорост: {event.average_speed:.1f} км/ч\n{verdict}",
                event,
            )

        if isinstance(event, SpeedViolation):
            return self._make(
                "Превишена скорост!",
                f"{event.current_speed:.0f} км/ч (лимит: {event.speed_limit:g} км/ч)\n"
                f"Средна: {event.average_speed:.1f} км/ч",
                event,
                priority="max",
            )

        if isinstance(event, AverageViolation):
            if event.recommended_speed is not None:
                hint = f"Намалете до {event.recommended_speed} км/ч за компенсация"
            else:
                hint = "Карайте много бавно!"
            return self._make(
                "Превишена средна скорост!",
                f"Средна: {event.average_speed:.1f} км/ч\n{hint}",
                event,
            )

        if isinstance(event, SectorApproaching):
            if not self.settings.early_warning_enabled:
                return None
            return self._make(
                f"Приближавате сектор: {event.sector_name}",
                f"След {_distance_text(event.distance)} започва сектор "
                f"с ограничение {event.speed_limit:g} км/ч",
                event,
            )

        return None

    def _make(
        self,
        title: str,
        body: str,
        event: TrackingEvent,
        priority: str = "high",
    ) -> Notification:
        return Notification(
            title=title,
            body=body,
            data=event.to_dict(),
            sound=self.settings.sound_enabled,
            vibrate=_VIBRATION_PATTERN if self.settings.vibration_enabled else None,
            priority=priority,
        )
