"""Average, predicted and recommended speed calculations (pure functions)."""

from __future__ import annotations

from collections.abc import Sequence


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean; 0.0 for an empty sequence."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def predicted_average(
    readings: Sequence[float],
    recent_window: int = 10,
    session_weight: float = 0.7,
) -> float:
    """Blend the session average with the average of the last *recent_window* readings.

    ``session_weight * session_avg + (1 - session_weight) * recent_avg``
    """
    if not readings:
        return 0.0
    recent = readings[-recent_window:] if recent_window > 0 else readings
    return session_weight * mean(readings) + (1.0 - session_weight) * mean(recent)


def recommended_speed(
    speed_limit: float,
    current_average: float,
    total_distance_m: float,
    distance_traveled_m: float,
    min_remaining_m: float = 50.0,
    recovery_band_kmh: float = 20.0,
) -> int | None:
    """Constant speed over the remaining distance that lands the final average on the limit.

    Solves ``v = (limit * total - avg * covered) / remaining`` (distances in km).

    Returns None when no recommendation applies: the average is within the
    limit, less than *min_remaining_m* is left, or recovery is infeasible
    (``v`` below ``max(0, limit - recovery_band_kmh)``).  Otherwise ``v`` is
    clamped to ``[floor, limit)`` and rounded.
    """
    if current_average <= speed_limit:
        return None

    remaining_m = total_distance_m - distance_traveled_m
    if remaining_m < min_remaining_m:
        return None

    total_km = total_distance_m / 1000.0
    covered_km = distance_traveled_m / 1000.0
    remaining_km = remaining_m / 1000.0

    required = (speed_limit * total_km - current_average * covered_km) / remaining_km
    floor = max(0.0, speed_limit - recovery_band_kmh)
    if required < 0 or required < floor:
        return None

    value = round(min(required, speed_limit))
    if value >= speed_limit:
        value = int(max(floor, speed_limit - 1))
    return max(int(round(floor)), int(value))
