"""Average, predicted and recommended speed."""

from __future__ import annotations

import pytest

from sector_tracker.tracking.estimation import mean, predicted_average, recommended_speed


def test_mean():
    assert mean([60, 80, 100]) == 80
    assert mean([]) == 0.0


def test_predicted_average_blends_session_and_recent():
    readings = [100.0] * 10 + [50.0] * 10
    # session 75, recent 50 -> 0.7 * 75 + 0.3 * 50
    assert predicted_average(readings) == pytest.approx(67.5)


def test_predicted_average_short_session_equals_mean():
    assert predicted_average([60.0, 80.0]) == pytest.approx(70.0)
    assert predicted_average([]) == 0.0


def test_recommended_speed_feasible():
    """limit 90, 10 km sector, 5 km covered at 110 -> (900 - 550) / 5 = 70."""
    assert recommended_speed(90, 110, 10_000, 5_000) == 70


def test_recommended_speed_infeasible_when_required_negative():
    assert recommended_speed(90, 110, 10_000, 9_000) is None


def test_recommended_speed_none_when_within_limit():
    assert recommended_speed(90, 85, 10_000, 5_000) is None


def test_recommended_speed_none_near_end():
    assert recommended_speed(90, 110, 10_000, 9_960) is None


def test_recommended_speed_below_floor_is_infeasible():
    # (900 - 120 * 5) / 5 = 60, below the 70 km/h floor
    assert recommended_speed(90, 120, 10_000, 5_000) is None


def test_recommended_speed_stays_below_limit():
    """At the very start the required speed rounds to the limit; it is nudged below."""
    assert recommended_speed(90, 100, 2_000, 0) == 89
