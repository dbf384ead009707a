from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from dosewatch.config import MAX_SAFE_INTERVAL_MINUTES
from dosewatch.core.risk import (
    RiskLevel,
    classify,
    next_safe_at,
    safe_interval_ms,
    warning_lead_ms,
)
from dosewatch.core.settings import Settings

from conftest import T0


def test_no_dose_is_safe(settings: Settings) -> None:
    state = classify(T0, None, settings)
    assert state.risk_level == RiskLevel.SAFE
    assert state.time_remaining_ms == 0
    assert state.last_dose_at is None


@pytest.mark.parametrize(
    ("elapsed", "level", "remaining_ms"),
    [
        (timedelta(hours=5), RiskLevel.DANGER, 3_600_000),
        (timedelta(hours=5, minutes=35), RiskLevel.WARNING, 1_500_000),
        (timedelta(hours=6), RiskLevel.SAFE, 0),
    ],
)
def test_six_hour_interval_scenario(settings, elapsed, level, remaining_ms) -> None:
    state = classify(T0 + elapsed, T0, settings)
    assert state.risk_level == level
    assert state.time_remaining_ms == remaining_ms


def test_right_after_dose_is_danger_with_full_interval(settings: Settings) -> None:
    state = classify(T0, T0, settings)
    assert state.risk_level == RiskLevel.DANGER
    assert state.time_remaining_ms == 360 * 60_000


def test_warning_boundary_is_inclusive(settings: Settings) -> None:
    at_boundary = classify(T0 + timedelta(hours=5, minutes=30), T0, settings)
    just_before = classify(T0 + timedelta(hours=5, minutes=30) - timedelta(milliseconds=1), T0, settings)
    assert at_boundary.risk_level == RiskLevel.WARNING
    assert at_boundary.time_remaining_ms == 30 * 60_000
    assert just_before.risk_level == RiskLevel.DANGER


def test_safe_boundary_is_inclusive(settings: Settings) -> None:
    state = classify(T0 + timedelta(minutes=360), T0, settings)
    assert state.risk_level == RiskLevel.SAFE
    assert state.time_remaining_ms == 0


def test_long_after_dose_stays_safe(settings: Settings) -> None:
    state = classify(T0 + timedelta(days=3), T0, settings)
    assert state.risk_level == RiskLevel.SAFE
    assert state.time_remaining_ms == 0


def test_remaining_rounds_up_to_whole_ms(settings: Settings) -> None:
    state = classify(T0 + timedelta(microseconds=1), T0, settings)
    assert state.time_remaining_ms == 360 * 60_000
    almost = classify(T0 + timedelta(minutes=360) - timedelta(microseconds=1), T0, settings)
    assert almost.risk_level == RiskLevel.WARNING
    assert almost.time_remaining_ms == 1


def test_clock_skew_fails_safe(settings: Settings) -> None:
    state = classify(T0 - timedelta(hours=1), T0, settings)
    assert state.risk_level == RiskLevel.DANGER
    assert state.time_remaining_ms == 360 * 60_000
    assert state.time_remaining_ms >= 0


def test_classify_is_pure(settings: Settings) -> None:
    now = T0 + timedelta(hours=2, seconds=17)
    assert classify(now, T0, settings) == classify(now, T0, settings)


def test_levels_never_regress_as_time_passes(settings: Settings) -> None:
    seen = []
    previous = RiskLevel.DANGER.severity
    for minute in range(0, 361):
        level = classify(T0 + timedelta(minutes=minute), T0, settings).risk_level
        assert level.severity <= previous
        previous = level.severity
        if not seen or seen[-1] != level:
            seen.append(level)
    assert seen == [RiskLevel.DANGER, RiskLevel.WARNING, RiskLevel.SAFE]


def test_default_warning_lead_is_one_twelfth() -> None:
    s = Settings(default_dosage=1, safe_interval_minutes=120, warning_lead_minutes=None)
    assert warning_lead_ms(s) == pytest.approx(10 * 60_000)
    state = classify(T0 + timedelta(minutes=110), T0, s)
    assert state.risk_level == RiskLevel.WARNING


def test_warning_lead_is_clamped_to_interval() -> None:
    s = Settings(default_dosage=1, safe_interval_minutes=60, warning_lead_minutes=600)
    assert warning_lead_ms(s) == safe_interval_ms(s)
    # whole interval is the warning window
    assert classify(T0, T0, s).risk_level == RiskLevel.WARNING


def test_zero_warning_lead_skips_warning() -> None:
    s = Settings(default_dosage=1, safe_interval_minutes=60, warning_lead_minutes=0)
    state = classify(T0 + timedelta(minutes=59, seconds=59), T0, s)
    assert state.risk_level == RiskLevel.DANGER


@pytest.mark.parametrize("interval", [0, -30, float("nan"), float("inf")])
def test_invalid_interval_reports_danger(interval) -> None:
    s = Settings(default_dosage=1, safe_interval_minutes=interval, warning_lead_minutes=None)
    state = classify(T0 + timedelta(hours=10), T0, s)
    assert state.risk_level == RiskLevel.DANGER
    assert state.time_remaining_ms == 0


def test_invalid_interval_reports_danger_without_doses() -> None:
    s = Settings(default_dosage=1, safe_interval_minutes=0, warning_lead_minutes=None)
    assert classify(T0, None, s).risk_level == RiskLevel.DANGER


def test_next_safe_at(settings: Settings) -> None:
    assert next_safe_at(None, settings) is None
    assert next_safe_at(T0, settings) == T0 + timedelta(hours=6)


def test_state_to_dict(settings: Settings) -> None:
    data = classify(T0 + timedelta(hours=1), T0, settings).to_dict()
    assert data["risk_level"] == "danger"
    assert data["last_dose_at"] == T0.isoformat()
    assert data["time_remaining_ms"] == 5 * 3_600_000


@pytest.mark.parametrize("interval", [MAX_SAFE_INTERVAL_MINUTES + 1, 1e10, 1e305])
def test_interval_above_maximum_reports_danger(interval) -> None:
    s = Settings(default_dosage=1, safe_interval_minutes=interval, warning_lead_minutes=None)
    state = classify(T0 + timedelta(hours=1), T0, s)
    assert state.risk_level == RiskLevel.DANGER
    assert state.time_remaining_ms == 0


def test_next_safe_at_past_datetime_max_is_none() -> None:
    s = Settings(default_dosage=1, safe_interval_minutes=MAX_SAFE_INTERVAL_MINUTES)
    near_end = datetime.max.replace(tzinfo=timezone.utc) - timedelta(days=1)
    assert next_safe_at(near_end, s) is None
