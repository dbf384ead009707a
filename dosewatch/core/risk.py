"""
Risk Classifier: time-based dosing risk.

Pure function of (now, last dose timestamp, settings):

    elapsed   = max(0, now - last_dose)          -- clock skew fails safe
    interval  = safe_interval_minutes * 60000 ms
    lead      = warning lead (default interval / 12), clamped to [0, interval]

    elapsed >= interval            -> safe,    remaining 0
    elapsed >= interval - lead     -> warning, remaining interval - elapsed
    otherwise                      -> danger,  remaining interval - elapsed

Thresholds are inclusive on the safer side so the exact boundary instant
resolves to the less restrictive level.

Arithmetic is done in integer microseconds of the timedelta; the remaining
time is rounded up to whole milliseconds so a non-safe state never shows 0.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from dosewatch.config import MAX_SAFE_INTERVAL_MINUTES, WARNING_LEAD_FRACTION
from dosewatch.core.errors import ConfigurationError
from dosewatch.core.settings import Settings

MS_PER_MINUTE = 60_000
_US_PER_MS = 1_000
_ONE_US = timedelta(microseconds=1)


class RiskLevel(str, Enum):
    SAFE = "safe"
    WARNING = "warning"
    DANGER = "danger"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {RiskLevel.SAFE: 0, RiskLevel.WARNING: 1, RiskLevel.DANGER: 2}


@dataclass(frozen=True)
class RiskState:
    risk_level: RiskLevel
    time_remaining_ms: int
    computed_at: Optional[datetime] = None
    last_dose_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "risk_level": self.risk_level.value,
            "time_remaining_ms": self.time_remaining_ms,
            "computed_at": self.computed_at.isoformat() if self.computed_at else None,
            "last_dose_at": self.last_dose_at.isoformat() if self.last_dose_at else None,
        }


# ── Policy arithmetic ────────────────────────────────────────────────

def safe_interval_ms(settings: Settings) -> float:
    """Safe interval in ms. Raises ConfigurationError if not a positive number."""
    minutes = settings.safe_interval_minutes
    if isinstance(minutes, bool) or not isinstance(minutes, (int, float)):
        raise ConfigurationError(f"safe_interval_minutes is not a number: {minutes!r}")
    if not math.isfinite(minutes) or minutes <= 0:
        raise ConfigurationError(f"safe_interval_minutes must be > 0, got {minutes!r}")
    if minutes > MAX_SAFE_INTERVAL_MINUTES:
        raise ConfigurationError(
            f"safe_interval_minutes must be <= {MAX_SAFE_INTERVAL_MINUTES:g}, got {minutes!r}"
        )
    return minutes * MS_PER_MINUTE


def warning_lead_ms(settings: Settings) -> float:
    """Warning window length in ms, clamped to [0, safe interval]."""
    interval = safe_interval_ms(settings)
    lead_minutes = settings.warning_lead_minutes
    if lead_minutes is None:
        return interval * WARNING_LEAD_FRACTION
    if isinstance(lead_minutes, bool) or not isinstance(lead_minutes, (int, float)) \
            or math.isnan(lead_minutes):
        raise ConfigurationError(f"warning_lead_minutes is not a number: {lead_minutes!r}")
    return min(interval, max(0.0, lead_minutes * MS_PER_MINUTE))


def next_safe_at(last_dose_at: Optional[datetime], settings: Settings) -> Optional[datetime]:
    """Instant the safe window opens after the given dose (None past datetime.max)."""
    if last_dose_at is None:
        return None
    try:
        return last_dose_at + timedelta(milliseconds=safe_interval_ms(settings))
    except OverflowError:
        return None


# ── Classifier ───────────────────────────────────────────────────────

def classify(
    now: datetime,
    last_dose_at: Optional[datetime],
    settings: Settings,
) -> RiskState:
    """
    Classify the dosing risk at `now`.

    A broken timing policy (safe interval <= 0 or above the maximum) never yields a countdown:
    the result is danger with 0 remaining.
    """
    try:
        interval_us = safe_interval_ms(settings) * _US_PER_MS
        lead_us = warning_lead_ms(settings) * _US_PER_MS
    except ConfigurationError as e:
        print(f"[dosewatch-risk] Invalid timing policy, reporting danger: {e}", flush=True)
        return RiskState(RiskLevel.DANGER, 0, now, last_dose_at)

    if last_dose_at is None:
        return RiskState(RiskLevel.SAFE, 0, now, None)

    elapsed_us = max(0, (now - last_dose_at) // _ONE_US)

    if elapsed_us >= interval_us:
        return RiskState(RiskLevel.SAFE, 0, now, last_dose_at)

    remaining_ms = math.ceil((interval_us - elapsed_us) / _US_PER_MS)
    if elapsed_us >= interval_us - lead_us:
        level = RiskLevel.WARNING
    else:
        level = RiskLevel.DANGER
    return RiskState(level, remaining_ms, now, last_dose_at)
