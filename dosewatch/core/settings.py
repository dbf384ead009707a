"""
Settings Store: the user-configurable dosing policy.

The engine reads an immutable Settings snapshot at evaluation time.
Updates come from outside (API, dashboard) through SettingsStore.update,
which validates the new snapshot before swapping it in.
"""

import math
import threading
import traceback
from dataclasses import asdict, dataclass, replace
from typing import Callable, Optional

from dosewatch.config import (
    DEFAULT_DOSAGE,
    MAX_SAFE_INTERVAL_MINUTES,
    SAFE_INTERVAL_MINUTES,
    WARNING_LEAD_MINUTES,
)
from dosewatch.core.errors import ConfigurationError

SETTINGS_FIELDS = ("default_dosage", "safe_interval_minutes", "warning_lead_minutes")


def _is_positive_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


@dataclass(frozen=True)
class Settings:
    default_dosage: float = DEFAULT_DOSAGE
    safe_interval_minutes: float = SAFE_INTERVAL_MINUTES
    # None -> default fraction of the safe interval
    warning_lead_minutes: Optional[float] = WARNING_LEAD_MINUTES

    def validate(self) -> "Settings":
        """Raise ConfigurationError unless the policy invariants hold."""
        if not _is_positive_number(self.safe_interval_minutes):
            raise ConfigurationError(
                f"safe_interval_minutes must be > 0, got {self.safe_interval_minutes!r}"
            )
        if self.safe_interval_minutes > MAX_SAFE_INTERVAL_MINUTES:
            raise ConfigurationError(
                f"safe_interval_minutes must be <= {MAX_SAFE_INTERVAL_MINUTES:g}, "
                f"got {self.safe_interval_minutes!r}"
            )
        if not _is_positive_number(self.default_dosage):
            raise ConfigurationError(
                f"default_dosage must be > 0, got {self.default_dosage!r}"
            )
        lead = self.warning_lead_minutes
        if lead is not None:
            if isinstance(lead, bool) or not isinstance(lead, (int, float)) or not math.isfinite(lead):
                raise ConfigurationError(f"warning_lead_minutes must be a number, got {lead!r}")
            if lead < 0:
                raise ConfigurationError(f"warning_lead_minutes must be >= 0, got {lead!r}")
        return self

    def to_dict(self) -> dict:
        return asdict(self)


class SettingsStore:
    """
    Holds the current Settings snapshot and notifies on change.

    `persist` is called with a validated snapshot before it is swapped in;
    if it raises, the update is rejected and the old snapshot stays live.
    """

    def __init__(self, settings: Optional[Settings] = None,
                 persist: Optional[Callable[[Settings], None]] = None):
        self._settings = (settings or Settings()).validate()
        self._persist = persist
        self._lock = threading.Lock()
        self._subscribers: list[Callable[[Settings], None]] = []

    def get(self) -> Settings:
        return self._settings

    def update(self, **changes) -> Settings:
        """
        Apply a partial update. Unknown fields and invalid values raise
        ConfigurationError and leave the current snapshot in place, as does
        a failing persist callback (its exception propagates).
        """
        unknown = set(changes) - set(SETTINGS_FIELDS)
        if unknown:
            raise ConfigurationError(f"Unknown settings: {', '.join(sorted(unknown))}")
        with self._lock:
            updated = replace(self._settings, **changes).validate()
            if self._persist is not None:
                self._persist(updated)
            self._settings = updated
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(updated)
            except Exception:
                print("[dosewatch-settings] Subscriber failed:", flush=True)
                traceback.print_exc()
        return updated

    def subscribe(self, callback: Callable[[Settings], None]) -> Callable[[], None]:
        """Register a change callback. Returns a function that unregisters it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe
