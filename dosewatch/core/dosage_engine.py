"""
Dosage Engine: facade over the settings store, dose log, session tracker,
risk classifier and tick driver.

Derived state is never updated incrementally. Every read, every dose and
every tick classifies again from (now, latest dose, settings), so the
last-write-wins replacement of the cached RiskState is always safe.
"""

import threading
import traceback
from datetime import timedelta
from typing import Callable, Optional

from dosewatch.config import ROLLING_TOTAL_HOURS, TICK_INTERVAL_SEC
from dosewatch.core import display, session
from dosewatch.core.dose_log import Clock, DoseEvent, DoseEventLog, utc_now
from dosewatch.core.errors import ConfigurationError
from dosewatch.core.risk import RiskLevel, RiskState, classify, next_safe_at, safe_interval_ms
from dosewatch.core.settings import Settings, SettingsStore
from dosewatch.core.ticker import TickDriver

Listener = Callable[[RiskState], None]


class DosageEngine:
    """
    Single-user dosing tracker.

    `clock` is used for classification; an injected `log` keeps its own
    clock for event timestamps, so pass the same clock to both in tests.
    """

    def __init__(
        self,
        settings_store: Optional[SettingsStore] = None,
        log: Optional[DoseEventLog] = None,
        clock: Clock = utc_now,
        tick_interval_sec: float = TICK_INTERVAL_SEC,
    ):
        self._clock = clock
        self.settings_store = settings_store or SettingsStore()
        self.log = log if log is not None else DoseEventLog(clock=clock)
        self._listeners: list[Listener] = []
        self._listeners_lock = threading.Lock()
        self._stopped = False
        # Fail safe until the first successful classification
        self._state = RiskState(RiskLevel.DANGER, 0)
        self._evaluate()
        self._ticker = TickDriver(self.recompute, tick_interval_sec)
        self._unsubscribe_settings = self.settings_store.subscribe(self._on_settings_changed)

    # ── Commands ─────────────────────────────────────────────────────

    def add_dosage(self, amount, note: Optional[str] = None) -> DoseEvent:
        """Record a dose and recompute immediately. Raises InvalidAmount."""
        event = self.log.append(amount, note)
        state = self.recompute()
        print(
            f"[dosewatch-engine] Dose {event.amount:g} logged at {event.timestamp.isoformat()} "
            f"-> {state.risk_level.value}",
            flush=True,
        )
        return event

    def update_settings(self, **changes) -> Settings:
        """Apply a settings change. Raises ConfigurationError."""
        return self.settings_store.update(**changes)

    def recompute(self) -> RiskState:
        """Classify now and notify subscribers."""
        state = self._evaluate()
        self._notify(state)
        return state

    # ── Lifecycle ────────────────────────────────────────────────────

    def start(self) -> None:
        self._ticker.start()

    def stop(self) -> None:
        """Tear down: no ticks and no notifications after this returns."""
        self._stopped = True
        self._ticker.stop()
        self._unsubscribe_settings()

    @property
    def ticker(self) -> TickDriver:
        return self._ticker

    # ── Subscriptions ────────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._listeners_lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    # ── Queries ──────────────────────────────────────────────────────

    def current_state(self) -> RiskState:
        return self._evaluate()

    def current_risk_level(self) -> RiskLevel:
        return self._evaluate().risk_level

    def current_time_remaining(self) -> int:
        """Milliseconds until the safe window opens (0 when safe)."""
        return self._evaluate().time_remaining_ms

    def is_session_active(self) -> bool:
        return session.is_active(self.log)

    def current_settings(self) -> Settings:
        return self.settings_store.get()

    def snapshot(self) -> dict:
        """Full derived state as a JSON-ready dict."""
        state = self._evaluate()
        settings = self.settings_store.get()
        latest = self.log.latest()
        active = session.is_active(self.log)
        started = session.session_started_at(self.log)

        try:
            interval_ms = safe_interval_ms(settings)
            next_safe = next_safe_at(latest.timestamp if latest else None, settings)
        except ConfigurationError:
            interval_ms = 0.0
            next_safe = None

        now = state.computed_at or self._clock()
        window_start = now - timedelta(hours=ROLLING_TOTAL_HOURS)

        warning = None
        if state.risk_level != RiskLevel.SAFE:
            warning = {
                "title": display.warning_title(state.risk_level),
                "message": display.warning_message(state.risk_level, state.time_remaining_ms),
            }

        return {
            **state.to_dict(),
            "risk_label": display.risk_label(state.risk_level),
            "countdown": display.format_countdown(state.time_remaining_ms),
            "button_label": display.button_label(active, state.time_remaining_ms),
            "button_hint": display.button_hint(active),
            "progress": display.interval_progress(state.time_remaining_ms, interval_ms)
            if active else 0.0,
            "warning": warning,
            "session_active": active,
            "session_started_at": started.isoformat() if started else None,
            "last_dose": latest.to_dict() if latest else None,
            "next_safe_at": next_safe.isoformat() if next_safe else None,
            "dose_count": len(self.log),
            "rolling_total": round(self.log.total_since(window_start), 3),
            "rolling_total_hours": ROLLING_TOTAL_HOURS,
            "settings": settings.to_dict(),
        }

    # ── Internals ────────────────────────────────────────────────────

    def _evaluate(self) -> RiskState:
        settings = self.settings_store.get()
        latest = self.log.latest()
        try:
            state = classify(self._clock(), latest.timestamp if latest else None, settings)
        except Exception:
            print("[dosewatch-engine] Classification failed, keeping last state:", flush=True)
            traceback.print_exc()
            return self._state
        self._state = state
        return state

    def _notify(self, state: RiskState) -> None:
        if self._stopped:
            return
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(state)
            except Exception:
                print("[dosewatch-engine] Listener failed:", flush=True)
                traceback.print_exc()

    def _on_settings_changed(self, settings: Settings) -> None:
        print(f"[dosewatch-engine] Settings changed: {settings.to_dict()}", flush=True)
        self.recompute()
