"""
Clock Tick Driver: re-runs a callback at a fixed cadence.

Runs on a daemon thread and sleeps on a threading.Event, so stop() wakes
it immediately. Callback failures are printed and counted; the loop keeps
going. Once stop() has returned, the callback is never invoked again.
"""

import threading
import traceback
from typing import Callable, Optional

from dosewatch.config import TICK_INTERVAL_SEC


class TickDriver:
    def __init__(self, callback: Callable[[], object], interval_sec: float = TICK_INTERVAL_SEC,
                 name: str = "dosewatch-tick"):
        if interval_sec <= 0:
            raise ValueError(f"interval_sec must be > 0, got {interval_sec!r}")
        self._callback = callback
        self.interval_sec = interval_sec
        self.name = name
        self._wake = threading.Event()
        self._run_lock = threading.RLock()
        self._stopped = False
        self._thread: Optional[threading.Thread] = None
        self.ticks = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stopped

    def start(self) -> None:
        if self._stopped:
            raise RuntimeError("TickDriver cannot be restarted after stop()")
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()
        print(f"[{self.name}] started (every {self.interval_sec}s)", flush=True)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Stop ticking. Waits for an in-flight tick to finish."""
        with self._run_lock:
            already = self._stopped
            self._stopped = True
        self._wake.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        if not already and thread is not None:
            print(f"[{self.name}] stopped after {self.ticks} ticks ({self.failures} failures)", flush=True)

    def tick_once(self) -> bool:
        """Run one tick now. Returns False if stopped or the callback failed."""
        with self._run_lock:
            if self._stopped:
                return False
            self.ticks += 1
            try:
                self._callback()
            except Exception:
                self.failures += 1
                print(f"[{self.name}] tick failed, keeping previous state:", flush=True)
                traceback.print_exc()
                return False
            return True

    def _loop(self) -> None:
        while not self._wake.wait(self.interval_sec):
            self.tick_once()
