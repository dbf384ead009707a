from __future__ import annotations

import threading
import time

import pytest

from dosewatch.core.ticker import TickDriver


def test_tick_once_runs_callback() -> None:
    calls = []
    driver = TickDriver(lambda: calls.append(1), interval_sec=60)
    assert driver.tick_once() is True
    assert calls == [1]
    assert driver.ticks == 1


def test_failures_are_suppressed_and_counted() -> None:
    calls = []

    def flaky() -> None:
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")

    driver = TickDriver(flaky, interval_sec=60)
    assert driver.tick_once() is False
    assert driver.tick_once() is True
    assert driver.failures == 1
    assert len(calls) == 2


def test_thread_ticks_and_stops_cleanly() -> None:
    reached = threading.Event()
    calls = []

    def callback() -> None:
        calls.append(1)
        if len(calls) >= 3:
            reached.set()

    driver = TickDriver(callback, interval_sec=0.01)
    driver.start()
    assert reached.wait(5)
    driver.stop()
    assert not driver.running
    count = len(calls)
    time.sleep(0.05)
    assert len(calls) == count
    assert driver.tick_once() is False


def test_loop_survives_failing_callback() -> None:
    reached = threading.Event()
    calls = []

    def callback() -> None:
        calls.append(1)
        if len(calls) >= 3:
            reached.set()
        raise ValueError("always fails")

    driver = TickDriver(callback, interval_sec=0.01)
    driver.start()
    try:
        assert reached.wait(5)
    finally:
        driver.stop()
    assert driver.failures >= 3


def test_start_is_idempotent() -> None:
    driver = TickDriver(lambda: None, interval_sec=60)
    driver.start()
    first = driver._thread
    driver.start()
    assert driver._thread is first
    driver.stop()


def test_stop_before_start_and_twice() -> None:
    driver = TickDriver(lambda: None, interval_sec=60)
    driver.stop()
    driver.stop()
    with pytest.raises(RuntimeError):
        driver.start()


def test_interval_must_be_positive() -> None:
    with pytest.raises(ValueError):
        TickDriver(lambda: None, interval_sec=0)
