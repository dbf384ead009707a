from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from dosewatch.core import database
from dosewatch.core.dosage_engine import DosageEngine
from dosewatch.core.settings import Settings, SettingsStore

T0 = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(default_dosage=1.5, safe_interval_minutes=360, warning_lead_minutes=30)


@pytest.fixture
def engine(clock: FakeClock, settings: Settings):
    eng = DosageEngine(settings_store=SettingsStore(settings), clock=clock, tick_interval_sec=3600)
    yield eng
    eng.stop()


@pytest.fixture
def tmp_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    db_path = tmp_path / "dosewatch.db"
    monkeypatch.setattr(database, "DB_PATH", db_path)
    database.init_db()
    yield db_path
    database.close_connection()
