"""Dosewatch FastAPI application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from dosewatch.api.routes import router
from dosewatch.config import DB_PATH, TICK_INTERVAL_SEC
from dosewatch.core.database import (
    close_connection,
    init_db,
    insert_dose_event,
    load_dose_events,
    load_settings,
    save_settings,
)
from dosewatch.core.dosage_engine import DosageEngine
from dosewatch.core.dose_log import Clock, DoseEventLog, utc_now
from dosewatch.core.errors import ConfigurationError
from dosewatch.core.settings import Settings, SettingsStore


def build_engine(clock: Clock = utc_now, tick_interval_sec: float = TICK_INTERVAL_SEC) -> DosageEngine:
    """Engine backed by the SQLite store: persisted settings and dose history are reloaded."""
    init_db()
    defaults = Settings()
    settings = load_settings(defaults)
    try:
        settings.validate()
    except ConfigurationError as e:
        print(f"[dosewatch-db] Ignoring stored settings: {e}", flush=True)
        settings = defaults

    store = SettingsStore(settings, persist=save_settings)
    events = load_dose_events()
    log = DoseEventLog(clock=clock, events=events, sink=insert_dose_event)
    print(f"[dosewatch-engine] Loaded {len(events)} dose events from {DB_PATH}", flush=True)
    return DosageEngine(store, log, clock=clock, tick_interval_sec=tick_interval_sec)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    engine = build_engine()
    engine.start()
    app.state.engine = engine
    print("[dosewatch-api] Dosewatch API started", flush=True)

    yield

    print("[dosewatch-api] Shutting down Dosewatch API...", flush=True)
    engine.stop()
    app.state.engine = None
    close_connection()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Dosewatch API",
        description="Dose logging and safe-interval countdown",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app


app = create_app()
