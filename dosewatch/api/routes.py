"""
FastAPI API routes for Dosewatch.
"""

import sqlite3
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import BaseModel, Field

from dosewatch.config import API_KEY, DOSE_UNIT
from dosewatch.core import session
from dosewatch.core.dosage_engine import DosageEngine
from dosewatch.core.errors import ConfigurationError, InvalidAmount

router = APIRouter(prefix="/api")


# --- Auth ---

def verify_api_key(x_api_key: str = Header(default="")):
    if API_KEY and x_api_key != API_KEY:
        raise HTTPException(status_code=401, detail="Invalid API key")


def get_engine(request: Request) -> DosageEngine:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Engine not running")
    return engine


# --- Models ---

class DosageRequest(BaseModel):
    amount: Optional[float] = None
    note: Optional[str] = Field(None, max_length=1000)


class SettingsUpdateRequest(BaseModel):
    default_dosage: Optional[float] = None
    safe_interval_minutes: Optional[float] = None
    # Explicit null -> default fraction of the safe interval
    warning_lead_minutes: Optional[float] = None


# --- Endpoints ---

@router.post("/dosage", dependencies=[Depends(verify_api_key)])
def log_dosage(req: DosageRequest, engine: DosageEngine = Depends(get_engine)):
    """Log a dose. Without an amount the configured default dosage is used."""
    amount = req.amount if req.amount is not None else engine.current_settings().default_dosage
    try:
        event = engine.add_dosage(amount, req.note)
    except InvalidAmount as e:
        raise HTTPException(status_code=422, detail=str(e))
    except sqlite3.Error as e:
        print(f"[dosewatch-api] Dose not saved: {e}", flush=True)
        raise HTTPException(status_code=503, detail="Dose could not be saved")
    return {"event": event.to_dict(), "unit": DOSE_UNIT, "state": engine.snapshot(), "status": "ok"}


@router.get("/dosage", dependencies=[Depends(verify_api_key)])
def get_dosages(since: Optional[str] = None, engine: DosageEngine = Depends(get_engine)):
    """Query dose events, optionally only those at or after `since` (ISO 8601)."""
    if since:
        try:
            instant = datetime.fromisoformat(since)
        except ValueError:
            raise HTTPException(status_code=422, detail=f"Invalid timestamp: {since}")
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        events = engine.log.since(instant)
    else:
        events = engine.log.events()
    return [e.to_dict() for e in events]


@router.get("/dosage/latest", dependencies=[Depends(verify_api_key)])
def get_latest_dosage(engine: DosageEngine = Depends(get_engine)):
    """Get the most recent dose."""
    latest = engine.log.latest()
    if latest is None:
        return {"found": False}
    return {"found": True, **latest.to_dict()}


@router.get("/risk", dependencies=[Depends(verify_api_key)])
def get_risk(engine: DosageEngine = Depends(get_engine)):
    """Current risk level, countdown and UI labels."""
    return engine.snapshot()


@router.get("/session", dependencies=[Depends(verify_api_key)])
def get_session(engine: DosageEngine = Depends(get_engine)):
    started = session.session_started_at(engine.log)
    return {
        "active": engine.is_session_active(),
        "started_at": started.isoformat() if started else None,
        "dose_count": len(engine.log),
    }


@router.get("/settings", dependencies=[Depends(verify_api_key)])
def get_settings(engine: DosageEngine = Depends(get_engine)):
    return {**engine.current_settings().to_dict(), "unit": DOSE_UNIT}


@router.put("/settings", dependencies=[Depends(verify_api_key)])
def update_settings(req: SettingsUpdateRequest, engine: DosageEngine = Depends(get_engine)):
    """Partial settings update. Only the fields present in the body change."""
    changes = req.model_dump(exclude_unset=True)
    try:
        settings = engine.update_settings(**changes)
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except sqlite3.Error as e:
        print(f"[dosewatch-api] Settings not saved: {e}", flush=True)
        raise HTTPException(status_code=503, detail="Settings could not be saved")
    print(f"[dosewatch-api] Settings updated: {changes}", flush=True)
    return {**settings.to_dict(), "unit": DOSE_UNIT, "status": "ok"}


@router.get("/status")
def status(request: Request):
    """Health check endpoint."""
    engine = getattr(request.app.state, "engine", None)
    return {
        "service": "dosewatch",
        "status": "ok" if engine is not None else "starting",
        "version": "1.0.0",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "ticker_running": bool(engine and engine.ticker.running),
    }
