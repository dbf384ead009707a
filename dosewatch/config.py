"""
Dosewatch Configuration.
All settings via environment variables with sensible defaults.
"""

import os
from pathlib import Path

# --- Paths ---
BASE_DIR = Path(os.getenv("DOSEWATCH_DATA_DIR", "/data"))
DB_PATH = BASE_DIR / "dosewatch.db"

# --- Auth ---
API_KEY = os.getenv("DOSEWATCH_API_KEY", "")

# --- Dashboard ---
API_URL = os.getenv("DOSEWATCH_API_URL", "http://localhost:8000")

# --- Timezone ---
TIMEZONE = os.getenv("TZ", "Europe/Zurich")

# --- Dosing policy (defaults; persisted settings take precedence) ---
DEFAULT_DOSAGE: float = float(os.getenv("DOSEWATCH_DEFAULT_DOSAGE", "1.0"))
DOSE_UNIT = os.getenv("DOSEWATCH_DOSE_UNIT", "ml")
SAFE_INTERVAL_MINUTES: float = float(os.getenv("DOSEWATCH_SAFE_INTERVAL_MINUTES", "360"))  # 6h
MAX_SAFE_INTERVAL_MINUTES: float = 10 * 366 * 24 * 60  # 10 years, keeps datetime arithmetic in range

# Empty -> warning window is WARNING_LEAD_FRACTION of the safe interval
_warning_lead_env = os.getenv("DOSEWATCH_WARNING_LEAD_MINUTES", "")
WARNING_LEAD_MINUTES = float(_warning_lead_env) if _warning_lead_env else None
WARNING_LEAD_FRACTION = 1.0 / 12.0

# --- Clock tick driver ---
TICK_INTERVAL_SEC: float = float(os.getenv("DOSEWATCH_TICK_INTERVAL_SEC", "1.0"))

# --- Reporting window for cumulative totals ---
ROLLING_TOTAL_HOURS = 24
