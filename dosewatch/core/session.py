"""Session Tracker: a session is active from the first recorded dose on."""

from datetime import datetime
from typing import Optional

from dosewatch.core.dose_log import DoseEventLog


def is_active(log: DoseEventLog) -> bool:
    return len(log) > 0


def session_started_at(log: DoseEventLog) -> Optional[datetime]:
    events = log.events()
    return events[0].timestamp if events else None
