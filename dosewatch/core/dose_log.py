"""
Dose Event Log: append-only, timestamp-ordered record of doses.

Readers get an immutable tuple snapshot; append swaps in a new tuple
under a lock, so a reader on another thread (tick driver, API worker)
never sees a half-written log.
"""

import math
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, Iterator, Optional

from dosewatch.core.errors import InvalidAmount

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DoseEvent:
    amount: float
    timestamp: datetime
    note: Optional[str] = None
    id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "amount": self.amount,
            "note": self.note,
            "timestamp": self.timestamp.isoformat(),
        }


def validate_amount(amount) -> float:
    """Return amount as float, or raise InvalidAmount."""
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise InvalidAmount(amount)
    if not math.isfinite(amount) or amount <= 0:
        raise InvalidAmount(amount)
    return float(amount)


def _clean_note(note: Optional[str]) -> Optional[str]:
    if note is None:
        return None
    note = str(note).strip()
    return note or None


class DoseEventLog:
    """
    Ordered sequence of DoseEvent.

    `sink` is called with each new event before it becomes visible; it may
    return a replacement event (e.g. with the database row id filled in).
    If the sink raises, the log is left untouched.
    """

    def __init__(
        self,
        clock: Clock = utc_now,
        events: Iterable[DoseEvent] = (),
        sink: Optional[Callable[[DoseEvent], Optional[DoseEvent]]] = None,
    ):
        self._clock = clock
        self._sink = sink
        self._events: tuple[DoseEvent, ...] = tuple(sorted(events, key=lambda e: e.timestamp))
        self._lock = threading.Lock()

    def append(self, amount, note: Optional[str] = None) -> DoseEvent:
        value = validate_amount(amount)
        with self._lock:
            event = DoseEvent(amount=value, timestamp=self._clock(), note=_clean_note(note))
            if self._sink is not None:
                event = self._sink(event) or event
            self._events = self._events + (event,)
        return event

    def latest(self) -> Optional[DoseEvent]:
        events = self._events
        return events[-1] if events else None

    def events(self) -> tuple[DoseEvent, ...]:
        return self._events

    def since(self, instant: datetime) -> list[DoseEvent]:
        return [e for e in self._events if e.timestamp >= instant]

    def total_since(self, instant: datetime) -> float:
        return sum(e.amount for e in self.since(instant))

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[DoseEvent]:
        return iter(self._events)

    def __bool__(self) -> bool:
        return bool(self._events)
