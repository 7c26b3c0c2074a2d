"""
Session event log.

Discrete monitor events (significant vital changes, alarms, scenario steps,
rhythm changes, case loads, settings changes) are queued in memory and
handed to a sink in batches. Persistence is best effort: a failing sink is
logged and its batch is put back at the head of the queue for the next
flush. Nothing here may interrupt the simulation.
"""

import json
import logging
import threading
from collections import deque
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional

from .state import SHORT_VITAL_KEYS, canonical_vital_key

logger = logging.getLogger(__name__)

# Minimum absolute change that counts as a vital change worth logging.
SIGNIFICANT_CHANGE = {
    "heart_rate": 10,
    "spo2": 5,
    "systolic_bp": 10,
    "diastolic_bp": 10,
    "resp_rate": 3,
    "temperature": 0.5,
}
DEFAULT_SIGNIFICANT_CHANGE = 5

# Events kept in memory while the sink is unavailable.
MAX_PENDING_EVENTS = 1000

VITAL_CHANGE = "vital_change"
ALARM = "alarm"
SCENARIO_STEP = "scenario_step"
ECG_CHANGE = "ecg_change"
CASE_LOAD = "case_load"
SETTINGS_CHANGE = "settings_change"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class MonitorEvent:
    event_type: str
    description: str
    vital_sign: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    timestamp: str = field(default_factory=_utc_now)

    def to_dict(self) -> dict:
        return asdict(self)


def is_significant(vital: str, old_value, new_value) -> bool:
    if old_value is None or new_value is None:
        # Entering or leaving "unmeasurable" is always worth a line.
        return old_value is not new_value
    name = canonical_vital_key(vital) or vital
    limit = SIGNIFICANT_CHANGE.get(name, DEFAULT_SIGNIFICANT_CHANGE)
    return abs(float(new_value) - float(old_value)) >= limit


class EventLogger:
    """
    Batches monitor events for a sink callable.

    The sink receives a list of event dicts. It may raise; the batch is then
    re-queued ahead of newer events. flush() is driven by the session's
    batch timer (10 s by default) and once more on shutdown. Without a sink
    a flush discards the batch. The queue holds at most max_pending events;
    past that the oldest are dropped.
    """
    def __init__(self, sink: Callable[[List[dict]], None] = None, max_pending: int = MAX_PENDING_EVENTS):
        self.sink = sink
        self.max_pending = max(1, int(max_pending))
        self._queue = deque(maxlen=self.max_pending)
        self._lock = threading.Lock()
        self.dropped = 0

    @property
    def pending(self) -> int:
        return len(self._queue)

    def add(self, event: MonitorEvent):
        with self._lock:
            if len(self._queue) == self.max_pending:
                self._count_dropped(1)
            self._queue.append(event)

    def flush(self) -> int:
        """Send queued events to the sink. Returns the number delivered."""
        with self._lock:
            if not self._queue:
                return 0
            batch = list(self._queue)
            self._queue.clear()
        if self.sink is None:
            return 0
        try:
            self.sink([e.to_dict() for e in batch])
        except Exception:
            logger.warning("Failed to send event batch of %d; re-queued", len(batch), exc_info=True)
            with self._lock:
                merged = batch + list(self._queue)
                overflow = len(merged) - self.max_pending
                if overflow > 0:
                    self._count_dropped(overflow)
                    merged = merged[overflow:]
                self._queue = deque(merged, maxlen=self.max_pending)
            return 0
        return len(batch)

    def drain(self) -> List[MonitorEvent]:
        """Take every queued event without sending it."""
        with self._lock:
            batch = list(self._queue)
            self._queue.clear()
        return batch

    def _count_dropped(self, count: int):
        if self.dropped == 0:
            logger.warning("Event queue full (%d); dropping oldest events", self.max_pending)
        self.dropped += count

    # --- Typed helpers ---

    def log_vital_change(self, vital: str, old_value, new_value) -> bool:
        if not is_significant(vital, old_value, new_value):
            return False
        short = SHORT_VITAL_KEYS.get(vital, vital)
        self.add(MonitorEvent(
            VITAL_CHANGE,
            f"{short.upper()} changed from {_fmt(old_value)} to {_fmt(new_value)}",
            vital_sign=short,
            old_value=_fmt(old_value),
            new_value=_fmt(new_value),
        ))
        return True

    def log_alarm(self, record):
        short = SHORT_VITAL_KEYS.get(record.vital, record.vital)
        self.add(MonitorEvent(
            ALARM,
            f"Alarm: {short.upper()} {record.side.value} threshold ({_fmt(record.threshold)}) "
            f"- actual: {_fmt(record.value)}",
            vital_sign=short,
            old_value=_fmt(record.threshold),
            new_value=_fmt(record.value),
        ))

    def log_scenario_step(self, label: str, scenario_name: str):
        self.add(MonitorEvent(SCENARIO_STEP, f'Scenario "{scenario_name}": {label}'))

    def log_rhythm_change(self, old_rhythm, new_rhythm):
        self.add(MonitorEvent(
            ECG_CHANGE,
            f"ECG pattern changed: {old_rhythm.value} -> {new_rhythm.value}",
            old_value=old_rhythm.value,
            new_value=new_rhythm.value,
        ))

    def log_case_load(self, case_name: str):
        self.add(MonitorEvent(CASE_LOAD, f"Case loaded: {case_name}"))

    def log_settings_change(self, setting: str, old_value, new_value):
        self.add(MonitorEvent(
            SETTINGS_CHANGE,
            f"Setting changed: {setting} = {new_value}",
            old_value=str(old_value),
            new_value=str(new_value),
        ))


def _fmt(value) -> str:
    if value is None:
        return "?"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class JsonlEventSink:
    """Appends each event of a batch as one JSON line."""
    def __init__(self, path, session_id: str = None):
        self.path = Path(path)
        self.session_id = session_id

    def __call__(self, events: List[dict]):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            for event in events:
                if self.session_id is not None:
                    event = {"session_id": self.session_id, **event}
                f.write(json.dumps(event) + "\n")
