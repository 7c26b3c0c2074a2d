import logging
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, NamedTuple, Optional

from monisim.core.constants import ALARM_DEBOUNCE_SEC, DEFAULT_SNOOZE_MIN
from monisim.core.enums import BoundSide
from monisim.core.state import AlarmThreshold, DisplayedVitals, canonical_vital_key
from monisim.core.utils import finite_or

logger = logging.getLogger(__name__)


def default_thresholds() -> Dict[str, AlarmThreshold]:
    """Factory alarm limits."""
    return {
        "heart_rate": AlarmThreshold(low=50, high=120),
        "spo2": AlarmThreshold(low=90, high=None),
        "systolic_bp": AlarmThreshold(low=90, high=180),
        "diastolic_bp": AlarmThreshold(low=50, high=110),
        "resp_rate": AlarmThreshold(low=8, high=30),
        "temperature": AlarmThreshold(low=36, high=38.5),
        "etco2": AlarmThreshold(low=30, high=50),
    }


class AlarmKey(NamedTuple):
    """A vital alarms independently on its low and high side."""
    vital: str
    side: BoundSide

    def __str__(self) -> str:
        return f"{self.vital}_{self.side.value}"

    @classmethod
    def parse(cls, key) -> "AlarmKey":
        if isinstance(key, AlarmKey):
            return key
        if isinstance(key, tuple):
            return cls(key[0], BoundSide(key[1]))
        vital, _, side = str(key).rpartition("_")
        name = canonical_vital_key(vital)
        if name is None:
            raise ValueError(f"Unknown alarm key: {key}")
        return cls(name, BoundSide(side))


@dataclass
class AlarmRecord:
    """One entry of the alarm history."""
    vital: str
    side: BoundSide
    threshold: float
    value: float
    timestamp: float
    acknowledged: bool = False
    acknowledged_at: Optional[float] = None
    snoozed: bool = False
    snoozed_at: Optional[float] = None
    snooze_until: Optional[float] = None
    snooze_minutes: Optional[float] = None

    @property
    def key(self) -> AlarmKey:
        return AlarmKey(self.vital, self.side)

    @property
    def description(self) -> str:
        return (f"Alarm: {self.vital.upper()} {self.side.value} threshold "
                f"({self.threshold}) - actual: {self.value}")


class AlarmSystem:
    """
    Alarm supervisor for the displayed numerics.

    Evaluated on its own timer. A breach fires once, then stays active
    without re-logging until the debounce window has elapsed. Snoozed keys
    are ignored until their expiry. Acknowledging only clears the active
    flag; a persisting condition fires again after the debounce window.
    """
    def __init__(self, thresholds: Dict[str, AlarmThreshold] = None,
                 debounce_sec: float = ALARM_DEBOUNCE_SEC,
                 snooze_minutes: int = DEFAULT_SNOOZE_MIN,
                 clock: Callable[[], float] = time.time,
                 on_alarm: Callable[[AlarmRecord], None] = None,
                 on_active_changed: Callable[["AlarmSystem"], None] = None):
        self.thresholds = thresholds or default_thresholds()
        self.debounce_sec = debounce_sec
        self.snooze_minutes = snooze_minutes
        self.clock = clock
        self.on_alarm = on_alarm
        self.on_active_changed = on_active_changed

        self.active_alarms: set = set()
        self.last_fired: Dict[AlarmKey, float] = {}
        self.snoozed_until: Dict[AlarmKey, float] = {}
        # Acknowledged keys stay out of the active set until they re-fire or clear.
        self.acknowledged_keys: set = set()
        self.history: List[AlarmRecord] = []
        self.muted = False

    # --- Evaluation ---

    def _sweep_snoozes(self, now: float):
        for key, until in list(self.snoozed_until.items()):
            if now >= until:
                del self.snoozed_until[key]
                logger.debug("Snooze expired for %s", key)

    def _breach(self, vital: str, value: float):
        """Return (side, limit) of the breached bound, or None. High wins."""
        threshold = self.thresholds.get(vital)
        if threshold is None or not threshold.enabled:
            return None
        breach = None
        if threshold.low is not None and value < threshold.low:
            breach = (BoundSide.LOW, threshold.low)
        if threshold.high is not None and value > threshold.high:
            breach = (BoundSide.HIGH, threshold.high)
        return breach

    def update(self, displayed: DisplayedVitals, now: float = None) -> frozenset:
        """
        Evaluate displayed vitals against the thresholds.
        Returns the set of active alarm keys.
        """
        now = self.clock() if now is None else now
        self._sweep_snoozes(now)

        previous = set(self.active_alarms)
        current = set()
        breached = set()
        values = displayed.as_dict() if isinstance(displayed, DisplayedVitals) else dict(displayed)

        for vital, raw in values.items():
            vital = canonical_vital_key(vital)
            if vital is None:
                continue
            value = finite_or(raw, None)
            if value is None:
                # Unmeasurable: nothing to compare.
                continue
            breach = self._breach(vital, value)
            if breach is None:
                continue

            side, limit = breach
            key = AlarmKey(vital, side)
            if key in self.snoozed_until:
                continue
            breached.add(key)

            last = self.last_fired.get(key)
            if last is not None and (now - last) < self.debounce_sec:
                if key not in self.acknowledged_keys:
                    current.add(key)
                continue

            current.add(key)
            self.acknowledged_keys.discard(key)
            self.last_fired[key] = now
            self._fire(key, limit, value, now)

        self.acknowledged_keys &= breached
        self.active_alarms = current
        if current != previous:
            self._notify_active_changed()
        return frozenset(self.active_alarms)

    def _fire(self, key: AlarmKey, limit: float, value: float, now: float):
        record = AlarmRecord(key.vital, key.side, limit, value, now)
        self.history.append(record)
        logger.info("Alarm fired: %s=%s (%s limit %s)", key.vital, value, key.side.value, limit)
        if self.on_alarm is not None:
            try:
                self.on_alarm(record)
            except Exception:
                logger.exception("Alarm listener failed for %s", key)

    def _notify_active_changed(self):
        if self.on_active_changed is not None:
            try:
                self.on_active_changed(self)
            except Exception:
                logger.exception("Alarm state listener failed")

    # --- Operator actions ---

    def acknowledge(self, key, now: float = None):
        key = AlarmKey.parse(key)
        now = self.clock() if now is None else now
        self.active_alarms.discard(key)
        self.acknowledged_keys.add(key)
        for record in self.history:
            if record.key == key and not record.acknowledged:
                record.acknowledged = True
                record.acknowledged_at = now
        self._notify_active_changed()

    def acknowledge_all(self, now: float = None):
        now = self.clock() if now is None else now
        self.acknowledged_keys.update(self.active_alarms)
        self.active_alarms.clear()
        for record in self.history:
            if not record.acknowledged:
                record.acknowledged = True
                record.acknowledged_at = now
        self._notify_active_changed()

    def snooze(self, key, minutes: float = None, now: float = None):
        key = AlarmKey.parse(key)
        self._snooze_keys([key], minutes, now)

    def snooze_all(self, minutes: float = None, now: float = None):
        self._snooze_keys(list(self.active_alarms), minutes, now)

    def _snooze_keys(self, keys, minutes, now):
        duration = minutes or self.snooze_minutes
        now = self.clock() if now is None else now
        until = now + duration * 60.0
        for key in keys:
            self.snoozed_until[key] = until
            self.active_alarms.discard(key)
        for record in self.history:
            if record.key in keys and not record.snoozed:
                record.snoozed = True
                record.snoozed_at = now
                record.snooze_until = until
                record.snooze_minutes = duration
        self._notify_active_changed()

    def set_muted(self, muted: bool):
        self.muted = bool(muted)
        self._notify_active_changed()

    def set_snooze_duration(self, minutes: int):
        self.snooze_minutes = max(1, int(minutes))

    def set_threshold(self, vital: str, low: float = None, high: float = None, enabled: bool = True):
        name = canonical_vital_key(vital)
        if name is None:
            raise ValueError(f"Unknown vital: {vital}")
        self.thresholds[name] = AlarmThreshold(low=low, high=high, enabled=enabled)

    def replace_thresholds(self, thresholds: Dict[str, AlarmThreshold]):
        merged = default_thresholds()
        merged.update({k: replace(v) for k, v in thresholds.items()})
        self.thresholds = merged

    def reset_to_defaults(self):
        self.thresholds = default_thresholds()

    # --- Queries ---

    @property
    def should_sound(self) -> bool:
        return bool(self.active_alarms) and not self.muted

    def snoozed(self, now: float = None) -> List[dict]:
        now = self.clock() if now is None else now
        return [
            {"key": str(k), "until": until, "remaining_min": max(0.0, (until - now) / 60.0)}
            for k, until in self.snoozed_until.items()
        ]

    def alarm_flags(self) -> Dict[str, Dict[str, bool]]:
        """Active alarms as {vital: {'low': bool, 'high': bool}} for display."""
        flags: Dict[str, Dict[str, bool]] = {}
        for key in self.active_alarms:
            entry = flags.setdefault(key.vital, {"low": False, "high": False})
            entry[key.side.value] = True
        return flags
