from dataclasses import dataclass, field, fields, replace, asdict
from typing import Dict, Optional

from .constants import (
    INITIAL_BEAT_MS,
    NOISE_LEVEL_MAX,
    ST_DEVIATION_MAX_MM,
)
from .enums import RhythmType
from .utils import clamp, finite_or, parse_bool

# Canonical vital keys, in display order.
VITAL_KEYS = (
    "heart_rate",
    "spo2",
    "resp_rate",
    "systolic_bp",
    "diastolic_bp",
    "temperature",
    "etco2",
)

# Short keys used by case files, saved settings and alarm configs.
LEGACY_VITAL_KEYS = {
    "hr": "heart_rate",
    "spo2": "spo2",
    "rr": "resp_rate",
    "bpSys": "systolic_bp",
    "sbp": "systolic_bp",
    "bpDia": "diastolic_bp",
    "dbp": "diastolic_bp",
    "temp": "temperature",
    "etco2": "etco2",
}
SHORT_VITAL_KEYS = {
    "heart_rate": "hr",
    "spo2": "spo2",
    "resp_rate": "rr",
    "systolic_bp": "bpSys",
    "diastolic_bp": "bpDia",
    "temperature": "temp",
    "etco2": "etco2",
}

LEGACY_CONDITION_KEYS = {
    "pvc": "ectopic_enabled",
    "stElev": "st_deviation_mm",
    "tInv": "t_wave_inverted",
    "wideQRS": "qrs_widened",
    "noise": "noise_level",
}

# Displayed value for a vital that cannot be measured (shown as "?").
UNMEASURABLE = None


def canonical_vital_key(key: str) -> Optional[str]:
    """Map a canonical or legacy vital key to its canonical name."""
    if key in VITAL_KEYS:
        return key
    return LEGACY_VITAL_KEYS.get(key)


@dataclass
class SimulationConfig:
    """Configuration for the simulation engine and its session timers."""
    # Rolling sample history per channel.
    buffer_size: int = 1000

    # Timer intervals (ms).
    animation_interval_ms: int = 16
    scenario_interval_ms: int = 1000
    jitter_interval_ms: int = 2000
    alarm_interval_ms: int = 2000

    # Alarm behaviour.
    debounce_seconds: float = 5.0
    snooze_minutes: int = 5

    # Event log batching (seconds between flushes).
    event_batch_seconds: float = 10.0

    # Runtime settings.
    rng_seed: Optional[int] = None
    audio_enabled: bool = True


@dataclass
class ConditionSet:
    """Pathology modifiers applied on top of the rhythm."""
    ectopic_enabled: bool = False
    st_deviation_mm: float = 0.0
    t_wave_inverted: bool = False
    qrs_widened: bool = False
    noise_level: float = 0  # 0-10, fractional while a scenario interpolates

    def __post_init__(self):
        self.ectopic_enabled = parse_bool(self.ectopic_enabled, False)
        self.t_wave_inverted = parse_bool(self.t_wave_inverted, False)
        self.qrs_widened = parse_bool(self.qrs_widened, False)
        st = finite_or(self.st_deviation_mm, 0.0)
        self.st_deviation_mm = clamp(st, -ST_DEVIATION_MAX_MM, ST_DEVIATION_MAX_MM)
        noise = finite_or(self.noise_level, 0.0)
        self.noise_level = clamp(noise, 0, NOISE_LEVEL_MAX)


@dataclass
class TargetVitals:
    """Ground-truth vitals the physics engine runs from."""
    heart_rate: float = 80.0
    spo2: float = 98.0
    resp_rate: float = 16.0
    systolic_bp: float = 120.0
    diastolic_bp: float = 80.0
    temperature: float = 37.0
    etco2: float = 38.0

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass
class DisplayedVitals:
    """Noisy snapshot shown on the numerics. None means unmeasurable."""
    heart_rate: Optional[float] = None
    spo2: Optional[float] = None
    resp_rate: Optional[float] = None
    systolic_bp: Optional[float] = None
    diastolic_bp: Optional[float] = None
    temperature: Optional[float] = None
    etco2: Optional[float] = None

    @classmethod
    def from_target(cls, target: TargetVitals) -> "DisplayedVitals":
        return cls(**target.as_dict())

    def as_dict(self) -> Dict[str, Optional[float]]:
        return asdict(self)

    def format(self, key: str) -> str:
        value = getattr(self, key)
        if value is UNMEASURABLE:
            return "?"
        if key == "temperature":
            return f"{value:.1f}"
        return f"{int(round(value))}"


@dataclass
class VitalsOverlay:
    """Partial vitals update. None fields inherit the previous value."""
    heart_rate: Optional[float] = None
    spo2: Optional[float] = None
    resp_rate: Optional[float] = None
    systolic_bp: Optional[float] = None
    diastolic_bp: Optional[float] = None
    temperature: Optional[float] = None
    etco2: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "VitalsOverlay":
        values = {}
        for key, raw in (data or {}).items():
            name = canonical_vital_key(key)
            if name is None or raw is None:
                continue
            num = finite_or(raw, None)
            if num is not None:
                values[name] = num
        return cls(**values)

    def explicit(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}

    def apply_to(self, target: TargetVitals) -> TargetVitals:
        return replace(target, **self.explicit())

    def is_empty(self) -> bool:
        return not self.explicit()


BOOLEAN_CONDITIONS = {"ectopic_enabled", "t_wave_inverted", "qrs_widened"}


@dataclass
class ConditionsOverlay:
    """Partial condition update. None fields inherit the previous value."""
    ectopic_enabled: Optional[bool] = None
    st_deviation_mm: Optional[float] = None
    t_wave_inverted: Optional[bool] = None
    qrs_widened: Optional[bool] = None
    noise_level: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ConditionsOverlay":
        values = {}
        valid = {f.name for f in fields(cls)}
        for key, raw in (data or {}).items():
            name = LEGACY_CONDITION_KEYS.get(key, key)
            if name not in valid or raw is None:
                continue
            value = parse_bool(raw) if name in BOOLEAN_CONDITIONS else finite_or(raw, None)
            if value is not None:
                values[name] = value
        return cls(**values)

    def explicit(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}

    def apply_to(self, conditions: ConditionSet) -> ConditionSet:
        return replace(conditions, **self.explicit())

    def is_empty(self) -> bool:
        return not self.explicit()


@dataclass
class CardiacState:
    phase: float = 0.0
    next_beat_duration_ms: float = INITIAL_BEAT_MS
    is_next_beat_ectopic: bool = False


@dataclass
class RespiratoryState:
    phase: float = 0.0


@dataclass
class AlarmThreshold:
    """One side may be None: no bound on that side."""
    low: Optional[float] = None
    high: Optional[float] = None
    enabled: bool = True


@dataclass
class SimulationState:
    """
    Shared state owned by the engine.
    All four periodic activities read and write it through engine methods.
    """
    time_ms: float = 0.0
    rhythm: RhythmType = RhythmType.NSR
    conditions: ConditionSet = field(default_factory=ConditionSet)
    target: TargetVitals = field(default_factory=TargetVitals)
    displayed: DisplayedVitals = field(default_factory=DisplayedVitals)
    cardiac: CardiacState = field(default_factory=CardiacState)
    respiratory: RespiratoryState = field(default_factory=RespiratoryState)

    # Waveform snapshots (instantaneous values; history lives in the buffers).
    ecg_voltage: float = 0.0
    pleth_voltage: float = 0.0
    resp_voltage: float = 0.0
