"""
Configuration and persistence.

- SimulationConfig from a JSON file (unknown keys ignored)
- Monitor settings (rhythm, conditions, target vitals): save, load,
  export and import
- Alarm thresholds: load on start, save on demand

The default loaders never raise: a missing or broken file falls back to
factory defaults with a logged warning. Settings import is strict and
raises ConfigError, since it is an explicit operator action.
"""

import json
import logging
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from .enums import RhythmType
from .errors import ConfigError
from .state import (
    AlarmThreshold,
    ConditionSet,
    ConditionsOverlay,
    SHORT_VITAL_KEYS,
    SimulationConfig,
    TargetVitals,
    VitalsOverlay,
    canonical_vital_key,
)
from .utils import finite_or, parse_bool
from monisim.monitors.alarms import default_thresholds

logger = logging.getLogger(__name__)

SETTINGS_VERSION = "1.0"


def _read_json(path) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a JSON object")
    return data


def _write_json(path, data: dict):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def load_config(path=None) -> SimulationConfig:
    if path is None:
        return SimulationConfig()
    try:
        data = _read_json(path)
    except (OSError, ValueError, ConfigError) as e:
        logger.warning("Could not load config %s (%s); using defaults", path, e)
        return SimulationConfig()
    known = {f.name for f in fields(SimulationConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning("Ignoring unknown config keys: %s", ", ".join(unknown))
    return SimulationConfig(**{k: v for k, v in data.items() if k in known})


# --- Monitor settings ---

@dataclass
class MonitorSettings:
    rhythm: RhythmType = RhythmType.NSR
    conditions: ConditionSet = field(default_factory=ConditionSet)
    target: TargetVitals = field(default_factory=TargetVitals)

    def to_dict(self) -> dict:
        params = {SHORT_VITAL_KEYS[k]: v for k, v in self.target.as_dict().items()}
        conditions = {
            "pvc": self.conditions.ectopic_enabled,
            "stElev": self.conditions.st_deviation_mm,
            "tInv": self.conditions.t_wave_inverted,
            "wideQRS": self.conditions.qrs_widened,
            "noise": self.conditions.noise_level,
        }
        return {"rhythm": self.rhythm.value, "conditions": conditions, "params": params}

    @classmethod
    def from_dict(cls, data: dict) -> "MonitorSettings":
        """Build settings from a dict holding rhythm, conditions and params."""
        if not isinstance(data, dict) or not all(data.get(k) for k in ("rhythm", "conditions", "params")):
            raise ConfigError("Invalid settings file format")
        return cls(
            rhythm=RhythmType.parse(data["rhythm"]),
            conditions=ConditionsOverlay.from_dict(data["conditions"]).apply_to(ConditionSet()),
            target=VitalsOverlay.from_dict(data["params"]).apply_to(TargetVitals()),
        )


def save_settings(path, settings: MonitorSettings) -> bool:
    data = settings.to_dict()
    data["savedAt"] = datetime.now(timezone.utc).isoformat()
    try:
        _write_json(path, data)
    except OSError:
        logger.exception("Failed to save settings to %s", path)
        return False
    return True


def load_settings(path) -> Optional[MonitorSettings]:
    """Saved settings, or None when absent or unreadable."""
    if not Path(path).exists():
        return None
    try:
        return MonitorSettings.from_dict(_read_json(path))
    except (OSError, ValueError, ConfigError) as e:
        logger.warning("Failed to load saved settings from %s: %s", path, e)
        return None


def clear_settings(path) -> bool:
    try:
        Path(path).unlink(missing_ok=True)
    except OSError:
        logger.exception("Failed to clear settings at %s", path)
        return False
    return True


def export_settings(path, settings: MonitorSettings):
    data = {"version": SETTINGS_VERSION, "exportedAt": datetime.now(timezone.utc).isoformat()}
    data.update(settings.to_dict())
    _write_json(path, data)


def import_settings(path) -> MonitorSettings:
    try:
        data = _read_json(path)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Failed to read settings file {path}: {e}") from e
    return MonitorSettings.from_dict(data)


# --- Alarm thresholds ---

def thresholds_from_dict(data: dict) -> Dict[str, AlarmThreshold]:
    """Parse {vital: {low, high, enabled}}; unknown vitals are skipped."""
    thresholds = {}
    for key, raw in (data or {}).items():
        vital = canonical_vital_key(key)
        if vital is None or not isinstance(raw, dict):
            logger.warning("Skipping alarm threshold entry %r", key)
            continue
        thresholds[vital] = AlarmThreshold(
            low=finite_or(raw.get("low"), None),
            high=finite_or(raw.get("high"), None),
            enabled=parse_bool(raw.get("enabled", True), True),
        )
    return thresholds


def thresholds_to_dict(thresholds: Dict[str, AlarmThreshold]) -> dict:
    return {
        SHORT_VITAL_KEYS.get(vital, vital): {"low": t.low, "high": t.high, "enabled": t.enabled}
        for vital, t in thresholds.items()
    }


def load_alarm_thresholds(path=None) -> Dict[str, AlarmThreshold]:
    """
    Stored thresholds merged over the factory defaults.
    Falls back to the defaults alone if the file is missing or broken.
    """
    merged = default_thresholds()
    if path is None or not Path(path).exists():
        return merged
    try:
        merged.update(thresholds_from_dict(_read_json(path)))
    except (OSError, ValueError, ConfigError) as e:
        logger.warning("Could not load alarm thresholds from %s (%s); using defaults", path, e)
        return default_thresholds()
    return merged


def save_alarm_thresholds(path, thresholds: Dict[str, AlarmThreshold]) -> bool:
    try:
        _write_json(path, thresholds_to_dict(thresholds))
    except OSError:
        logger.exception("Failed to save alarm thresholds to %s", path)
        return False
    return True
