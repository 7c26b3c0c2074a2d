import logging
import time
from dataclasses import replace
from typing import Callable, Dict, Optional, Union

import numpy as np

from .config import thresholds_from_dict
from .enums import RhythmType
from .event_log import EventLogger
from .state import (
    AlarmThreshold,
    ConditionSet,
    ConditionsOverlay,
    DisplayedVitals,
    SimulationConfig,
    SimulationState,
    TargetVitals,
    VitalsOverlay,
    VITAL_KEYS,
)
from monisim.physiology.cardiac import CardiacClock
from monisim.physiology.respiration import RespiratoryClock
from monisim.monitors.alarms import AlarmRecord, AlarmSystem
from monisim.monitors.buffers import ChannelBuffers
from monisim.monitors.ecg import ECGMonitor
from monisim.monitors.jitter import VitalJitter
from monisim.monitors.resp import synthesize_resp
from monisim.monitors.spo2 import SpO2Monitor
from monisim.monitors.tone import ToneController
from monisim.scenarios.base import Scenario, scenario_from_dict
from monisim.scenarios.player import ScenarioFrame, ScenarioPlayer
from monisim.scenarios.templates import build_custom_trend, get_all_templates

logger = logging.getLogger(__name__)

# Vitals applied with a rhythm when the operator picks it from the rhythm selector.
RHYTHM_PRESETS: Dict[RhythmType, dict] = {
    RhythmType.NSR: {"heart_rate": 80, "spo2": 98},
    RhythmType.AFIB: {"heart_rate": 110, "spo2": 95},
    RhythmType.VTACH: {"heart_rate": 160, "spo2": 88, "systolic_bp": 90},
}

# One-click ECG patterns: (rhythm, heart rate, conditions).
ECG_PATTERN_PRESETS: Dict[str, tuple] = {
    "normal": (RhythmType.NSR, 75, {}),
    "stemi": (RhythmType.NSR, 95, {"st_deviation_mm": 2}),
    "nstemi": (RhythmType.NSR, 88, {"st_deviation_mm": -1, "t_wave_inverted": True}),
    "angina": (RhythmType.NSR, 92, {"st_deviation_mm": -0.5}),
    "hyperkalemia": (RhythmType.NSR, 70, {"qrs_widened": True}),
    "hypokalemia": (RhythmType.NSR, 82, {"st_deviation_mm": -0.5, "t_wave_inverted": True}),
    "pericarditis": (RhythmType.NSR, 88, {"st_deviation_mm": 1}),
    "lbbb": (RhythmType.NSR, 78, {"qrs_widened": True}),
    "pvcs": (RhythmType.NSR, 85, {"ectopic_enabled": True}),
    "vtach": (RhythmType.VTACH, 160, {"qrs_widened": True}),
    "afib": (RhythmType.AFIB, 110, {}),
}


class SimulationEngine:
    """
    Patient monitor simulation core.

    Owns the SimulationState and every subsystem that reads or writes it.
    Four periodic activities drive it, each through one method:

    - animation_tick(dt_ms): phase clocks and one sample per channel
    - scenario_tick(): one second of scenario playback
    - jitter_tick(): displayed numerics from the target vitals
    - alarm_tick(): threshold supervision of the displayed numerics

    The activities are scheduled by MonitorSession (Qt timers) or by any
    caller that wants deterministic stepping (tests, headless runs). All
    operator writes also go through engine methods, so nothing else mutates
    the state.
    """
    def __init__(self, config: SimulationConfig = None,
                 rng: np.random.Generator = None,
                 thresholds: Dict[str, AlarmThreshold] = None,
                 event_logger: EventLogger = None,
                 tone_sink=None,
                 clock: Callable[[], float] = time.time):
        self.config = config or SimulationConfig()
        self.rng = rng if rng is not None else np.random.default_rng(self.config.rng_seed)
        self.clock = clock
        self.state = SimulationState()
        self.state.displayed = DisplayedVitals.from_target(self.state.target)
        self.running = False

        # Physiology
        self.cardiac = CardiacClock(self.rng, self.state.cardiac)
        self.respiration = RespiratoryClock(self.state.respiratory)

        # Monitors
        self.ecg = ECGMonitor(self.rng)
        self.spo2 = SpO2Monitor()
        self.buffers = ChannelBuffers(self.config.buffer_size)
        self.jitter = VitalJitter(self.rng)
        self.events = event_logger or EventLogger()
        self.tone = ToneController(tone_sink)
        self.alarms = AlarmSystem(
            thresholds=thresholds,
            debounce_sec=self.config.debounce_seconds,
            snooze_minutes=self.config.snooze_minutes,
            clock=clock,
            on_alarm=self._on_alarm,
            on_active_changed=self.tone.on_alarm_state,
        )

        # Scenarios
        self.player = ScenarioPlayer(step_seconds=self.config.scenario_interval_ms / 1000.0)
        self.scenarios: Dict[str, Scenario] = {s.id: s for s in get_all_templates()}

        # Case baseline for reset_to_case_defaults()
        self.case_name: Optional[str] = None
        self._case_baseline: Optional[tuple] = None

        # Change listeners (session restarts its timers on these).
        self.rhythm_listeners = []
        self.threshold_listeners = []

    # --- Lifecycle ---

    def start(self):
        """Start the simulation loop."""
        self.running = True

    def stop(self):
        """Stop the simulation."""
        self.running = False
        self.tone.shutdown()

    # --- Periodic activities ---

    @property
    def effective_heart_rate(self) -> float:
        """Heart rate driving the waveforms: no perfusing rate in arrest."""
        if self.state.rhythm.is_arrest:
            return 0.0
        return self.state.target.heart_rate

    def animation_tick(self, dt_ms: float):
        """
        Advance both phase clocks by dt_ms and append one sample per channel.
        """
        if not self.running:
            return
        s = self.state
        hr = self.effective_heart_rate

        self.cardiac.step(dt_ms, s.rhythm, s.target.heart_rate, s.conditions.ectopic_enabled)
        resp_phase = self.respiration.step(dt_ms, s.target.resp_rate)

        s.ecg_voltage = self.ecg.sample(
            s.cardiac.phase, s.rhythm, s.conditions, hr,
            is_ectopic=s.cardiac.is_next_beat_ectopic,
        )
        s.pleth_voltage = self.spo2.sample(s.cardiac.phase, resp_phase, hr)
        s.resp_voltage = synthesize_resp(resp_phase)
        self.buffers.push(s.ecg_voltage, s.pleth_voltage, s.resp_voltage)

        if dt_ms and dt_ms > 0:
            s.time_ms += dt_ms

    def scenario_tick(self) -> ScenarioFrame:
        """One scenario step; its values are live before the next animation tick."""
        frame = self.player.tick(self.state.target, self.state.conditions)
        self._apply_frame(frame)
        return frame

    def jitter_tick(self) -> DisplayedVitals:
        previous = self.state.displayed
        displayed = self.jitter.compute(self.state.target, self.state.rhythm, previous)
        for key in VITAL_KEYS:
            self.events.log_vital_change(key, getattr(previous, key), getattr(displayed, key))
        self.state.displayed = displayed
        return displayed

    def alarm_tick(self, now: float = None) -> frozenset:
        active = self.alarms.update(self.state.displayed, now)
        # Tone follows the alarm state even when the active set is unchanged.
        self.tone.update(self.alarms.should_sound)
        return active

    # --- Operator surface: patient ---

    def set_rhythm(self, rhythm: Union[RhythmType, str], apply_presets: bool = False):
        new = RhythmType.parse(rhythm)
        old = self.state.rhythm
        if apply_presets and new in RHYTHM_PRESETS:
            self.set_vitals(**RHYTHM_PRESETS[new])
        if new == old:
            return
        self.state.rhythm = new
        self.events.log_rhythm_change(old, new)
        logger.info("Rhythm changed: %s -> %s", old.value, new.value)
        for listener in self.rhythm_listeners:
            listener(new)

    def set_conditions(self, **changes):
        overlay = ConditionsOverlay.from_dict(changes)
        self.state.conditions = overlay.apply_to(self.state.conditions)

    def set_vitals(self, **changes):
        overlay = VitalsOverlay.from_dict(changes)
        self.state.target = overlay.apply_to(self.state.target)

    def apply_ecg_preset(self, name: str):
        rhythm, hr, conditions = ECG_PATTERN_PRESETS[name]
        self.state.conditions = ConditionsOverlay.from_dict(conditions).apply_to(ConditionSet())
        self.set_vitals(heart_rate=hr)
        self.set_rhythm(rhythm)

    # --- Operator surface: alarms ---

    def set_threshold(self, vital: str, low: float = None, high: float = None, enabled: bool = True):
        old = self.alarms.thresholds.get(vital)
        self.alarms.set_threshold(vital, low, high, enabled)
        self.events.log_settings_change(f"alarm.{vital}", old, self.alarms.thresholds.get(vital))

    def replace_thresholds(self, thresholds: Dict[str, AlarmThreshold]):
        self.alarms.replace_thresholds(thresholds)
        for listener in self.threshold_listeners:
            listener()

    def reset_thresholds(self):
        self.alarms.reset_to_defaults()
        for listener in self.threshold_listeners:
            listener()

    def set_muted(self, muted: bool):
        self.alarms.set_muted(muted)
        self.events.log_settings_change("alarm.muted", not muted, muted)

    def set_snooze_duration(self, minutes: int):
        self.alarms.set_snooze_duration(minutes)

    def acknowledge_alarm(self, key):
        self.alarms.acknowledge(key)

    def acknowledge_all_alarms(self):
        self.alarms.acknowledge_all()

    def snooze_alarm(self, key, minutes: float = None):
        self.alarms.snooze(key, minutes)

    def snooze_all_alarms(self, minutes: float = None):
        self.alarms.snooze_all(minutes)

    # --- Operator surface: scenarios ---

    def add_scenario(self, scenario: Scenario):
        self.scenarios[scenario.id] = scenario

    def start_scenario(self, scenario: Union[str, Scenario]):
        if isinstance(scenario, str):
            if scenario not in self.scenarios:
                raise KeyError(f"Unknown scenario: {scenario}")
            scenario = self.scenarios[scenario]
        else:
            self.add_scenario(scenario)
        self.player.start(scenario)

    def toggle_scenario(self):
        self.player.toggle()

    def stop_scenario(self):
        self.player.stop()

    def jump_to_keyframe(self, index: int) -> ScenarioFrame:
        frame = self.player.jump_to(index)
        self._apply_frame(frame)
        return frame

    def run_custom_trend(self, target: dict, duration_seconds: float) -> Scenario:
        """Trend linearly from the current vitals to target over duration."""
        scenario = build_custom_trend(self.state.target, self.state.conditions, target, duration_seconds)
        self.start_scenario(scenario)
        return scenario

    def _apply_frame(self, frame: ScenarioFrame):
        if frame.is_empty():
            return
        if frame.vitals:
            self.state.target = replace(self.state.target, **frame.vitals)
        if frame.conditions:
            self.state.conditions = replace(self.state.conditions, **frame.conditions)
        if frame.rhythm is not None:
            self.set_rhythm(frame.rhythm)
        if frame.step is not None and frame.step.label and self.player.scenario is not None:
            self.events.log_scenario_step(frame.step.label, self.player.scenario.name)

    # --- Cases ---

    def load_case(self, case: dict):
        """
        Load a case definition.

        Baseline vitals come from, in priority order: initialVitals, the
        first scenario keyframe, the legacy config block, factory defaults.
        The case scenario (if any) is registered but not started.
        """
        config = case.get("config") or {}
        initial = case.get("initialVitals") or {}
        scenario_data = config.get("scenario") or case.get("scenario")
        scenario = None
        first = {}
        if scenario_data and scenario_data.get("timeline"):
            scenario = scenario_from_dict(scenario_data, scenario_id=scenario_data.get("id", "case_scenario"))
            self.add_scenario(scenario)
            first = scenario.sorted_keyframes()[0].to_dict()

        target = TargetVitals()
        for source in (config, first.get("params"), initial):
            target = VitalsOverlay.from_dict(source).apply_to(target)
        rhythm = initial.get("rhythm") or first.get("rhythm") or config.get("rhythm")
        conditions_data = initial.get("conditions") or first.get("conditions") or config.get("conditions")
        conditions = ConditionsOverlay.from_dict(conditions_data).apply_to(ConditionSet())

        self.player.stop()
        self.state.target = target
        self.state.conditions = conditions
        self.set_rhythm(rhythm or RhythmType.NSR)
        self._case_baseline = (target, conditions, self.state.rhythm)

        if config.get("alarms"):
            self.replace_thresholds(thresholds_from_dict(config["alarms"]))

        self.case_name = case.get("name", "Unnamed case")
        self.events.log_case_load(self.case_name)
        logger.info("Case loaded: %s", self.case_name)
        return scenario

    def reset_to_case_defaults(self):
        if self._case_baseline is None:
            return
        target, conditions, rhythm = self._case_baseline
        self.player.stop()
        self.state.target = target
        self.state.conditions = conditions
        self.set_rhythm(rhythm)

    # --- Snapshots ---

    def get_latest_state(self) -> SimulationState:
        """Return a copy of the current state."""
        return replace(self.state)

    def flush_events(self) -> int:
        return self.events.flush()

    def _on_alarm(self, record: AlarmRecord):
        self.events.log_alarm(record)
