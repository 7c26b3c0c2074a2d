import logging
from dataclasses import dataclass, field
from typing import Optional

from monisim.core.enums import RhythmType, ScenarioStatus
from monisim.core.state import ConditionSet, TargetVitals, VITAL_KEYS
from monisim.core.utils import lerp
from .base import Keyframe, Scenario

logger = logging.getLogger(__name__)

# Conditions that trend smoothly between keyframes; the rest switch at keyframe time.
CONTINUOUS_CONDITIONS = ("st_deviation_mm", "noise_level")
DISCRETE_CONDITIONS = ("ectopic_enabled", "qrs_widened", "t_wave_inverted")

# Vitals shown with one decimal; all others are whole numbers.
DECIMAL_VITALS = ("temperature",)


def round_vital(key: str, value: float) -> float:
    if key in DECIMAL_VITALS:
        return round(value, 1)
    return float(round(value))


@dataclass
class ScenarioFrame:
    """Values a scenario tick writes into the engine."""
    vitals: dict = field(default_factory=dict)
    conditions: dict = field(default_factory=dict)
    rhythm: Optional[RhythmType] = None
    step: Optional[Keyframe] = None  # keyframe entered on this tick, if any

    def is_empty(self) -> bool:
        return not self.vitals and not self.conditions and self.rhythm is None


@dataclass
class ScenarioRunState:
    active_scenario_id: Optional[str] = None
    elapsed_seconds: float = 0.0
    status: ScenarioStatus = ScenarioStatus.IDLE


def locate_segment(frames, elapsed: float):
    """
    (from_index, to_index) around elapsed: `to` is the first keyframe later
    than elapsed, `from` the one before it. Past the end both are the last.
    """
    to_idx = next((i for i, k in enumerate(frames) if k.time_seconds > elapsed), len(frames))
    if to_idx >= len(frames):
        return len(frames) - 1, len(frames) - 1
    return max(0, to_idx - 1), to_idx


def interpolate_frame(frames, elapsed: float, target: TargetVitals,
                      conditions: ConditionSet) -> ScenarioFrame:
    """
    Evaluate a sorted timeline at elapsed seconds.

    Continuous vitals and conditions are interpolated linearly between the
    surrounding keyframes; discrete conditions and rhythm follow the `from`
    keyframe. At or past the last keyframe everything snaps to its values.
    """
    out = ScenarioFrame()
    if not frames:
        return out

    from_idx, to_idx = locate_segment(frames, elapsed)
    frm, to = frames[from_idx], frames[to_idx]

    if from_idx != to_idx:
        span = to.time_seconds - frm.time_seconds
        progress = (elapsed - frm.time_seconds) / span if span > 0 else 1.0

        from_vitals = frm.vitals.explicit()
        to_vitals = to.vitals.explicit()
        for key in VITAL_KEYS:
            if key not in from_vitals and key not in to_vitals:
                continue
            start = from_vitals.get(key, getattr(target, key))
            end = to_vitals.get(key, start)
            out.vitals[key] = round_vital(key, lerp(start, end, progress))

        from_conds = frm.conditions.explicit()
        to_conds = to.conditions.explicit()
        for key in CONTINUOUS_CONDITIONS:
            if key not in from_conds and key not in to_conds:
                continue
            start = float(from_conds.get(key, getattr(conditions, key)))
            end = float(to_conds.get(key, start))
            out.conditions[key] = round(lerp(start, end, progress), 2)
        for key in DISCRETE_CONDITIONS:
            if key in from_conds:
                out.conditions[key] = from_conds[key]
        out.rhythm = frm.rhythm

    last = frames[-1]
    if elapsed >= last.time_seconds:
        # Terminal convergence: no residual rounding drift.
        out.vitals.update(last.vitals.explicit())
        out.conditions.update(last.conditions.explicit())
        if last.rhythm is not None:
            out.rhythm = last.rhythm
    return out


def keyframe_frame(keyframe: Keyframe) -> ScenarioFrame:
    """A keyframe's explicit fields, applied without interpolation."""
    return ScenarioFrame(
        vitals=keyframe.vitals.explicit(),
        conditions=keyframe.conditions.explicit(),
        rhythm=keyframe.rhythm,
        step=keyframe,
    )


class ScenarioPlayer:
    """
    Scenario scheduler: Idle -> Running <-> Paused -> Idle.

    tick() is called once per scheduler interval and advances elapsed time
    by one step while Running. The returned frame must be written to the
    engine straight away so the next animation tick sees it.
    """
    def __init__(self, step_seconds: float = 1.0):
        self.step_seconds = step_seconds
        self.run = ScenarioRunState()
        self.scenario: Optional[Scenario] = None
        self._last_step_index: Optional[int] = None

    @property
    def status(self) -> ScenarioStatus:
        return self.run.status

    @property
    def elapsed_seconds(self) -> float:
        return self.run.elapsed_seconds

    @property
    def is_playing(self) -> bool:
        return self.run.status == ScenarioStatus.RUNNING

    def start(self, scenario: Scenario):
        self.scenario = scenario
        self.run = ScenarioRunState(scenario.id, 0.0, ScenarioStatus.RUNNING)
        self._last_step_index = None
        logger.info("Scenario started: %s", scenario.name)

    def pause(self):
        if self.run.status == ScenarioStatus.RUNNING:
            self.run.status = ScenarioStatus.PAUSED

    def resume(self):
        if self.run.status == ScenarioStatus.PAUSED:
            self.run.status = ScenarioStatus.RUNNING

    def toggle(self):
        if self.run.status == ScenarioStatus.RUNNING:
            self.pause()
        else:
            self.resume()

    def stop(self):
        self.scenario = None
        self.run = ScenarioRunState()
        self._last_step_index = None

    def tick(self, target: TargetVitals, conditions: ConditionSet) -> ScenarioFrame:
        if self.run.status != ScenarioStatus.RUNNING or self.scenario is None:
            return ScenarioFrame()

        self.run.elapsed_seconds += self.step_seconds
        frames = self.scenario.sorted_keyframes()
        if not frames:
            # Malformed timeline: time advances, nothing to apply.
            return ScenarioFrame()

        frame = interpolate_frame(frames, self.run.elapsed_seconds, target, conditions)
        from_idx, _ = locate_segment(frames, self.run.elapsed_seconds)
        if frames[from_idx].time_seconds <= self.run.elapsed_seconds and from_idx != self._last_step_index:
            self._last_step_index = from_idx
            frame.step = frames[from_idx]
        return frame

    def jump_to(self, index: int) -> ScenarioFrame:
        """Seek to a keyframe and apply its fields immediately."""
        if self.scenario is None:
            return ScenarioFrame()
        frames = self.scenario.sorted_keyframes()
        if not 0 <= index < len(frames):
            raise IndexError(f"No keyframe {index} in scenario {self.scenario.id}")
        keyframe = frames[index]
        self.run.elapsed_seconds = keyframe.time_seconds
        self._last_step_index = index
        return keyframe_frame(keyframe)

    def current_step_index(self) -> Optional[int]:
        """Keyframe whose span contains the elapsed time (for highlighting)."""
        if self.scenario is None:
            return None
        frames = self.scenario.sorted_keyframes()
        current = None
        for i, k in enumerate(frames):
            if self.run.elapsed_seconds >= k.time_seconds:
                current = i
        return current
