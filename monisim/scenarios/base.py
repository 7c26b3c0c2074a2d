"""
Base classes for the scenario system.

A scenario is a timeline of keyframes. Each keyframe is a partial state:
only the fields it sets are authoritative, everything else carries forward.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from monisim.core.enums import RhythmType
from monisim.core.state import ConditionsOverlay, VitalsOverlay
from monisim.core.utils import finite_or

logger = logging.getLogger(__name__)


@dataclass
class Keyframe:
    """
    A timestamped partial state.

    Attributes:
        time_seconds: Offset from scenario start
        vitals: Target vitals set at this point (absent fields inherit)
        conditions: ECG conditions set at this point (absent fields inherit)
        rhythm: Rhythm switched to at this point, if any
        label: Instructor-facing description of the step
    """
    time_seconds: float
    vitals: VitalsOverlay = field(default_factory=VitalsOverlay)
    conditions: ConditionsOverlay = field(default_factory=ConditionsOverlay)
    rhythm: Optional[RhythmType] = None
    label: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Keyframe":
        rhythm = data.get("rhythm")
        return cls(
            time_seconds=finite_or(data.get("time", data.get("time_seconds")), 0.0),
            vitals=VitalsOverlay.from_dict(data.get("params", data.get("vitals"))),
            conditions=ConditionsOverlay.from_dict(data.get("conditions")),
            rhythm=RhythmType.parse(rhythm) if rhythm else None,
            label=data.get("label"),
        )

    def to_dict(self) -> dict:
        out = {"time": self.time_seconds, "params": self.vitals.explicit(),
               "conditions": self.conditions.explicit()}
        if self.rhythm is not None:
            out["rhythm"] = self.rhythm.value
        if self.label:
            out["label"] = self.label
        return out


@dataclass
class Scenario:
    """
    A complete scenario definition.

    Attributes:
        id: Unique scenario identifier (e.g., "septic_shock")
        name: Display name for UI
        description: What the scenario shows
        timeline: Keyframes, in any order
        duration_minutes: Nominal length (templates only, used for scaling)
    """
    id: str
    name: str
    description: str = ""
    timeline: List[Keyframe] = field(default_factory=list)
    duration_minutes: Optional[float] = None

    def sorted_keyframes(self) -> List[Keyframe]:
        """Keyframes ascending by time. Re-sorted on every call."""
        return sorted(self.timeline, key=lambda k: k.time_seconds)

    def __len__(self) -> int:
        return len(self.timeline)

    def __getitem__(self, idx: int) -> Keyframe:
        return self.sorted_keyframes()[idx]

    @property
    def end_time(self) -> float:
        frames = self.sorted_keyframes()
        return frames[-1].time_seconds if frames else 0.0


def scenario_from_dict(data: dict, scenario_id: str = None) -> Scenario:
    """
    Build a scenario from a case/scenario dictionary.
    Keyframes that cannot be parsed are skipped with a warning.
    """
    timeline = []
    for raw in data.get("timeline") or []:
        if not isinstance(raw, dict):
            logger.warning("Skipping malformed keyframe: %r", raw)
            continue
        timeline.append(Keyframe.from_dict(raw))
    sid = scenario_id or data.get("id") or "scenario"
    return Scenario(
        id=str(sid),
        name=data.get("name", str(sid)),
        description=data.get("description", ""),
        timeline=timeline,
        duration_minutes=data.get("duration"),
    )
