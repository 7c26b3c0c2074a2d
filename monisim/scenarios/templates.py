"""
Scenario Templates.

Pre-built deterioration and recovery patterns for common clinical
situations, plus builders for ad hoc scenarios.
"""

import copy
import time
from typing import Dict, List, Optional

from monisim.core.state import ConditionSet, TargetVitals, VitalsOverlay, ConditionsOverlay
from monisim.core.enums import RhythmType
from .base import Keyframe, Scenario, scenario_from_dict


def _conds(st=0.0, pvc=False, wide=False, t_inv=False, noise=0):
    return {"stElev": st, "pvc": pvc, "wideQRS": wide, "tInv": t_inv, "noise": noise}


def _params(hr, spo2, rr, sys, dia, temp, etco2):
    return {"hr": hr, "spo2": spo2, "rr": rr, "bpSys": sys, "bpDia": dia, "temp": temp, "etco2": etco2}


SCENARIO_TEMPLATES: Dict[str, dict] = {
    "septic_shock": {
        "name": "Septic Shock Progression",
        "description": "Vasodilation leading to severe hypotension and hypoxia - late stage",
        "duration": 40,
        "timeline": [
            {"time": 0, "label": "Early sepsis - mild tachycardia and fever",
             "params": _params(95, 94, 20, 110, 70, 38.5, 35), "conditions": _conds(), "rhythm": "NSR"},
            {"time": 15 * 60, "label": "Progressive shock - tachycardia worsens, BP drops",
             "params": _params(115, 90, 26, 90, 50, 39.5, 32), "conditions": _conds(noise=1)},
            {"time": 30 * 60, "label": "Severe shock - profound hypotension",
             "params": _params(135, 85, 32, 70, 35, 39.5, 28), "conditions": _conds(noise=2)},
            {"time": 40 * 60, "label": "Late stage - critical hypotension and hypoxia",
             "params": _params(145, 80, 36, 60, 25, 39.8, 26), "conditions": _conds(noise=3)},
        ],
    },
    "stemi_progression": {
        "name": "STEMI Progression",
        "description": "Acute MI progressing to cardiogenic shock - late stage",
        "duration": 40,
        "timeline": [
            {"time": 0, "label": "Initial presentation - chest pain, mild tachycardia",
             "params": _params(80, 98, 16, 125, 82, 37.0, 38), "conditions": _conds(), "rhythm": "NSR"},
            {"time": 10 * 60, "label": "STEMI develops - ST elevation appears",
             "params": _params(110, 96, 22, 145, 95, 37.0, 40), "conditions": _conds(st=2.0)},
            {"time": 25 * 60, "label": "Worsening ischemia - PVCs appear, BP drops",
             "params": _params(125, 92, 26, 100, 60, 37.0, 42), "conditions": _conds(st=2.5, pvc=True, noise=1)},
            {"time": 40 * 60, "label": "Late stage - cardiogenic shock develops",
             "params": _params(135, 85, 28, 70, 45, 37.0, 44), "conditions": _conds(st=2.5, pvc=True, noise=2)},
        ],
    },
    "hypertensive_crisis": {
        "name": "Hypertensive Crisis",
        "description": "Rapid increase in blood pressure leading to end-organ damage",
        "duration": 45,
        "timeline": [
            {"time": 0, "label": "Baseline - mildly elevated BP",
             "params": _params(75, 99, 14, 130, 85, 37.0, 38), "conditions": _conds(), "rhythm": "NSR"},
            {"time": 15 * 60, "label": "Hypertension worsens - tachycardia develops",
             "params": _params(90, 98, 18, 180, 110, 37.0, 38), "conditions": _conds()},
            {"time": 30 * 60, "label": "Crisis - very high BP, ST depression",
             "params": _params(105, 96, 22, 220, 130, 37.0, 36), "conditions": _conds(st=-1.0)},
            {"time": 45 * 60, "label": "Extreme hypertension - risk of stroke/MI",
             "params": _params(115, 95, 24, 240, 150, 37.0, 35), "conditions": _conds(st=-1.0, t_inv=True, noise=1)},
        ],
    },
    "respiratory_failure": {
        "name": "Progressive Respiratory Failure",
        "description": "Gradual onset of hypoxia and hypercapnia - late stage",
        "duration": 30,
        "timeline": [
            {"time": 0, "label": "Early respiratory distress",
             "params": _params(90, 93, 24, 125, 80, 37.0, 42), "conditions": _conds(), "rhythm": "NSR"},
            {"time": 10 * 60, "label": "Worsening hypoxia - compensatory tachypnea",
             "params": _params(100, 88, 32, 130, 85, 37.0, 48), "conditions": _conds(noise=1)},
            {"time": 20 * 60, "label": "Severe hypoxia and hypercapnia",
             "params": _params(115, 82, 36, 140, 90, 37.5, 54), "conditions": _conds(noise=2)},
            {"time": 30 * 60, "label": "Late stage - severe respiratory compromise",
             "params": _params(125, 78, 38, 145, 92, 37.5, 60), "conditions": _conds(noise=3)},
        ],
    },
    "post_resuscitation_recovery": {
        "name": "Post-Resuscitation Recovery",
        "description": "Patient recovery after successful CPR and ROSC",
        "duration": 30,
        "timeline": [
            {"time": 0, "label": "ROSC achieved - unstable vitals",
             "params": _params(145, 75, 8, 65, 35, 35.5, 25), "conditions": _conds(pvc=True, noise=3), "rhythm": "NSR"},
            {"time": 5 * 60, "label": "Stabilizing - oxygen improving",
             "params": _params(125, 85, 14, 80, 50, 35.8, 32), "conditions": _conds(pvc=True, noise=2)},
            {"time": 15 * 60, "label": "Continued improvement",
             "params": _params(105, 92, 18, 95, 60, 36.2, 36), "conditions": _conds(noise=1)},
            {"time": 30 * 60, "label": "Stable post-arrest state",
             "params": _params(88, 96, 16, 110, 70, 36.5, 38), "conditions": _conds()},
        ],
    },
    "anaphylaxis": {
        "name": "Anaphylactic Shock",
        "description": "Rapid onset of severe allergic reaction - late stage",
        "duration": 10,
        "timeline": [
            {"time": 0, "label": "Initial exposure - mild symptoms",
             "params": _params(85, 98, 16, 120, 80, 37.0, 38), "conditions": _conds(), "rhythm": "NSR"},
            {"time": 2 * 60, "label": "Rapid onset - tachycardia, bronchospasm",
             "params": _params(115, 92, 28, 100, 65, 37.0, 42), "conditions": _conds(noise=2)},
            {"time": 5 * 60, "label": "Severe reaction - hypotension, hypoxia",
             "params": _params(135, 85, 35, 75, 45, 37.0, 48), "conditions": _conds(noise=3)},
            {"time": 10 * 60, "label": "Late stage - severe cardiovascular compromise",
             "params": _params(150, 80, 36, 60, 35, 36.5, 50), "conditions": _conds(pvc=True, noise=3)},
        ],
    },
}


def get_template(template_id: str) -> Optional[Scenario]:
    data = SCENARIO_TEMPLATES.get(template_id)
    if data is None:
        return None
    return scenario_from_dict(data, scenario_id=template_id)


def get_all_templates() -> List[Scenario]:
    return [get_template(key) for key in SCENARIO_TEMPLATES]


def scale_timeline(scenario: Scenario, new_duration_minutes: float) -> Scenario:
    """Stretch or compress a template to a new total duration."""
    base_minutes = scenario.duration_minutes or (scenario.end_time / 60.0)
    factor = new_duration_minutes / base_minutes if base_minutes > 0 else 1.0
    scaled = copy.deepcopy(scenario)
    for keyframe in scaled.timeline:
        keyframe.time_seconds = float(round(keyframe.time_seconds * factor))
    scaled.duration_minutes = new_duration_minutes
    return scaled


def empty_scenario(scenario_id: str = "new_scenario") -> Scenario:
    """A one-keyframe scenario holding the factory defaults."""
    defaults = TargetVitals()
    return Scenario(
        id=scenario_id,
        name="New scenario",
        timeline=[Keyframe(
            time_seconds=0.0,
            vitals=VitalsOverlay(**defaults.as_dict()),
            conditions=ConditionsOverlay(**vars(ConditionSet())),
            rhythm=RhythmType.NSR,
            label="Initial state",
        )],
    )


def build_custom_trend(current: TargetVitals, conditions: ConditionSet,
                       target: dict, duration_seconds: float) -> Scenario:
    """
    Two-keyframe scenario: the current state now, the target after duration.
    Resp rate is held at its current value unless the target sets it.
    """
    end = VitalsOverlay.from_dict(target)
    if end.resp_rate is None:
        end.resp_rate = current.resp_rate
    duration_seconds = max(1.0, float(duration_seconds))
    scenario_id = f"custom_{int(time.time() * 1000)}"
    summary = ", ".join(f"{k} {v:g}" for k, v in end.explicit().items())
    return Scenario(
        id=scenario_id,
        name=f"Custom Trend ({duration_seconds / 60.0:.1f}m)",
        description=f"Linear trend to {summary}",
        timeline=[
            Keyframe(0.0, VitalsOverlay(**current.as_dict()), ConditionsOverlay(**vars(conditions)),
                     label="Start"),
            Keyframe(duration_seconds, end, label="Target"),
        ],
    )
