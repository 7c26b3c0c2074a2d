# Scenarios package
from .base import Keyframe, Scenario, scenario_from_dict
from .player import ScenarioFrame, ScenarioPlayer, interpolate_frame
from .templates import (
    SCENARIO_TEMPLATES,
    build_custom_trend,
    empty_scenario,
    get_all_templates,
    get_template,
    scale_timeline,
)

__all__ = [
    'Keyframe',
    'Scenario',
    'scenario_from_dict',
    'ScenarioFrame',
    'ScenarioPlayer',
    'interpolate_frame',
    'SCENARIO_TEMPLATES',
    'build_custom_trend',
    'empty_scenario',
    'get_all_templates',
    'get_template',
    'scale_timeline',
]
