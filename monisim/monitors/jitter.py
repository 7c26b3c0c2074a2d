from typing import Optional
import numpy as np

from monisim.core.constants import (
    ARREST_ETCO2_DECAY,
    ETCO2_DISPLAY_MAX,
    SPO2_DISPLAY_MAX,
    TEMP_DISPLAY_MAX_C,
    TEMP_DISPLAY_MIN_C,
)
from monisim.core.enums import RhythmType
from monisim.core.state import DisplayedVitals, TargetVitals, UNMEASURABLE
from monisim.core.utils import clamp


class VitalJitter:
    """
    Derives the displayed numerics from the target vitals.

    Each tick adds small independent noise per vital so the numbers look
    alive. Never writes back to the target vitals. During cardiac arrest the
    monitor loses the pulse: HR reads 0, SpO2 and BP cannot be measured and
    EtCO2 washes out.
    """
    # Inclusive integer jitter bounds per vital.
    HR_RANGE = (-2, 2)
    RR_RANGE = (-1, 1)
    SYS_RANGE = (-2, 2)
    DIA_RANGE = (-2, 1)
    ETCO2_RANGE = (-1, 1)
    SPO2_DROP_PROB = 0.2
    TEMP_SPREAD = 0.1

    def __init__(self, rng: np.random.Generator = None):
        self.rng = rng if rng is not None else np.random.default_rng()

    def _int_jitter(self, bounds) -> int:
        return int(self.rng.integers(bounds[0], bounds[1] + 1))

    def compute(self, target: TargetVitals, rhythm: RhythmType,
                previous: Optional[DisplayedVitals] = None) -> DisplayedVitals:
        if rhythm.is_arrest:
            return self._arrest(target, previous)

        spo2_noise = -1 if self.rng.random() < self.SPO2_DROP_PROB else 0
        temp_noise = (self.rng.random() - 0.5) * 2.0 * self.TEMP_SPREAD

        return DisplayedVitals(
            heart_rate=max(0.0, target.heart_rate + self._int_jitter(self.HR_RANGE)),
            spo2=clamp(target.spo2 + spo2_noise, 0.0, SPO2_DISPLAY_MAX),
            resp_rate=max(0.0, target.resp_rate + self._int_jitter(self.RR_RANGE)),
            systolic_bp=max(0.0, target.systolic_bp + self._int_jitter(self.SYS_RANGE)),
            diastolic_bp=max(0.0, target.diastolic_bp + self._int_jitter(self.DIA_RANGE)),
            temperature=clamp(target.temperature + temp_noise, TEMP_DISPLAY_MIN_C, TEMP_DISPLAY_MAX_C),
            etco2=clamp(target.etco2 + self._int_jitter(self.ETCO2_RANGE), 0.0, ETCO2_DISPLAY_MAX),
        )

    def _arrest(self, target: TargetVitals, previous: Optional[DisplayedVitals]) -> DisplayedVitals:
        prev_etco2 = previous.etco2 if previous is not None else None
        if prev_etco2 is None:
            prev_etco2 = target.etco2
        prev_temp = previous.temperature if previous is not None else None
        prev_rr = previous.resp_rate if previous is not None else None
        return DisplayedVitals(
            heart_rate=0.0,
            spo2=UNMEASURABLE,
            resp_rate=prev_rr if prev_rr is not None else target.resp_rate,
            systolic_bp=UNMEASURABLE,
            diastolic_bp=UNMEASURABLE,
            # Core temperature does not change immediately.
            temperature=prev_temp if prev_temp is not None else target.temperature,
            etco2=max(0.0, prev_etco2 - ARREST_ETCO2_DECAY),
        )
