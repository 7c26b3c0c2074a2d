import math
import numpy as np

from monisim.core.constants import (
    AFIB_JITTER_MS,
    ECTOPIC_PREMATURITY,
    ECTOPIC_PROBABILITY,
    FALLBACK_BEAT_MS,
    MIN_BEAT_MS,
    VFIB_PHASE_DIVISOR_MS,
)
from monisim.core.enums import RhythmType
from monisim.core.state import CardiacState


def nominal_beat_ms(heart_rate: float) -> float:
    """Beat period for a heart rate; zero/invalid rates use the fallback period."""
    if heart_rate is None or not math.isfinite(heart_rate) or heart_rate <= 0:
        return FALLBACK_BEAT_MS
    return 60000.0 / heart_rate


class CardiacClock:
    """
    Cardiac cycle state machine.

    Advances a normalized phase (0 to 1) per animation tick. A beat boundary
    (phase >= 1) resets the phase to exactly 0 within the same tick and
    commits the period of the upcoming beat:
    - AFib: nominal period + uniform jitter (irregularly irregular)
    - ectopy enabled: 15% of beats arrive early (period x 0.6)
    VFib has no beat boundary (continuous fast phase), Asystole pins phase at 0.
    """
    def __init__(self, rng: np.random.Generator = None, state: CardiacState = None):
        self.state = state if state is not None else CardiacState()
        self.rng = rng if rng is not None else np.random.default_rng()

    def commit_beat_duration(self, rhythm: RhythmType, heart_rate: float, ectopic_enabled: bool) -> float:
        """Choose the period of the next beat and flag it ectopic or not."""
        duration = nominal_beat_ms(heart_rate)
        if rhythm == RhythmType.AFIB:
            duration += self.rng.uniform(-AFIB_JITTER_MS, AFIB_JITTER_MS)

        is_ectopic = False
        if ectopic_enabled and self.rng.random() < ECTOPIC_PROBABILITY:
            duration *= ECTOPIC_PREMATURITY
            is_ectopic = True

        self.state.next_beat_duration_ms = max(MIN_BEAT_MS, duration)
        self.state.is_next_beat_ectopic = is_ectopic
        return self.state.next_beat_duration_ms

    def step(self, dt_ms: float, rhythm: RhythmType, heart_rate: float,
             ectopic_enabled: bool = False) -> bool:
        """
        Advance by dt_ms. Returns True if a beat boundary was crossed.
        """
        s = self.state
        if dt_ms is None or not math.isfinite(dt_ms) or dt_ms < 0:
            dt_ms = 0.0

        if rhythm == RhythmType.ASYSTOLE:
            s.phase = 0.0
            return False

        if rhythm == RhythmType.VFIB:
            s.phase = (s.phase + dt_ms / VFIB_PHASE_DIVISOR_MS) % 1.0
            return False

        duration = s.next_beat_duration_ms
        if not math.isfinite(duration) or duration <= 0:
            duration = FALLBACK_BEAT_MS
        s.phase += dt_ms / duration
        if s.phase >= 1.0:
            # One boundary per tick, however large dt was.
            s.phase = 0.0
            self.commit_beat_duration(rhythm, heart_rate, ectopic_enabled)
            return True
        return False

