import math

from monisim.core.constants import FALLBACK_BREATH_MS
from monisim.core.state import RespiratoryState


class RespiratoryClock:
    """
    Periodic breath clock driving the resp waveform and pleth modulation.
    """
    def __init__(self, state: RespiratoryState = None):
        self.state = state if state is not None else RespiratoryState()

    @staticmethod
    def breath_ms(resp_rate: float) -> float:
        if resp_rate is None or not math.isfinite(resp_rate) or resp_rate <= 0:
            return FALLBACK_BREATH_MS
        return 60000.0 / resp_rate

    def step(self, dt_ms: float, resp_rate: float) -> float:
        if dt_ms is None or not math.isfinite(dt_ms) or dt_ms < 0:
            dt_ms = 0.0
        self.state.phase += dt_ms / self.breath_ms(resp_rate)
        if self.state.phase >= 1.0:
            self.state.phase = 0.0
        return self.state.phase
