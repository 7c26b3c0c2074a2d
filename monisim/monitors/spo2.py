import math

from monisim.core.constants import PlethTuning

_TUNING = PlethTuning()


def synthesize_pleth(cardiac_phase: float, resp_phase: float, heart_rate: float,
                     tuning: PlethTuning = _TUNING) -> float:
    """
    Plethysmograph value driven by the cardiac phase.

    The pulse arrives a fixed phase after the ECG: sine upstroke over the
    first 20% of the delayed cycle, then a linear run-off carrying a narrow
    dicrotic notch. No pulse without a heart rate.
    """
    if heart_rate is None or not math.isfinite(heart_rate) or heart_rate <= 0:
        return 0.0

    p = (cardiac_phase - tuning.delay_phase + 1.0) % 1.0
    # Tachycardia shortens filling: smaller pulse.
    amp = tuning.tachy_amplitude if heart_rate > tuning.tachy_hr else 1.0

    if p < tuning.upstroke_fraction:
        val = math.sin(p / tuning.upstroke_fraction * math.pi / 2.0)
    else:
        run_off = 1.0 - tuning.upstroke_fraction
        decay = 1.0 - (p - tuning.upstroke_fraction) / run_off
        notch = math.exp(-((p - tuning.notch_center) ** 2) / tuning.notch_spread) * tuning.notch_gain
        val = decay * tuning.decay_gain - notch
    val *= amp

    # Respiratory variation of pulse amplitude.
    val *= 1.0 + tuning.resp_modulation * math.sin(resp_phase * 2.0 * math.pi)
    return val


class SpO2Monitor:
    """
    Pleth channel of the pulse oximeter.
    """
    def __init__(self, tuning: PlethTuning = _TUNING):
        self.tuning = tuning

    def sample(self, cardiac_phase: float, resp_phase: float, heart_rate: float) -> float:
        return synthesize_pleth(cardiac_phase, resp_phase, heart_rate, self.tuning)
