import math
import numpy as np
from scipy.special import ndtr

from monisim.core.constants import ECGTuning
from monisim.core.enums import RhythmType
from monisim.core.state import ConditionSet

_TUNING = ECGTuning()

# Rhythms without an organised atrial wave.
_NO_P_WAVE = (RhythmType.AFIB, RhythmType.VTACH)


def gaussian(phase: float, amplitude: float, center: float, width: float) -> float:
    """amplitude * exp(-(phase - center)^2 / (2 width^2))"""
    return amplitude * math.exp(-((phase - center) ** 2) / (2.0 * width * width))


def skew_gaussian(phase: float, amplitude: float, center: float, width: float, skew: float) -> float:
    """
    Skew-normal pulse: normal PDF times normal CDF of (skew * x).
    Positive skew stretches the right tail (slow T-wave downslope).
    """
    x = (phase - center) / width
    pdf = math.exp(-0.5 * x * x)
    return amplitude * pdf * 2.0 * float(ndtr(skew * x))


def width_scale(heart_rate: float) -> float:
    """
    Phase-domain width multiplier.
    Keeps each deflection a constant duration in milliseconds: at 120 bpm a
    beat lasts half as long, so the same pulse covers twice the phase.
    """
    if heart_rate is None or not math.isfinite(heart_rate):
        return 1.0
    return max(1.0, heart_rate / 60.0)


def pulse_widths(heart_rate: float, qrs_widened: bool = False, tuning: ECGTuning = _TUNING) -> dict:
    """Phase-domain widths of the five deflections at a given heart rate."""
    scale = width_scale(heart_rate)
    qrs = (tuning.qrs_wide_factor if qrs_widened else 1.0) * scale
    return {
        "P": tuning.p_wave[2] * scale,
        "Q": tuning.q_wave[2] * qrs,
        "R": tuning.r_wave[2] * qrs,
        "S": tuning.s_wave[2] * qrs,
        "T": tuning.t_wave[2] * scale * tuning.t_width_gain,
    }


def synthesize_ecg(phase: float, rhythm: RhythmType, conditions: ConditionSet,
                   heart_rate: float, is_ectopic: bool = False,
                   rng: np.random.Generator = None, tuning: ECGTuning = _TUNING) -> float:
    """
    Instantaneous ECG value for a cardiac phase.

    Sum of Gaussian deflections (P, Q, R, S, skewed T). Overrides, in order:
    no P wave (AFib f-waves instead), ectopic complex, VFib chaos, asystole
    wander, ST/T modification. Noise is always added last.
    Deterministic for noise 0 outside VFib/Asystole.
    """
    rng = rng if rng is not None else np.random.default_rng()
    widths = pulse_widths(heart_rate, conditions.qrs_widened, tuning)
    scale = width_scale(heart_rate)
    y = 0.0

    if rhythm == RhythmType.VFIB:
        (a1, f1), (a2, f2) = tuning.vfib_waves
        y = a1 * math.sin(phase * f1) + a2 * math.sin(phase * f2)
        y += (rng.random() - 0.5) * tuning.vfib_jitter
    elif rhythm == RhythmType.ASYSTOLE:
        y = (rng.random() - 0.5) * tuning.asystole_wander
    else:
        # 1. Atrial activity
        if rhythm in _NO_P_WAVE:
            if rhythm == RhythmType.AFIB:
                for amp, freq in tuning.afib_f_waves:
                    y += amp * math.sin(phase * freq)
        else:
            y += gaussian(phase, tuning.p_wave[0], tuning.p_wave[1], widths["P"])

        # 2. Ventricular complex
        if is_ectopic:
            up_a, up_b, up_c = tuning.ectopic_up
            down_a, down_b, down_c = tuning.ectopic_down
            y += gaussian(phase, up_a, up_b, up_c * scale)
            y += gaussian(phase, down_a, down_b, down_c * scale)
        else:
            y += gaussian(phase, tuning.q_wave[0], tuning.q_wave[1], widths["Q"])
            y += gaussian(phase, tuning.r_wave[0], tuning.r_wave[1], widths["R"])
            y += gaussian(phase, tuning.s_wave[0], tuning.s_wave[1], widths["S"])

            # 3. ST segment and T wave
            st_mm = conditions.st_deviation_mm
            st_offset = st_mm * tuning.st_mv_per_mm
            t_amp = tuning.t_wave[0] * (-1.0 if conditions.t_wave_inverted else 1.0)
            if abs(st_mm) > tuning.st_visible_mm:
                j_center, j_width = tuning.st_j_point
                st_center, st_width = tuning.st_plateau
                y += gaussian(phase, st_offset, j_center, j_width * scale)
                y += gaussian(phase, st_offset, st_center, st_width * scale)
                t_amp += st_offset * tuning.st_t_bias
            y += skew_gaussian(phase, t_amp, tuning.t_wave[1], widths["T"], tuning.t_skew)

    # 4. Baseline noise
    if conditions.noise_level > 0:
        y += (rng.random() - 0.5) * conditions.noise_level * tuning.noise_gain

    return y


class ECGMonitor:
    """
    ECG channel using Gaussian-based PQRST synthesis.
    Holds the noise source so runs can be replayed from a seed.
    """
    def __init__(self, rng: np.random.Generator = None, tuning: ECGTuning = _TUNING):
        self.rng = rng if rng is not None else np.random.default_rng()
        self.tuning = tuning

    def sample(self, phase: float, rhythm: RhythmType, conditions: ConditionSet,
               heart_rate: float, is_ectopic: bool = False) -> float:
        return synthesize_ecg(phase, rhythm, conditions, heart_rate, is_ectopic,
                              rng=self.rng, tuning=self.tuning)
