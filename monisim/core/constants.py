"""
Physiological and Numerical Constants for MoniSim.

This module centralizes magic numbers used throughout the simulation.

NOTE: Only add constants here that are ACTIVELY IMPORTED elsewhere.
"""

from dataclasses import dataclass

# Cardiac clock (used in physiology/cardiac.py).

# Fallback beat period when heart rate is zero/invalid (ms)
FALLBACK_BEAT_MS = 1000.0
# Initial beat period before the first committed beat (ms)
INITIAL_BEAT_MS = 750.0
# Smallest committed beat period (ms)
MIN_BEAT_MS = 1.0
# VFib phase speed divisor: phase += dt / VFIB_PHASE_DIVISOR_MS
VFIB_PHASE_DIVISOR_MS = 200.0
# AFib R-R jitter, uniform +/- (ms)
AFIB_JITTER_MS = 200.0
# Ectopic beat probability per beat and prematurity factor
ECTOPIC_PROBABILITY = 0.15
ECTOPIC_PREMATURITY = 0.6

# Respiratory clock (used in physiology/respiration.py).

# Fallback breath period when resp rate is zero/invalid (ms)
FALLBACK_BREATH_MS = 10000.0

# Condition bounds (used in core/state.py).
ST_DEVIATION_MAX_MM = 3.0
NOISE_LEVEL_MAX = 10

# Display clamps (used in monitors/jitter.py).
SPO2_DISPLAY_MAX = 100.0
TEMP_DISPLAY_MIN_C = 30.0
TEMP_DISPLAY_MAX_C = 42.0
ETCO2_DISPLAY_MAX = 100.0
# EtCO2 decay per jitter tick during cardiac arrest (mmHg)
ARREST_ETCO2_DECAY = 5.0

# Alarm supervisor (used in monitors/alarms.py).
ALARM_DEBOUNCE_SEC = 5.0
DEFAULT_SNOOZE_MIN = 5


@dataclass(frozen=True)
class ECGTuning:
    """
    Gaussian-sum ECG tuning parameters.
    Wave triplets are (amplitude, center_phase, width) at 60 bpm.
    """
    p_wave: tuple = (0.15, 0.20, 0.04)
    q_wave: tuple = (-0.15, 0.35, 0.02)
    r_wave: tuple = (1.0, 0.38, 0.03)
    s_wave: tuple = (-0.25, 0.42, 0.03)
    t_wave: tuple = (0.3, 0.70, 0.08)

    t_width_gain: float = 1.2
    t_skew: float = 1.5
    qrs_wide_factor: float = 2.5

    # ST segment: mm -> signal units, plateau bumps (center, width)
    st_mv_per_mm: float = 0.08
    st_visible_mm: float = 0.1
    st_j_point: tuple = (0.48, 0.06)
    st_plateau: tuple = (0.55, 0.10)
    st_t_bias: float = 0.5

    # Ectopic complex: wide positive then wide negative deflection
    ectopic_up: tuple = (0.8, 0.40, 0.12)
    ectopic_down: tuple = (-0.4, 0.55, 0.15)

    # Fibrillatory baselines
    afib_f_waves: tuple = ((0.03, 40.0), (0.02, 53.0))
    vfib_waves: tuple = ((0.3, 15.0), (0.2, 19.0))
    vfib_jitter: float = 0.1
    asystole_wander: float = 0.02
    noise_gain: float = 0.05


@dataclass(frozen=True)
class PlethTuning:
    """Plethysmograph waveform tuning parameters."""
    delay_phase: float = 0.1
    upstroke_fraction: float = 0.2
    decay_gain: float = 0.8
    notch_center: float = 0.5
    notch_spread: float = 0.005
    notch_gain: float = 0.15
    tachy_hr: float = 140.0
    tachy_amplitude: float = 0.7
    resp_modulation: float = 0.1
