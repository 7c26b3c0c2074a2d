"""
Waveform synthesis tests (ECG, pleth, resp).
"""

import math

import numpy as np
import pytest

from monisim.core.enums import RhythmType
from monisim.core.state import ConditionSet
from monisim.monitors.ecg import ECGMonitor, gaussian, pulse_widths, synthesize_ecg, width_scale
from monisim.monitors.resp import synthesize_resp
from monisim.monitors.spo2 import SpO2Monitor, synthesize_pleth
from monisim.physiology.cardiac import nominal_beat_ms

PHASES = np.linspace(0.0, 0.999, 200)


def trace(rhythm, conditions=None, hr=80, is_ectopic=False, rng=None):
    conditions = conditions or ConditionSet()
    rng = rng if rng is not None else np.random.default_rng(0)
    return np.array([
        synthesize_ecg(p, rhythm, conditions, hr, is_ectopic, rng=rng) for p in PHASES
    ])


class TestECGDeterminism:

    @pytest.mark.parametrize("rhythm", [RhythmType.NSR, RhythmType.AFIB, RhythmType.VTACH])
    @pytest.mark.parametrize("conditions", [
        ConditionSet(),
        ConditionSet(st_deviation_mm=2.0, t_wave_inverted=True),
        ConditionSet(qrs_widened=True, st_deviation_mm=-1.5),
    ])
    def test_identical_inputs_identical_output(self, rhythm, conditions):
        first = trace(rhythm, conditions, rng=np.random.default_rng(1))
        second = trace(rhythm, conditions, rng=np.random.default_rng(2))
        assert np.array_equal(first, second)

    def test_monitor_matches_function(self, rng):
        monitor = ECGMonitor(rng)
        cond = ConditionSet()
        assert monitor.sample(0.38, RhythmType.NSR, cond, 72) == synthesize_ecg(0.38, RhythmType.NSR, cond, 72)


class TestPulseWidths:

    def test_absolute_duration_constant_from_60_to_120(self):
        slow = pulse_widths(60)
        fast = pulse_widths(120)
        for wave in "PQRST":
            assert fast[wave] == pytest.approx(2.0 * slow[wave])
            # Phase width times beat period: the deflection lasts the same number of ms.
            assert fast[wave] * nominal_beat_ms(120) == pytest.approx(slow[wave] * nominal_beat_ms(60))

    def test_no_narrowing_below_60(self):
        assert width_scale(30) == 1.0
        assert width_scale(0) == 1.0
        assert pulse_widths(40) == pulse_widths(60)

    def test_wide_qrs_only_widens_ventricular_waves(self):
        normal = pulse_widths(80)
        wide = pulse_widths(80, qrs_widened=True)
        for wave in "QRS":
            assert wide[wave] == pytest.approx(2.5 * normal[wave])
        assert wide["P"] == normal["P"]
        assert wide["T"] == normal["T"]


class TestECGMorphology:

    def test_r_wave_dominates(self):
        y = trace(RhythmType.NSR, hr=60)
        assert PHASES[np.argmax(y)] == pytest.approx(0.38, abs=0.01)
        assert y.max() > 0.7

    def test_vtach_has_no_p_wave(self):
        cond = ConditionSet()
        nsr = synthesize_ecg(0.2, RhythmType.NSR, cond, 100)
        vtach = synthesize_ecg(0.2, RhythmType.VTACH, cond, 100)
        assert nsr - vtach == pytest.approx(0.15)

    def test_afib_replaces_p_with_f_waves(self):
        cond = ConditionSet()
        phase = 0.2
        nsr = synthesize_ecg(phase, RhythmType.NSR, cond, 100)
        afib = synthesize_ecg(phase, RhythmType.AFIB, cond, 100)
        f_waves = 0.03 * math.sin(phase * 40) + 0.02 * math.sin(phase * 53)
        assert afib == pytest.approx(nsr - 0.15 + f_waves)

    def test_t_wave_inversion_flips_t(self):
        normal = synthesize_ecg(0.72, RhythmType.NSR, ConditionSet(), 60)
        inverted = synthesize_ecg(0.72, RhythmType.NSR, ConditionSet(t_wave_inverted=True), 60)
        assert normal > 0.2
        assert inverted == pytest.approx(-normal, abs=1e-3)

    def test_st_deviation_shifts_segment(self):
        base = synthesize_ecg(0.55, RhythmType.NSR, ConditionSet(), 60)
        elevated = synthesize_ecg(0.55, RhythmType.NSR, ConditionSet(st_deviation_mm=2.0), 60)
        depressed = synthesize_ecg(0.55, RhythmType.NSR, ConditionSet(st_deviation_mm=-2.0), 60)
        assert elevated - base > 0.2
        assert base - depressed > 0.2

    def test_tiny_st_deviation_is_ignored(self):
        base = synthesize_ecg(0.55, RhythmType.NSR, ConditionSet(), 60)
        tiny = synthesize_ecg(0.55, RhythmType.NSR, ConditionSet(st_deviation_mm=0.05), 60)
        assert tiny == base

    def test_ectopic_beat_is_wide_complex_without_t(self):
        cond = ConditionSet(st_deviation_mm=2.0, t_wave_inverted=True)
        value = synthesize_ecg(0.55, RhythmType.NSR, cond, 60, is_ectopic=True)
        expected = gaussian(0.55, 0.8, 0.40, 0.12) + gaussian(0.55, -0.4, 0.55, 0.15)
        assert value == pytest.approx(expected, abs=1e-6)

    def test_asystole_is_near_flat(self, rng):
        y = trace(RhythmType.ASYSTOLE, rng=rng)
        assert np.all(np.abs(y) <= 0.01)

    def test_vfib_is_bounded_and_chaotic(self, rng):
        y = trace(RhythmType.VFIB, rng=rng)
        assert np.all(np.abs(y) <= 0.55)
        assert y.std() > 0.1

    def test_noise_amplitude_bounded(self, rng):
        clean = trace(RhythmType.NSR)
        noisy = trace(RhythmType.NSR, ConditionSet(noise_level=10), rng=rng)
        diff = noisy - clean
        assert np.all(np.abs(diff) <= 0.25)
        assert diff.std() > 0.05


class TestPleth:

    def test_no_pulse_without_heart_rate(self):
        for phase in PHASES:
            assert synthesize_pleth(phase, 0.3, 0) == 0.0
        assert synthesize_pleth(0.5, 0.0, float("nan")) == 0.0

    def test_upstroke_is_delayed(self):
        # Delayed phase 0.1 is halfway up the upstroke.
        assert synthesize_pleth(0.2, 0.0, 80) == pytest.approx(math.sin(math.pi / 4))
        # Cardiac phase 0 is the tail of the previous pulse.
        assert synthesize_pleth(0.0, 0.0, 80) == pytest.approx(0.1)

    def test_dicrotic_notch_dips_below_run_off(self):
        p = 0.5
        run_off = (1.0 - (p - 0.2) / 0.8) * 0.8
        assert synthesize_pleth(p + 0.1, 0.0, 80) == pytest.approx(run_off - 0.15)

    def test_tachycardia_attenuates(self):
        normal = synthesize_pleth(0.2, 0.0, 140)
        tachy = synthesize_pleth(0.2, 0.0, 141)
        assert tachy == pytest.approx(0.7 * normal)

    def test_respiratory_modulation(self):
        base = synthesize_pleth(0.2, 0.0, 80)
        assert synthesize_pleth(0.2, 0.25, 80) == pytest.approx(1.1 * base)
        assert synthesize_pleth(0.2, 0.75, 80) == pytest.approx(0.9 * base)

    def test_monitor_wraps_function(self):
        assert SpO2Monitor().sample(0.3, 0.1, 90) == synthesize_pleth(0.3, 0.1, 90)


class TestResp:

    def test_sine_of_resp_phase(self):
        assert synthesize_resp(0.0) == pytest.approx(0.0)
        assert synthesize_resp(0.25) == pytest.approx(1.0)
        assert synthesize_resp(0.75) == pytest.approx(-1.0)
