"""
Simulation engine integration tests.

Drives the four periodic activities by hand and checks that they cooperate
through the shared state: scenario values reach the clocks, arrest rhythms
blank the pulse, numerics changes and alarms reach the event log.
"""

import numpy as np
import pytest

from monisim.core.engine import ECG_PATTERN_PRESETS, SimulationEngine
from monisim.core.enums import BoundSide, RhythmType
from monisim.core.event_log import ALARM, CASE_LOAD, ECG_CHANGE, SCENARIO_STEP, SETTINGS_CHANGE, VITAL_CHANGE
from monisim.core.state import ConditionsOverlay, SimulationConfig, VitalsOverlay
from monisim.monitors.alarms import AlarmKey
from monisim.scenarios import Keyframe, Scenario


def events_of(sink, event_type):
    return [e for e in sink.events if e["event_type"] == event_type]


class RecordingToneSink:
    def __init__(self):
        self.playing = False

    def start(self):
        self.playing = True

    def stop(self):
        self.playing = False


class TestAnimation:

    def test_not_running_produces_no_samples(self, engine_factory):
        engine = engine_factory(start=False)
        for _ in range(50):
            engine.animation_tick(16)
        assert not engine.buffers.ecg.any()
        assert engine.state.time_ms == 0

    def test_ticks_fill_buffers_and_advance_time(self, engine, advance_animation):
        advance_animation(engine, 1600)
        assert engine.state.time_ms == pytest.approx(1600)
        assert engine.buffers.ecg[-100:].any()
        assert engine.buffers.resp[-1] == engine.state.resp_voltage
        assert engine.buffers.ecg.max() > 0.5

    @pytest.mark.parametrize("rhythm", [RhythmType.VFIB, RhythmType.ASYSTOLE])
    def test_arrest_has_no_pulse(self, engine, advance_animation, rhythm):
        engine.set_rhythm(rhythm)
        advance_animation(engine, 2000)
        assert engine.effective_heart_rate == 0
        assert not engine.buffers.pleth[-100:].any()

    def test_snapshot_for_render_sink(self, engine, advance_animation):
        advance_animation(engine, 160)
        snap = engine.buffers.snapshot()
        assert len(snap.ecg) == SimulationConfig().buffer_size
        assert snap.ecg[-1] == engine.state.ecg_voltage


class TestScenarioIntegration:

    def test_scenario_rhythm_and_rate_reach_cardiac_clock(self, engine):
        engine.start_scenario(Scenario("vt", "VT onset", timeline=[
            Keyframe(0, VitalsOverlay(heart_rate=80), rhythm=RhythmType.NSR, label="Baseline"),
            Keyframe(1, VitalsOverlay(heart_rate=160), rhythm=RhythmType.VTACH, label="VT"),
        ]))
        engine.scenario_tick()
        assert engine.state.rhythm == RhythmType.VTACH
        assert engine.state.target.heart_rate == 160

        # The initial beat is 750 ms; the next one is committed at the boundary.
        engine.animation_tick(750)
        assert engine.state.cardiac.phase == 0.0
        assert engine.state.cardiac.next_beat_duration_ms == pytest.approx(375.0)

    def test_single_keyframe_applies_on_first_tick(self, engine):
        engine.start_scenario(Scenario("vt", "VT", timeline=[
            Keyframe(0, VitalsOverlay(heart_rate=160), rhythm=RhythmType.VTACH, label="VT"),
        ]))
        engine.scenario_tick()
        assert engine.state.rhythm == RhythmType.VTACH
        assert engine.state.target.heart_rate == 160

        engine.animation_tick(750)
        assert engine.state.cardiac.phase == 0.0
        assert engine.state.cardiac.next_beat_duration_ms == pytest.approx(375.0)

    def test_custom_trend(self, engine):
        engine.run_custom_trend({"hr": 120}, 10)
        for _ in range(5):
            engine.scenario_tick()
        assert engine.state.target.heart_rate == 100
        for _ in range(10):
            engine.scenario_tick()
        assert engine.state.target.heart_rate == 120
        assert engine.state.target.resp_rate == 16

    def test_steps_are_logged(self, engine, event_sink):
        engine.start_scenario("anaphylaxis")
        engine.scenario_tick()
        engine.jump_to_keyframe(2)
        assert engine.state.target.heart_rate == 135
        engine.flush_events()
        steps = [e["description"] for e in events_of(event_sink, SCENARIO_STEP)]
        assert steps == [
            'Scenario "Anaphylactic Shock": Initial exposure - mild symptoms',
            'Scenario "Anaphylactic Shock": Severe reaction - hypotension, hypoxia',
        ]

    def test_paused_scenario_holds_values(self, engine):
        engine.start_scenario("septic_shock")
        engine.scenario_tick()
        hr = engine.state.target.heart_rate
        engine.toggle_scenario()
        for _ in range(100):
            engine.scenario_tick()
        assert engine.player.elapsed_seconds == 1
        assert engine.state.target.heart_rate == hr

    def test_unknown_scenario(self, engine):
        with pytest.raises(KeyError):
            engine.start_scenario("does_not_exist")

    def test_stop_scenario_keeps_current_vitals(self, engine):
        engine.start_scenario("anaphylaxis")
        engine.jump_to_keyframe(3)
        engine.stop_scenario()
        engine.scenario_tick()
        assert engine.state.target.heart_rate == 150


class TestNumericsAndAlarms:

    def test_jitter_logs_significant_changes(self, engine, event_sink):
        engine.set_vitals(heart_rate=40)
        engine.jitter_tick()
        engine.flush_events()
        changes = events_of(event_sink, VITAL_CHANGE)
        assert [e["vital_sign"] for e in changes] == ["hr"]
        assert changes[0]["old_value"] == "80"

    def test_arrest_numerics_and_log(self, engine, event_sink):
        engine.set_rhythm("VFib")
        displayed = engine.jitter_tick()
        assert displayed.heart_rate == 0
        assert displayed.spo2 is None
        engine.flush_events()
        logged = {e["vital_sign"]: e["new_value"] for e in events_of(event_sink, VITAL_CHANGE)}
        assert logged["spo2"] == "?"
        assert logged["hr"] == "0"

    def test_alarm_is_logged_and_sounds(self, engine_factory, event_sink, clock):
        tone = RecordingToneSink()
        engine = engine_factory(tone_sink=tone)
        engine.set_vitals(heart_rate=30)
        engine.jitter_tick()
        assert AlarmKey("heart_rate", BoundSide.LOW) in engine.alarm_tick()
        assert tone.playing

        engine.set_muted(True)
        assert not tone.playing

        engine.flush_events()
        alarms = events_of(event_sink, ALARM)
        assert len(alarms) == 1
        assert alarms[0]["description"].startswith("Alarm: HR low threshold (50)")
        assert events_of(event_sink, SETTINGS_CHANGE)[-1]["new_value"] == "True"

    def test_tone_resumes_after_pause(self, engine_factory, clock):
        tone = RecordingToneSink()
        engine = engine_factory(tone_sink=tone)
        engine.set_vitals(heart_rate=30)
        engine.jitter_tick()
        engine.alarm_tick()
        assert tone.playing

        engine.stop()
        assert not tone.playing
        engine.start()
        clock.advance(2)
        engine.jitter_tick()
        assert AlarmKey("heart_rate", BoundSide.LOW) in engine.alarm_tick()
        assert tone.playing

    def test_alarm_debounce_with_clock(self, engine, clock):
        engine.set_vitals(spo2=80)
        engine.jitter_tick()
        engine.alarm_tick()
        clock.advance(2)
        engine.alarm_tick()
        assert len(engine.alarms.history) == 1
        clock.advance(3)
        engine.alarm_tick()
        assert len(engine.alarms.history) == 2

    def test_operator_alarm_actions(self, engine):
        engine.set_vitals(heart_rate=150)
        engine.jitter_tick()
        engine.alarm_tick()
        engine.snooze_alarm("hr_high", minutes=2)
        assert not engine.alarms.active_alarms
        assert engine.alarms.snoozed()[0]["key"] == "heart_rate_high"

        engine.set_vitals(spo2=80)
        engine.jitter_tick()
        engine.alarm_tick()
        engine.acknowledge_all_alarms()
        assert not engine.alarms.active_alarms

    def test_threshold_changes(self, engine, event_sink):
        calls = []
        engine.threshold_listeners.append(lambda: calls.append(1))
        engine.set_threshold("heart_rate", low=30, high=200)
        engine.reset_thresholds()
        engine.replace_thresholds({})
        assert engine.alarms.thresholds["heart_rate"].low == 50
        assert calls == [1, 1]
        engine.flush_events()
        assert events_of(event_sink, SETTINGS_CHANGE)[0]["description"].startswith("Setting changed: alarm.heart_rate")


class TestOperatorControls:

    def test_rhythm_presets_and_listeners(self, engine, event_sink):
        seen = []
        engine.rhythm_listeners.append(seen.append)
        engine.set_rhythm("VTach", apply_presets=True)
        engine.set_rhythm(RhythmType.VTACH)
        target = engine.state.target
        assert (target.heart_rate, target.spo2, target.systolic_bp) == (160, 88, 90)
        assert seen == [RhythmType.VTACH]
        engine.flush_events()
        changes = events_of(event_sink, ECG_CHANGE)
        assert len(changes) == 1
        assert changes[0]["description"] == "ECG pattern changed: NSR -> VTach"

    @pytest.mark.parametrize("name", sorted(ECG_PATTERN_PRESETS))
    def test_ecg_pattern_presets(self, engine, name):
        rhythm, hr, conditions = ECG_PATTERN_PRESETS[name]
        engine.set_conditions(noise=4)
        engine.apply_ecg_preset(name)
        assert engine.state.rhythm == rhythm
        assert engine.state.target.heart_rate == hr
        expected = ConditionsOverlay.from_dict(conditions)
        for key, value in expected.explicit().items():
            assert getattr(engine.state.conditions, key) == value
        assert engine.state.conditions.noise_level == 0

    def test_set_conditions_accepts_legacy_keys(self, engine):
        engine.set_conditions(stElev=9, tInv=True)
        assert engine.state.conditions.st_deviation_mm == 3.0
        assert engine.state.conditions.t_wave_inverted is True

    def test_latest_state_is_a_copy(self, engine, advance_animation):
        snap = engine.get_latest_state()
        advance_animation(engine, 160)
        assert snap.time_ms == 0
        assert engine.state.time_ms > 0

    def test_seed_reproducible(self, engine_factory, advance_animation):
        config = SimulationConfig()
        a = engine_factory(config, seed=7)
        b = engine_factory(config, seed=7)
        for e in (a, b):
            e.set_rhythm("AFib")
            e.set_conditions(noise=3, pvc=True)
            advance_animation(e, 5000)
        assert np.array_equal(a.buffers.ecg, b.buffers.ecg)


class TestCases:

    CASE = {
        "name": "Chest pain",
        "config": {
            "hr": 70,
            "temp": 38.2,
            "rhythm": "AFib",
            "alarms": {"hr": {"low": 40, "high": 150}},
        },
        "scenario": {
            "id": "chest_pain",
            "name": "Chest pain course",
            "timeline": [
                {"time": 0, "params": {"hr": 90, "spo2": 95}, "rhythm": "VTach", "label": "Arrival"},
                {"time": 60, "params": {"hr": 110}},
            ],
        },
        "initialVitals": {"hr": 100},
    }

    def test_baseline_priority(self, engine, event_sink):
        scenario = engine.load_case(self.CASE)
        target = engine.state.target
        assert target.heart_rate == 100
        assert target.spo2 == 95
        assert target.temperature == 38.2
        assert engine.state.rhythm == RhythmType.VTACH
        assert engine.alarms.thresholds["heart_rate"].high == 150

        assert scenario.id == "chest_pain"
        assert "chest_pain" in engine.scenarios
        assert not engine.player.is_playing

        engine.flush_events()
        assert events_of(event_sink, CASE_LOAD)[0]["description"] == "Case loaded: Chest pain"

    def test_reset_to_case_defaults(self, engine):
        engine.load_case(self.CASE)
        engine.start_scenario("chest_pain")
        engine.scenario_tick()
        engine.set_vitals(heart_rate=40)
        engine.set_rhythm("Asystole")
        engine.reset_to_case_defaults()
        assert engine.state.target.heart_rate == 100
        assert engine.state.rhythm == RhythmType.VTACH
        assert not engine.player.is_playing

    def test_case_without_scenario(self, engine):
        assert engine.load_case({"config": {"hr": 55}}) is None
        assert engine.state.target.heart_rate == 55
        assert engine.state.rhythm == RhythmType.NSR
        assert engine.case_name == "Unnamed case"

    def test_reset_without_case_is_noop(self):
        engine = SimulationEngine()
        engine.set_vitals(hr=130)
        engine.reset_to_case_defaults()
        assert engine.state.target.heart_rate == 130
