"""
Widget tests (offscreen platform).
"""

import pytest

from monisim.core.enums import RhythmType
from monisim.core.state import DisplayedVitals, SimulationConfig
from monisim.monitors.tone import NullToneSink
from monisim.ui.audio_sink import LoopingPcmDevice, create_tone_sink
from monisim.ui.monitor_widget import NumericDisplay, PatientMonitorWidget


@pytest.fixture
def monitor(qapp):
    widget = PatientMonitorWidget()
    yield widget
    widget.deleteLater()


@pytest.fixture
def window(qapp, tmp_path):
    from monisim.ui.main_window import MainWindow

    win = MainWindow(SimulationConfig(audio_enabled=False, rng_seed=1),
                     event_log_path=str(tmp_path / "events.jsonl"))
    yield win
    win.close()


class TestNumericDisplay:

    def test_alarm_states(self, qapp):
        tile = NumericDisplay("HR", "bpm")
        tile.set_alarm(True, is_low=True)
        assert tile.current_alarm_state == "low"
        assert tile.lbl_title.text() == "HR LOW"
        tile.set_alarm(True)
        assert tile.lbl_title.text() == "HR HIGH"
        tile.set_alarm(False)
        assert tile.current_alarm_state is None
        assert tile.lbl_title.text() == "HR"


class TestMonitorWidget:

    def test_arrest_numerics(self, monitor):
        shown = DisplayedVitals(heart_rate=0, spo2=None, resp_rate=14, systolic_bp=None,
                                diastolic_bp=None, temperature=36.84, etco2=12)
        monitor.update_numerics(shown)
        assert monitor.numerics["heart_rate"].lbl_val.text() == "0"
        assert monitor.numerics["spo2"].lbl_val.text() == "?"
        assert monitor.numerics["blood_pressure"].lbl_val.text() == "?/?"
        assert monitor.numerics["temperature"].lbl_val.text() == "36.8"

    def test_blood_pressure_tile_combines_alarms(self, monitor):
        monitor.update_alarms({"diastolic_bp": {"low": True, "high": False}})
        assert monitor.numerics["blood_pressure"].current_alarm_state == "low"
        assert monitor.numerics["heart_rate"].current_alarm_state is None
        monitor.update_alarms({})
        assert monitor.numerics["blood_pressure"].current_alarm_state is None

    def test_header(self, monitor):
        monitor.update_header("VTach", "Anaphylactic Shock  12s")
        assert monitor.lbl_rhythm.text() == "VTach"
        assert monitor.lbl_scenario.text() == "Anaphylactic Shock  12s"


class TestMainWindow:

    def test_starts_running(self, window):
        assert window.session.is_active
        assert isinstance(window.engine.tone.sink, NullToneSink)
        assert window.lbl_status.text() == "RUNNING"

    def test_rhythm_selection_applies_presets(self, window):
        index = list(RhythmType).index(RhythmType.VTACH)
        window.on_rhythm_selected(index)
        assert window.engine.state.rhythm == RhythmType.VTACH
        assert window.engine.state.target.heart_rate == 160
        assert window.monitor.lbl_rhythm.text() == "VTach"

    def test_pattern_selection_resets_combo(self, window):
        index = window.cmb_pattern.findData("stemi")
        window.on_pattern_selected(index)
        assert window.engine.state.conditions.st_deviation_mm == 2
        assert window.cmb_pattern.currentIndex() == 0

    def test_scenario_play_pause_stop(self, window):
        window.cmb_scenario.setCurrentIndex(window.cmb_scenario.findData("anaphylaxis"))
        window.on_scenario_play()
        assert window.engine.player.is_playing
        assert window.btn_scenario.text() == "Pause"
        window.on_scenario_play()
        assert not window.engine.player.is_playing
        assert window.btn_scenario.text() == "Play"
        window.on_scenario_stop()
        assert window.engine.player.scenario is None

    def test_pause_and_resume(self, window):
        window.toggle_simulation()
        assert not window.session.is_active
        assert window.btn_start.text() == "Resume"
        window.toggle_simulation()
        assert window.session.is_active

    def test_frame_slot_updates_clock(self, window):
        window.engine.state.time_ms = 3_725_000
        window.on_frame()
        assert window.lbl_time.text() == "01:02:05"

    def test_mute_button(self, window):
        window.btn_mute.setChecked(True)
        assert window.engine.alarms.muted


class TestAudio:

    def test_disabled_audio_is_silent(self):
        assert isinstance(create_tone_sink(False), NullToneSink)

    def test_looping_device_wraps(self, qapp):
        device = LoopingPcmDevice(b"abcd")
        assert device.readData(6) == b"abcdab"
        assert device.readData(3) == b"cda"
