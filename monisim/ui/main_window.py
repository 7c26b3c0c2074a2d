import logging
import sys

from PySide6.QtWidgets import (
    QApplication,
    QComboBox,
    QFrame,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from monisim.core.config import load_alarm_thresholds
from monisim.core.engine import ECG_PATTERN_PRESETS, SimulationEngine
from monisim.core.enums import RhythmType
from monisim.core.event_log import EventLogger, JsonlEventSink
from monisim.core.session import MonitorSession
from monisim.core.state import SimulationConfig
from monisim.ui.audio_sink import create_tone_sink
from monisim.ui.monitor_widget import PatientMonitorWidget
from monisim.ui.styles import (
    COLORS,
    FONTS,
    get_bar_style,
    get_base_widget_style,
    get_button_style,
    get_combobox_style,
)

logger = logging.getLogger(__name__)


class MainWindow(QMainWindow):
    def __init__(self, config: SimulationConfig = None, alarm_config: str = None,
                 event_log_path: str = None, scenario_id: str = None):
        super().__init__()
        self.setWindowTitle("MoniSim - Patient Monitor Simulator")
        self.resize(1400, 820)
        self.setStyleSheet(get_base_widget_style())

        self.config = config or SimulationConfig()
        sink = JsonlEventSink(event_log_path) if event_log_path else None
        self.engine = SimulationEngine(
            self.config,
            thresholds=load_alarm_thresholds(alarm_config),
            event_logger=EventLogger(sink),
            tone_sink=create_tone_sink(self.config.audio_enabled, parent=self),
        )
        self.session = MonitorSession(self.engine, parent=self)
        self.setup_ui()

        self.session.frame_ready.connect(self.on_frame)
        self.session.numerics_changed.connect(self.on_numerics)
        self.session.alarms_changed.connect(self.on_alarms)

        self.monitor.update_numerics(self.engine.state.displayed)
        if scenario_id:
            self.session.start_scenario(scenario_id)
        self.session.start()
        self._set_run_state("running")

    def setup_ui(self):
        central = QWidget()
        self.setCentralWidget(central)
        layout = QVBoxLayout(central)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)

        self.monitor = PatientMonitorWidget()
        layout.addWidget(self.monitor, stretch=1)

        bar = QFrame()
        bar.setStyleSheet(get_bar_style("top"))
        bar_layout = QHBoxLayout(bar)
        bar_layout.setContentsMargins(10, 6, 10, 6)
        bar_layout.setSpacing(8)
        layout.addWidget(bar)

        self.btn_start = QPushButton("Pause")
        self.btn_start.clicked.connect(self.toggle_simulation)
        bar_layout.addWidget(self.btn_start)

        self.lbl_status = QLabel("")
        bar_layout.addWidget(self.lbl_status)
        self.lbl_time = QLabel("00:00:00")
        self.lbl_time.setStyleSheet(f"color: {COLORS['text_secondary']}; font-size: {FONTS['size_medium']};")
        bar_layout.addWidget(self.lbl_time)

        bar_layout.addSpacing(16)
        self.cmb_rhythm = QComboBox()
        self.cmb_rhythm.setStyleSheet(get_combobox_style())
        for rhythm in RhythmType:
            self.cmb_rhythm.addItem(rhythm.value, rhythm)
        self.cmb_rhythm.activated.connect(self.on_rhythm_selected)
        bar_layout.addWidget(self.cmb_rhythm)

        self.cmb_pattern = QComboBox()
        self.cmb_pattern.setStyleSheet(get_combobox_style())
        self.cmb_pattern.addItem("ECG pattern...", None)
        for name in ECG_PATTERN_PRESETS:
            self.cmb_pattern.addItem(name.upper() if len(name) <= 5 else name.title(), name)
        self.cmb_pattern.activated.connect(self.on_pattern_selected)
        bar_layout.addWidget(self.cmb_pattern)

        bar_layout.addSpacing(16)
        self.cmb_scenario = QComboBox()
        self.cmb_scenario.setStyleSheet(get_combobox_style())
        for scenario in self.engine.scenarios.values():
            self.cmb_scenario.addItem(scenario.name, scenario.id)
        bar_layout.addWidget(self.cmb_scenario)

        self.btn_scenario = QPushButton("Play")
        self.btn_scenario.setStyleSheet(get_button_style("primary", outlined=True))
        self.btn_scenario.clicked.connect(self.on_scenario_play)
        bar_layout.addWidget(self.btn_scenario)
        btn_stop = QPushButton("Stop")
        btn_stop.setStyleSheet(get_button_style(outlined=True))
        btn_stop.clicked.connect(self.on_scenario_stop)
        bar_layout.addWidget(btn_stop)

        bar_layout.addStretch()
        btn_ack = QPushButton("Acknowledge")
        btn_ack.setStyleSheet(get_button_style("warning", outlined=True))
        btn_ack.clicked.connect(self.engine.acknowledge_all_alarms)
        bar_layout.addWidget(btn_ack)
        btn_snooze = QPushButton("Snooze")
        btn_snooze.setStyleSheet(get_button_style("warning", outlined=True))
        btn_snooze.clicked.connect(lambda: self.engine.snooze_all_alarms())
        bar_layout.addWidget(btn_snooze)
        self.btn_mute = QPushButton("Mute")
        self.btn_mute.setCheckable(True)
        self.btn_mute.setStyleSheet(get_button_style("danger", outlined=True))
        self.btn_mute.toggled.connect(self.engine.set_muted)
        bar_layout.addWidget(self.btn_mute)

    def _set_run_state(self, state):
        if state == "running":
            self.btn_start.setText("Pause")
            self.btn_start.setStyleSheet(get_button_style("warning", min_width=90))
            color, text = COLORS['success'], "RUNNING"
        else:
            self.btn_start.setText("Resume")
            self.btn_start.setStyleSheet(get_button_style("primary", outlined=True, min_width=90))
            color, text = COLORS['warning'], "PAUSED"
        self.lbl_status.setText(text)
        self.lbl_status.setStyleSheet(f"color: {color}; font-size: {FONTS['size_small']}; font-weight: 600;")

    def toggle_simulation(self):
        if self.session.is_active:
            self.session.pause()
            self._set_run_state("paused")
        else:
            self.session.start()
            self._set_run_state("running")

    # --- Slots ---

    def on_frame(self):
        self.monitor.update_waveforms(self.engine.buffers.snapshot())
        total_seconds = int(self.engine.state.time_ms / 1000)
        hours, rem = divmod(total_seconds, 3600)
        self.lbl_time.setText(f"{hours:02d}:{rem // 60:02d}:{rem % 60:02d}")

    def on_numerics(self):
        self.monitor.update_numerics(self.engine.state.displayed)
        player = self.engine.player
        scenario_text = ""
        if player.scenario is not None:
            idx = player.current_step_index()
            step = player.scenario[idx].label if idx is not None else ""
            scenario_text = f"{player.scenario.name}  {int(player.elapsed_seconds)}s  {step or ''}"
        self.monitor.update_header(self.engine.state.rhythm.value, scenario_text)
        self.cmb_rhythm.setCurrentIndex(list(RhythmType).index(self.engine.state.rhythm))

    def on_alarms(self):
        self.monitor.update_alarms(self.engine.alarms.alarm_flags())

    def on_rhythm_selected(self, index):
        self.engine.set_rhythm(self.cmb_rhythm.itemData(index), apply_presets=True)
        self.on_numerics()

    def on_pattern_selected(self, index):
        name = self.cmb_pattern.itemData(index)
        if name:
            self.engine.apply_ecg_preset(name)
            self.on_numerics()
        self.cmb_pattern.setCurrentIndex(0)

    def on_scenario_play(self):
        player = self.engine.player
        selected = self.cmb_scenario.currentData()
        if player.scenario is not None and player.scenario.id == selected:
            self.session.toggle_scenario()
        else:
            self.session.start_scenario(selected)
        self.btn_scenario.setText("Pause" if player.is_playing else "Play")

    def on_scenario_stop(self):
        self.session.stop_scenario()
        self.btn_scenario.setText("Play")
        self.on_numerics()

    def closeEvent(self, event):
        self.session.shutdown()
        super().closeEvent(event)


def main():
    app = QApplication.instance() or QApplication(sys.argv)
    window = MainWindow()
    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
