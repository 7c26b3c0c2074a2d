import pyqtgraph as pg
from PySide6.QtWidgets import QWidget, QVBoxLayout, QHBoxLayout, QLabel, QFrame
from PySide6.QtCore import Qt
from PySide6.QtGui import QFont

from monisim.core.state import DisplayedVitals
from monisim.monitors.buffers import BufferSnapshot
from .styles import (
    COLORS,
    VITAL_DISPLAY,
    get_bar_style,
    get_base_widget_style,
    get_numeric_frame_style,
)


class NumericDisplay(QFrame):
    """
    One vital sign tile: label, value, unit. Switches to the alarm style
    (and appends LOW/HIGH to the label) while an alarm is active.
    """
    def __init__(self, label, unit="", color=COLORS['text'], initial_value="--", compact=False):
        super().__init__()
        self.base_color = color
        self.label_text = label
        self.current_alarm_state = None  # None, 'low', 'high'

        layout = QVBoxLayout(self)
        layout.setSpacing(0)
        layout.setContentsMargins(10, 6, 10, 8)
        self.val_size = "24px" if compact else "38px"

        self.lbl_title = QLabel(label)
        layout.addWidget(self.lbl_title, alignment=Qt.AlignRight)

        self.lbl_val = QLabel(initial_value)
        self.lbl_val.setAlignment(Qt.AlignRight)
        self.lbl_val.setStyleSheet(
            f"color: {color}; font-size: {self.val_size}; font-weight: 700; font-family: Arial;"
        )
        layout.addWidget(self.lbl_val)

        if unit:
            lbl_unit = QLabel(unit)
            lbl_unit.setStyleSheet(f"color: {COLORS['text_dim']}; font-size: 11px; font-family: Arial;")
            layout.addWidget(lbl_unit, alignment=Qt.AlignRight)

        self._apply_style()

    def _apply_style(self):
        state = self.current_alarm_state
        color = self.base_color
        title = self.label_text
        if state is not None:
            color = COLORS['danger'] if state == 'low' else COLORS['warning']
            title = f"{self.label_text} {state.upper()}"
        self.setStyleSheet(get_numeric_frame_style(color, alarm=state is not None))
        self.lbl_title.setText(title)
        self.lbl_title.setStyleSheet(
            f"color: {color}; font-size: 12px; font-weight: 600; font-family: Arial;"
        )

    def set_value(self, text):
        self.lbl_val.setText(text)

    def set_alarm(self, active: bool, is_low: bool = False):
        new_state = ('low' if is_low else 'high') if active else None
        if self.current_alarm_state != new_state:
            self.current_alarm_state = new_state
            self._apply_style()


class PatientMonitorWidget(QWidget):
    """Bedside monitor view: ECG, pleth and resp traces plus the numerics column."""
    def __init__(self):
        super().__init__()
        self.setStyleSheet(get_base_widget_style())

        self.layout = QVBoxLayout(self)
        self.layout.setContentsMargins(0, 0, 0, 0)
        self.layout.setSpacing(0)
        self.setup_ui()

    def setup_ui(self):
        header = QFrame()
        header.setStyleSheet(get_bar_style("bottom"))
        header.setFixedHeight(32)
        header_layout = QHBoxLayout(header)
        header_layout.setContentsMargins(12, 0, 12, 0)

        self.lbl_rhythm = QLabel("NSR")
        self.lbl_rhythm.setStyleSheet(f"color: {COLORS['ecg']}; font-size: 12px; font-weight: 600;")
        header_layout.addWidget(self.lbl_rhythm)
        header_layout.addStretch()
        self.lbl_scenario = QLabel("")
        self.lbl_scenario.setStyleSheet(f"color: {COLORS['text_secondary']}; font-size: 12px;")
        header_layout.addWidget(self.lbl_scenario)
        header_layout.addStretch()
        lbl_brand = QLabel("MoniSim")
        lbl_brand.setStyleSheet(f"color: {COLORS['text_dim']}; font-size: 11px;")
        header_layout.addWidget(lbl_brand)
        self.layout.addWidget(header)

        content = QFrame()
        content.setStyleSheet(f"background-color: {COLORS['background_alt']};")
        content_layout = QHBoxLayout(content)
        content_layout.setContentsMargins(4, 4, 4, 4)
        content_layout.setSpacing(4)
        self.layout.addWidget(content, stretch=1)

        wave_frame = QFrame()
        wave_layout = QVBoxLayout(wave_frame)
        wave_layout.setContentsMargins(0, 0, 0, 0)
        wave_layout.setSpacing(2)
        content_layout.addWidget(wave_frame, stretch=70)

        num_frame = QFrame()
        num_frame.setStyleSheet(f"background-color: {COLORS['panel']}; border-left: 1px solid {COLORS['border']};")
        num_layout = QVBoxLayout(num_frame)
        num_layout.setContentsMargins(6, 6, 6, 6)
        num_layout.setSpacing(6)
        content_layout.addWidget(num_frame, stretch=25)

        self.ecg_plot, self.ecg_curve = self.create_plot(COLORS['ecg'], "ECG  II", y_range=(-1.0, 1.5))
        self.pleth_plot, self.pleth_curve = self.create_plot(COLORS['pleth'], "Pleth", y_range=(-0.2, 1.3))
        self.resp_plot, self.resp_curve = self.create_plot(COLORS['resp'], "Resp", y_range=(-1.2, 1.2))
        for plot in (self.ecg_plot, self.pleth_plot, self.resp_plot):
            wave_layout.addWidget(plot)

        self.numerics = {}
        for key, (label, unit, color) in VITAL_DISPLAY.items():
            tile = NumericDisplay(label, unit, color, compact=key in ("resp_rate", "temperature"))
            self.numerics[key] = tile
            num_layout.addWidget(tile)
        num_layout.addStretch()

    def create_plot(self, color, title, y_range):
        plot = pg.PlotWidget()
        plot.setBackground(COLORS['background_alt'])
        plot.showGrid(x=False, y=False)
        plot.setMouseEnabled(x=False, y=False)
        plot.hideAxis('bottom')
        plot.hideAxis('left')
        plot.setYRange(y_range[0], y_range[1], padding=0)
        plot.setMinimumHeight(90)

        text = pg.TextItem(text=title, color=color, anchor=(0, 0))
        text.setFont(QFont('Arial', 9, QFont.Weight.Medium))
        text.setPos(5, y_range[1])
        plot.addItem(text)

        plot.setAntialiasing(True)
        curve = plot.plot(pen=pg.mkPen(color=color, width=2.0))
        return plot, curve

    def update_waveforms(self, snapshot: BufferSnapshot):
        self.ecg_curve.setData(snapshot.ecg)
        self.pleth_curve.setData(snapshot.pleth)
        self.resp_curve.setData(snapshot.resp)

    def update_numerics(self, displayed: DisplayedVitals):
        for key, tile in self.numerics.items():
            if key == "blood_pressure":
                tile.set_value(f"{displayed.format('systolic_bp')}/{displayed.format('diastolic_bp')}")
            else:
                tile.set_value(displayed.format(key))

    def update_alarms(self, flags: dict):
        """flags: {vital: {'low': bool, 'high': bool}} from AlarmSystem.alarm_flags()."""
        for key, tile in self.numerics.items():
            if key == "blood_pressure":
                entries = [flags.get("systolic_bp", {}), flags.get("diastolic_bp", {})]
            else:
                entries = [flags.get(key, {})]
            is_low = any(e.get('low') for e in entries)
            is_high = any(e.get('high') for e in entries)
            tile.set_alarm(is_low or is_high, is_low)

    def update_header(self, rhythm_label: str, scenario_text: str = ""):
        self.lbl_rhythm.setText(rhythm_label)
        self.lbl_scenario.setText(scenario_text)
