import logging
import time

from PySide6.QtCore import QObject, QTimer, Signal

from .engine import SimulationEngine
from .enums import RhythmType

logger = logging.getLogger(__name__)

# Longest real-time gap fed to the clocks in one animation tick (ms).
MAX_FRAME_DT_MS = 200.0


class MonitorSession(QObject):
    """
    Schedules the engine's periodic activities on the Qt event loop.

    Four timers, all single-threaded: animation (16 ms, measured dt),
    scenario (1 s), jitter (2 s) and alarm evaluation (2 s). A fifth timer
    flushes the event log. The jitter timer restarts on every rhythm change
    and the alarm timer whenever the thresholds are replaced, so each
    starts a fresh period from the change.
    """
    frame_ready = Signal()
    numerics_changed = Signal()
    alarms_changed = Signal()

    def __init__(self, engine: SimulationEngine, parent=None):
        super().__init__(parent)
        self.engine = engine
        cfg = engine.config

        self.animation_timer = self._make_timer(cfg.animation_interval_ms, self._on_animation)
        self.scenario_timer = self._make_timer(cfg.scenario_interval_ms, self._on_scenario)
        self.jitter_timer = self._make_timer(cfg.jitter_interval_ms, self._on_jitter)
        self.alarm_timer = self._make_timer(cfg.alarm_interval_ms, self._on_alarm)
        self.flush_timer = self._make_timer(int(cfg.event_batch_seconds * 1000), self._on_flush)

        self._last_frame = None
        engine.rhythm_listeners.append(self._on_rhythm_changed)
        engine.threshold_listeners.append(self._on_thresholds_replaced)

    def _make_timer(self, interval_ms: int, slot) -> QTimer:
        timer = QTimer(self)
        timer.setInterval(int(interval_ms))
        timer.timeout.connect(slot)
        return timer

    @property
    def timers(self):
        return (self.animation_timer, self.scenario_timer, self.jitter_timer,
                self.alarm_timer, self.flush_timer)

    @property
    def is_active(self) -> bool:
        return self.animation_timer.isActive()

    # --- Lifecycle ---

    def start(self):
        self.engine.start()
        self._last_frame = time.perf_counter()
        for timer in self.timers:
            timer.start()
        if not self.engine.player.is_playing:
            self.scenario_timer.stop()
        logger.info("Monitor session started")

    def pause(self):
        """Freeze every clock; scenario position is kept."""
        for timer in self.timers:
            timer.stop()
        self.engine.stop()

    def shutdown(self):
        """Stop all timers, silence the tone and flush pending events."""
        self.pause()
        self.engine.flush_events()
        logger.info("Monitor session stopped")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
        return False

    # --- Scenario control ---

    def start_scenario(self, scenario):
        self.engine.start_scenario(scenario)
        if self.is_active:
            self.scenario_timer.start()

    def toggle_scenario(self):
        self.engine.toggle_scenario()
        if self.engine.player.is_playing and self.is_active:
            self.scenario_timer.start()
        else:
            self.scenario_timer.stop()

    def stop_scenario(self):
        self.scenario_timer.stop()
        self.engine.stop_scenario()

    def run_custom_trend(self, target: dict, duration_seconds: float):
        scenario = self.engine.run_custom_trend(target, duration_seconds)
        if self.is_active:
            self.scenario_timer.start()
        return scenario

    # --- Timer slots ---

    def _on_animation(self):
        now = time.perf_counter()
        dt_ms = (now - self._last_frame) * 1000.0 if self._last_frame is not None else 0.0
        self._last_frame = now
        self.engine.animation_tick(min(dt_ms, MAX_FRAME_DT_MS))
        self.frame_ready.emit()

    def _on_scenario(self):
        frame = self.engine.scenario_tick()
        if not self.engine.player.is_playing:
            self.scenario_timer.stop()
        if not frame.is_empty():
            self.numerics_changed.emit()

    def _on_jitter(self):
        self.engine.jitter_tick()
        self.numerics_changed.emit()

    def _on_alarm(self):
        self.engine.alarm_tick()
        self.alarms_changed.emit()

    def _on_flush(self):
        self.engine.flush_events()

    def _on_rhythm_changed(self, rhythm: RhythmType):
        if self.jitter_timer.isActive():
            self.jitter_timer.start()

    def _on_thresholds_replaced(self):
        if self.alarm_timer.isActive():
            self.alarm_timer.start()
