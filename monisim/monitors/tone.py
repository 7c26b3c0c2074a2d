"""
Alarm tone generation.

The alarm beeps with a square wave: a short on-pulse within a longer
period (200 ms on, 800 ms off at 800 Hz). The PCM for one period is
rendered with numpy so any audio backend can loop it.
"""

import logging
from dataclasses import dataclass
import numpy as np

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BeepPattern:
    frequency_hz: float = 800.0
    on_sec: float = 0.2
    period_sec: float = 1.0
    volume: float = 0.1


def render_beep_period(pattern: BeepPattern = BeepPattern(), sample_rate: int = 44100) -> np.ndarray:
    """
    One beep period as int16 mono PCM: square wave for on_sec, silence after.
    """
    n_total = int(round(pattern.period_sec * sample_rate))
    n_on = min(n_total, int(round(pattern.on_sec * sample_rate)))
    t = np.arange(n_on) / sample_rate
    square = np.sign(np.sin(2.0 * np.pi * pattern.frequency_hz * t))
    square[square == 0] = 1.0
    pcm = np.zeros(n_total, dtype=np.int16)
    pcm[:n_on] = (square * pattern.volume * np.iinfo(np.int16).max).astype(np.int16)
    return pcm


class NullToneSink:
    """Silent sink used when no audio output is available."""
    def __init__(self):
        self.is_playing = False

    def start(self):
        self.is_playing = True

    def stop(self):
        self.is_playing = False


class ToneController:
    """
    Starts the tone when alarms become active and unmuted, stops it
    immediately when they clear or the monitor is muted.
    Sink failures degrade to silence.
    """
    def __init__(self, sink=None):
        self.sink = sink if sink is not None else NullToneSink()
        self.sounding = False

    def update(self, should_sound: bool):
        if should_sound == self.sounding:
            return
        try:
            if should_sound:
                self.sink.start()
            else:
                self.sink.stop()
        except Exception:
            logger.exception("Audio sink failed; alarms continue silently")
            self.sink = NullToneSink()
        self.sounding = should_sound

    def on_alarm_state(self, alarms):
        """Listener for AlarmSystem.on_active_changed."""
        self.update(alarms.should_sound)

    def shutdown(self):
        self.update(False)
