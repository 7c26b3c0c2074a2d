"""
Qt audio output for the alarm tone.

The beep period rendered by monisim.monitors.tone is looped by a pull-mode
QIODevice, so the tone keeps its rhythm for as long as the sink runs.
"""

import logging

from PySide6.QtCore import QByteArray, QIODevice
from PySide6.QtMultimedia import QAudioFormat, QAudioSink, QMediaDevices

from monisim.monitors.tone import BeepPattern, NullToneSink, render_beep_period

logger = logging.getLogger(__name__)

SAMPLE_RATE = 44100


class LoopingPcmDevice(QIODevice):
    """Read-only device that repeats one PCM buffer forever."""
    def __init__(self, pcm: bytes, parent=None):
        super().__init__(parent)
        self._data = QByteArray(pcm)
        self._pos = 0

    def start(self):
        self._pos = 0
        self.open(QIODevice.ReadOnly)

    def stop(self):
        self._pos = 0
        self.close()

    def readData(self, maxlen):
        total = self._data.size()
        if total == 0:
            return bytes()
        out = QByteArray()
        while maxlen > 0:
            chunk = min(total - self._pos, maxlen)
            out.append(self._data.mid(self._pos, chunk))
            self._pos = (self._pos + chunk) % total
            maxlen -= chunk
        return out.data()

    def writeData(self, data):
        return 0

    def bytesAvailable(self):
        return self._data.size() + super().bytesAvailable()


class QtToneSink:
    """Plays the alarm beep on the default audio output."""
    def __init__(self, pattern: BeepPattern = BeepPattern(), parent=None):
        device = QMediaDevices.defaultAudioOutput()
        if device.isNull():
            raise RuntimeError("No audio output device")

        fmt = QAudioFormat()
        fmt.setSampleRate(SAMPLE_RATE)
        fmt.setChannelCount(1)
        fmt.setSampleFormat(QAudioFormat.Int16)
        if not device.isFormatSupported(fmt):
            raise RuntimeError(f"{device.description()} does not support 16-bit mono PCM")

        pcm = render_beep_period(pattern, SAMPLE_RATE).tobytes()
        self._generator = LoopingPcmDevice(pcm, parent)
        self._sink = QAudioSink(device, fmt, parent)
        self.is_playing = False

    def start(self):
        if self.is_playing:
            return
        self._generator.start()
        self._sink.start(self._generator)
        self.is_playing = True

    def stop(self):
        if not self.is_playing:
            return
        self._sink.stop()
        self._generator.stop()
        self.is_playing = False


def create_tone_sink(enabled: bool = True, parent=None):
    """QtToneSink when audio is enabled and available, else a silent sink."""
    if not enabled:
        return NullToneSink()
    try:
        return QtToneSink(parent=parent)
    except RuntimeError as e:
        logger.warning("Alarm audio unavailable (%s); alarms will be silent", e)
        return NullToneSink()
