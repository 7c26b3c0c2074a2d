from dataclasses import dataclass
import numpy as np

CHANNELS = ("ecg", "pleth", "resp")


def shift_append(existing: np.ndarray, new_chunk) -> np.ndarray:
    """Drop the oldest samples and append new_chunk at the end (in place)."""
    chunk = np.asarray(new_chunk, dtype=existing.dtype).ravel()
    c = len(chunk)
    if c == 0:
        return existing
    if c >= len(existing):
        existing[:] = chunk[-len(existing):]
        return existing
    existing[:-c] = existing[c:]
    existing[-c:] = chunk
    return existing


@dataclass(frozen=True)
class BufferSnapshot:
    """Read-only view handed to the render sink. Most recent sample last."""
    ecg: np.ndarray
    pleth: np.ndarray
    resp: np.ndarray


class ChannelBuffers:
    """
    Fixed-length rolling sample history per waveform channel.
    """
    def __init__(self, size: int = 1000):
        self.size = max(1, int(size))
        self.ecg = np.zeros(self.size)
        self.pleth = np.zeros(self.size)
        self.resp = np.zeros(self.size)

    def push(self, ecg: float, pleth: float, resp: float):
        shift_append(self.ecg, (ecg,))
        shift_append(self.pleth, (pleth,))
        shift_append(self.resp, (resp,))

    def push_many(self, ecg, pleth, resp):
        shift_append(self.ecg, ecg)
        shift_append(self.pleth, pleth)
        shift_append(self.resp, resp)

    def clear(self):
        for name in CHANNELS:
            getattr(self, name).fill(0.0)

    def snapshot(self) -> BufferSnapshot:
        arrays = []
        for name in CHANNELS:
            arr = getattr(self, name).copy()
            arr.setflags(write=False)
            arrays.append(arr)
        return BufferSnapshot(*arrays)
