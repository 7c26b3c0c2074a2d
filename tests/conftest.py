from pathlib import Path
import os
import sys

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import numpy as np
import pytest

from monisim.core.engine import SimulationEngine
from monisim.core.event_log import EventLogger
from monisim.core.state import SimulationConfig


class FakeClock:
    """Manually advanced wall clock (seconds)."""
    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class RecordingSink:
    """Event sink that keeps every batch it receives."""
    def __init__(self):
        self.batches = []

    def __call__(self, events):
        self.batches.append(list(events))

    @property
    def events(self):
        return [e for batch in self.batches for e in batch]


@pytest.fixture
def rng():
    """Seeded generator so stochastic tests are reproducible."""
    return np.random.default_rng(42)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def event_sink():
    return RecordingSink()


@pytest.fixture
def engine_factory(clock, event_sink):
    """Build an engine with a seeded RNG, a fake clock and a recording event sink."""
    def _make(config=None, seed=42, start=True, **kwargs):
        engine = SimulationEngine(
            config or SimulationConfig(),
            rng=np.random.default_rng(seed),
            event_logger=EventLogger(event_sink),
            clock=clock,
            **kwargs,
        )
        if start:
            engine.start()
        return engine

    return _make


@pytest.fixture
def engine(engine_factory):
    """Running engine in factory state (NSR, hr 80)."""
    return engine_factory()


@pytest.fixture
def advance_animation():
    """Drive animation ticks of dt_ms for a total duration."""
    def _advance(engine, total_ms, dt_ms=16.0):
        steps = int(total_ms / dt_ms)
        for _ in range(steps):
            engine.animation_tick(dt_ms)

    return _advance


@pytest.fixture(scope="session")
def qapp():
    from PySide6.QtWidgets import QApplication

    app = QApplication.instance()
    if not app:
        app = QApplication(sys.argv)
    return app
