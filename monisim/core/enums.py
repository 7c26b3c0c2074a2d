import logging
from enum import Enum

logger = logging.getLogger(__name__)


class RhythmType(Enum):
    """Cardiac Rhythm Types"""
    NSR = "NSR"
    AFIB = "AFib"
    VTACH = "VTach"
    VFIB = "VFib"
    ASYSTOLE = "Asystole"

    @classmethod
    def parse(cls, value) -> "RhythmType":
        """
        Resolve a rhythm from a member, its name or its short label.
        Unknown values fall back to NSR.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            text = value.strip()
            for r in cls:
                if r.value.lower() == text.lower() or r.name == text.upper():
                    return r
        logger.warning("Unknown rhythm %r, falling back to NSR", value)
        return cls.NSR

    @property
    def is_arrest(self) -> bool:
        """No perfusion: numerics go blank, pulse oximetry is lost."""
        return self in (RhythmType.VFIB, RhythmType.ASYSTOLE)


class BoundSide(Enum):
    LOW = "low"
    HIGH = "high"


class ScenarioStatus(Enum):
    IDLE = "Idle"
    RUNNING = "Running"
    PAUSED = "Paused"
