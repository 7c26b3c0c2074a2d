import math


def synthesize_resp(resp_phase: float) -> float:
    """Impedance respiration trace: one sinusoid per breath."""
    return math.sin(resp_phase * 2.0 * math.pi)
