"""
Shared utility functions for MoniSim.
"""

import math


def clamp(value: float, low: float, high: float) -> float:
    """
    Clamp value to the inclusive range [low, high].
    """
    if low > high:
        low, high = high, low
    return max(low, min(high, value))


def finite_or(value, default: float) -> float:
    """
    Return value as float if it is a finite number, else default.
    Strings holding numbers are accepted (legacy case files store them).
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        num = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(num):
        return default
    return num


def lerp(start: float, end: float, progress: float) -> float:
    return start + (end - start) * progress


TRUE_STRINGS = {"true", "1", "yes", "on"}
FALSE_STRINGS = {"false", "0", "no", "off", ""}


def parse_bool(value, default=None):
    """
    Interpret a JSON flag. Strings are matched case-insensitively
    ("false", "0", "off" are False); anything unrecognised gives default.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in TRUE_STRINGS:
            return True
        if text in FALSE_STRINGS:
            return False
    return default
