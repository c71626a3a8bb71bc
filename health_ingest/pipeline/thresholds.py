"""Clinical safety thresholds."""

from __future__ import annotations

SPO2_MIN = 90
HEART_RATE_MIN = 60


def evaluate(spo2: float, heart_rate: float) -> bool:
    """True when the reading breaches a threshold (strict ``<``)."""
    return spo2 < SPO2_MIN or heart_rate < HEART_RATE_MIN


class ThresholdEvaluator:
    """Configurable variant of :func:`evaluate`.

    No validation of the inputs is done: NaN never breaches, negative
    values always do, exactly as the comparisons read.
    """

    def __init__(self, spo2_min: float = SPO2_MIN, heart_rate_min: float = HEART_RATE_MIN):
        self.spo2_min = spo2_min
        self.heart_rate_min = heart_rate_min

    def evaluate(self, spo2: float, heart_rate: float) -> bool:
        return spo2 < self.spo2_min or heart_rate < self.heart_rate_min
