"""Pipeline - Telemetry intake, per-device dispatch and thresholds."""

from .dispatcher import DeviceOrderedDispatcher
from .intake import PipelineResult, TelemetryIntake
from .stats import IntakeStats
from .thresholds import ThresholdEvaluator, evaluate

__all__ = [
    "DeviceOrderedDispatcher",
    "IntakeStats",
    "PipelineResult",
    "TelemetryIntake",
    "ThresholdEvaluator",
    "evaluate",
]
