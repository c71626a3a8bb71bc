"""Counters for the telemetry intake."""

from __future__ import annotations

import threading
import time
from collections import Counter as _Tally

from prometheus_client import Counter

from ..domain.stages import PipelineStage

PIPELINE_MESSAGES = Counter(
    "telemetry_pipeline_messages_total",
    "Telemetry messages by terminal state",
    ["outcome"],  # alert_dispatched, no_alert, alert_dropped, dropped
)
PIPELINE_DROPS = Counter(
    "telemetry_pipeline_drops_total",
    "Dropped telemetry messages by the stage that failed",
    ["stage"],
)


class IntakeStats:
    """In-process counters, safe to update from worker threads."""

    def __init__(self):
        self._lock = threading.Lock()
        self.received = 0
        self.persisted = 0
        self.alerts_dispatched = 0
        self.alerts_dropped = 0
        self.no_alert = 0
        self.dropped_by_stage: _Tally = _Tally()
        self.last_message_at: float = 0

    def record_received(self) -> None:
        with self._lock:
            self.received += 1
            self.last_message_at = time.time()

    def record_persisted(self) -> None:
        with self._lock:
            self.persisted += 1

    def record_terminal(self, stage: PipelineStage, failed_stage: PipelineStage | None = None) -> None:
        with self._lock:
            if stage == PipelineStage.DROPPED:
                key = failed_stage.value if failed_stage else "unknown"
                self.dropped_by_stage[key] += 1
                PIPELINE_DROPS.labels(stage=key).inc()
            elif stage == PipelineStage.ALERT_DISPATCHED:
                self.alerts_dispatched += 1
            elif stage == PipelineStage.ALERT_DROPPED:
                self.alerts_dropped += 1
            elif stage == PipelineStage.NO_ALERT:
                self.no_alert += 1
        PIPELINE_MESSAGES.labels(outcome=stage.value).inc()

    @property
    def dropped(self) -> int:
        with self._lock:
            return sum(self.dropped_by_stage.values())

    def __str__(self) -> str:
        return (
            f"Stats: received={self.received} persisted={self.persisted} "
            f"alerts={self.alerts_dispatched} alerts_dropped={self.alerts_dropped} "
            f"dropped={self.dropped}"
        )

    def to_dict(self) -> dict:
        with self._lock:
            return {
                "received": self.received,
                "persisted": self.persisted,
                "alerts_dispatched": self.alerts_dispatched,
                "alerts_dropped": self.alerts_dropped,
                "no_alert": self.no_alert,
                "dropped": dict(self.dropped_by_stage),
                "last_message_at": self.last_message_at,
            }
