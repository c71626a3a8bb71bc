"""Pipeline states for a single telemetry message."""

from __future__ import annotations

from enum import Enum


class PipelineStage(str, Enum):
    """Linear state machine: each state is reached only if the previous
    one succeeded. Any failure moves the message to DROPPED."""

    RECEIVED = "received"
    PARSED = "parsed"
    DECRYPTED = "decrypted"
    VALIDATED = "validated"
    LEDGER_WRITTEN = "ledger_written"
    LEDGER_CONFIRMED = "ledger_confirmed"
    EVALUATED = "evaluated"
    ALERT_DISPATCHED = "alert_dispatched"
    NO_ALERT = "no_alert"
    ALERT_DROPPED = "alert_dropped"
    DROPPED = "dropped"

    @property
    def is_terminal(self) -> bool:
        return self in (
            PipelineStage.ALERT_DISPATCHED,
            PipelineStage.NO_ALERT,
            PipelineStage.ALERT_DROPPED,
            PipelineStage.DROPPED,
        )
