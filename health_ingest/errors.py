"""Error taxonomy for the telemetry pipeline.

Every error is recovered at the pipeline level: it is logged with the
stage that failed and the device id (when known) and the message is
dropped. Nothing here is retried by the pipeline itself; transport
retries live inside the ledger gateway.
"""

from __future__ import annotations

from typing import Optional

from .domain.stages import PipelineStage


class TelemetryError(Exception):
    """Base error. ``stage`` is the state the message failed to reach."""

    stage: PipelineStage = PipelineStage.RECEIVED
    error_type: str = "telemetry_error"

    def __init__(self, message: str, device_id: Optional[str] = None):
        super().__init__(message)
        self.device_id = device_id


class ParseError(TelemetryError):
    """Bus message is not JSON or lacks deviceId / encryptedData."""

    stage = PipelineStage.PARSED
    error_type = "parse_error"


class CryptoError(TelemetryError):
    """Ciphertext is not base64, not block aligned, or not UTF-8."""

    stage = PipelineStage.DECRYPTED
    error_type = "crypto_error"


class ValidationError(TelemetryError):
    """Decrypted payload is not JSON with numeric spo2 / heartRate."""

    stage = PipelineStage.VALIDATED
    error_type = "validation_error"


class LedgerError(TelemetryError):
    error_type = "ledger_error"


class LedgerWriteError(LedgerError):
    stage = PipelineStage.LEDGER_WRITTEN
    error_type = "ledger_write_error"

    def __init__(
        self,
        message: str,
        device_id: Optional[str] = None,
        retryable: bool = True,
    ):
        super().__init__(message, device_id=device_id)
        self.retryable = retryable


class LedgerReadError(LedgerError):
    stage = PipelineStage.LEDGER_CONFIRMED
    error_type = "ledger_read_error"

    NOT_FOUND = "not found"
    TRANSPORT = "transport"

    def __init__(
        self,
        reason: str,
        message: str = "",
        device_id: Optional[str] = None,
    ):
        super().__init__(message or reason, device_id=device_id)
        self.reason = reason

    @property
    def retryable(self) -> bool:
        return self.reason == self.TRANSPORT


class IdentityNotFoundError(LedgerError):
    """Ledger-access identity is missing from the wallet."""

    stage = PipelineStage.LEDGER_WRITTEN
    error_type = "identity_not_found"
    retryable = False


class AlertDropped(TelemetryError):
    """Alert could not be handed to the bus. Never persisted or retried."""

    stage = PipelineStage.ALERT_DISPATCHED
    error_type = "alert_dropped"
