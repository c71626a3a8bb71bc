"""Telemetry intake: bus message -> ledger -> threshold alert.

Per message, strictly linear:

    RECEIVED -> PARSED -> DECRYPTED -> VALIDATED        (paho thread)
    -> LEDGER_WRITTEN -> LEDGER_CONFIRMED -> EVALUATED  (device worker)
    -> ALERT_DISPATCHED | ALERT_DROPPED | NO_ALERT

Any failure ends the message in DROPPED: it is logged with the stage and
device id, recorded in the dead-letter queue, and never retried or
requeued here. Breach detection uses the values read back from the
ledger, so a failed write or read-back never produces an alert.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Union

from ..crypto.codec import CryptoCodec
from ..domain.reading import AlertMessage, DecryptedReading, utc_now
from ..domain.stages import PipelineStage
from ..errors import CryptoError, LedgerError, TelemetryError, ValidationError
from ..ledger.gateway import LedgerGateway
from ..mqtt.alert_publisher import AlertPublisher, PublishStatus
from ..mqtt.validators import parse_envelope, parse_health_payload
from ..resilience.dead_letter import DeadLetterQueue
from .dispatcher import DeviceOrderedDispatcher
from .stats import IntakeStats
from .thresholds import ThresholdEvaluator

logger = logging.getLogger(__name__)

RawPayload = Union[bytes, str]


@dataclass(frozen=True)
class PipelineResult:
    """Terminal outcome of one message."""

    stage: PipelineStage
    device_id: Optional[str] = None
    asset_id: Optional[str] = None
    failed_stage: Optional[PipelineStage] = None
    error: Optional[str] = None
    breach: Optional[bool] = None
    alert_status: Optional[PublishStatus] = None

    @property
    def dropped(self) -> bool:
        return self.stage == PipelineStage.DROPPED


class TelemetryIntake:
    """Orchestrates codec, ledger, evaluator and alert publisher.

    Usage:
        intake = TelemetryIntake(codec, gateway, publisher)
        bus.set_message_handler(intake.on_message)
    """

    def __init__(
        self,
        codec: CryptoCodec,
        ledger: LedgerGateway,
        publisher: AlertPublisher,
        evaluator: Optional[ThresholdEvaluator] = None,
        dlq: Optional[DeadLetterQueue] = None,
        dispatcher: Optional[DeviceOrderedDispatcher] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._codec = codec
        self._ledger = ledger
        self._publisher = publisher
        self._evaluator = evaluator or ThresholdEvaluator()
        self._dlq = dlq
        self._dispatcher = dispatcher
        self._clock = clock
        self._stats = IntakeStats()

    @property
    def stats(self) -> IntakeStats:
        return self._stats

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def on_message(self, topic: str, payload: bytes) -> None:
        """Bus callback. Decodes on the calling (paho) thread and queues the
        ledger work behind earlier messages of the same device."""
        self._stats.record_received()
        logger.debug("[INTAKE] Message on %s (%d bytes)", topic, len(payload))

        reading = self._decode_or_drop(payload)
        if reading is None:
            return

        if self._dispatcher is None:
            self.persist_and_evaluate(reading, payload)
            return

        accepted = self._dispatcher.submit(
            reading.device_id,
            lambda: self.persist_and_evaluate(reading, payload),
        )
        if not accepted:
            self._drop(
                payload,
                TelemetryError("intake queue full", device_id=reading.device_id),
                failed_stage=PipelineStage.LEDGER_WRITTEN,
            )

    def process_message(self, payload: RawPayload) -> PipelineResult:
        """Runs the whole pipeline synchronously on the caller thread."""
        self._stats.record_received()
        try:
            reading = self.decode(payload)
        except TelemetryError as e:
            return self._drop(payload, e)
        return self.persist_and_evaluate(reading, payload)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def decode(self, payload: RawPayload) -> DecryptedReading:
        """RECEIVED -> PARSED -> DECRYPTED -> VALIDATED.

        Raises:
            ParseError, CryptoError, ValidationError
        """
        envelope = parse_envelope(payload)

        device_id = self._codec.decrypt(envelope.device_id_cipher)
        try:
            plaintext = self._codec.decrypt(envelope.payload_cipher)
        except CryptoError as e:
            e.device_id = device_id
            raise

        if not device_id:
            raise ValidationError("Decrypted deviceId is empty")

        health = parse_health_payload(plaintext, device_id=device_id)
        return DecryptedReading(
            device_id=device_id,
            spo2=health.spo2,
            heart_rate=health.heart_rate,
            received_at=self._clock(),
        )

    def persist_and_evaluate(
        self,
        reading: DecryptedReading,
        raw: Optional[RawPayload] = None,
    ) -> PipelineResult:
        """VALIDATED -> LEDGER_WRITTEN -> LEDGER_CONFIRMED -> EVALUATED -> alert."""
        device_id = reading.device_id
        asset_id = reading.asset_id

        try:
            self._ledger.write(asset_id, device_id, reading.spo2, reading.heart_rate)
        except LedgerError as e:
            e.device_id = device_id
            return self._drop(raw, e, failed_stage=PipelineStage.LEDGER_WRITTEN, asset_id=asset_id)
        self._stats.record_persisted()

        try:
            asset = self._ledger.read(asset_id)
        except LedgerError as e:
            e.device_id = device_id
            return self._drop(raw, e, failed_stage=PipelineStage.LEDGER_CONFIRMED, asset_id=asset_id)

        breach = self._evaluator.evaluate(asset.spo2, asset.heart_rate)
        logger.info(
            "[INTAKE] Evaluated asset=%s spo2=%s heartRate=%s breach=%s",
            asset_id, asset.spo2, asset.heart_rate, breach,
        )

        if not breach:
            return self._finish(PipelineResult(
                stage=PipelineStage.NO_ALERT,
                device_id=device_id,
                asset_id=asset_id,
                breach=False,
            ))

        status = self._publisher.publish(
            device_id, AlertMessage(spo2=asset.spo2, heart_rate=asset.heart_rate)
        )
        stage = (
            PipelineStage.ALERT_DISPATCHED
            if status == PublishStatus.DELIVERED
            else PipelineStage.ALERT_DROPPED
        )
        return self._finish(PipelineResult(
            stage=stage,
            device_id=device_id,
            asset_id=asset_id,
            breach=True,
            alert_status=status,
        ))

    # ------------------------------------------------------------------
    # Terminal states
    # ------------------------------------------------------------------

    def _decode_or_drop(self, payload: RawPayload) -> Optional[DecryptedReading]:
        try:
            return self.decode(payload)
        except TelemetryError as e:
            self._drop(payload, e)
            return None

    def _drop(
        self,
        raw: Optional[RawPayload],
        error: TelemetryError,
        failed_stage: Optional[PipelineStage] = None,
        asset_id: Optional[str] = None,
    ) -> PipelineResult:
        stage = failed_stage or error.stage
        logger.warning(
            "[INTAKE] Dropped at %s device=%s asset=%s error_type=%s: %s",
            stage.value, error.device_id, asset_id, error.error_type, error,
        )
        if self._dlq is not None and raw is not None:
            self._dlq.send(
                payload=raw,
                error=str(error),
                error_type=error.error_type,
                stage=stage.value,
                device_id=error.device_id,
            )
        return self._finish(PipelineResult(
            stage=PipelineStage.DROPPED,
            device_id=error.device_id,
            asset_id=asset_id,
            failed_stage=stage,
            error=str(error),
        ))

    def _finish(self, result: PipelineResult) -> PipelineResult:
        self._stats.record_terminal(result.stage, result.failed_stage)
        return result
